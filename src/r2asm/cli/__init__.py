"""
R2 Assembler Command-Line Interface
===================================

- **r2asm**: assemble a source file into a raw binary image

The tool is implemented as a Click-based CLI application with
help text and error reporting.
"""

__all__ = ["r2asm"]
