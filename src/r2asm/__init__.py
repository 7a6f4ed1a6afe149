"""
R2 Assembler Toolchain
======================

Assembler for the R2, a small fixed-width register machine with two
general registers, byte and word moves, direct and memory addressing,
a conditional jump and simple arithmetic.

Quick Start
-----------
Assemble a program:
    >>> from r2asm import Assembler
    >>> asm = Assembler()
    >>> code = asm.assemble_file("hello.asm")
    >>> asm.write_binary("hello.bin")

Or use the command-line tool:
    $ r2asm hello.asm -o hello.bin

Version History
---------------
1.0.0 - Initial release
"""

__version__ = "1.0.0"

from r2asm.assembler import Assembler, assemble, assemble_file
from r2asm.errors import (
    R2AsmError,
    AssemblerError,
    AssemblySyntaxError,
    OperandCountError,
    UnknownMnemonicError,
    UnknownModifierError,
    LiteralError,
    ValueRangeError,
    SymbolError,
    DuplicateSymbolError,
    NoParentLabelError,
    UndefinedSymbolError,
    AssemblyFailedError,
    SourceLocation,
)

__all__ = [
    "__version__",
    # Assembler
    "Assembler",
    "assemble",
    "assemble_file",
    # Exception hierarchy
    "R2AsmError",
    "AssemblerError",
    "AssemblySyntaxError",
    "OperandCountError",
    "UnknownMnemonicError",
    "UnknownModifierError",
    "LiteralError",
    "ValueRangeError",
    "SymbolError",
    "DuplicateSymbolError",
    "NoParentLabelError",
    "UndefinedSymbolError",
    "AssemblyFailedError",
    "SourceLocation",
]
