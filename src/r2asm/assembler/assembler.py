"""
R2 Assembler - Main Interface
=============================

This module provides the main Assembler class, which is the primary interface
for assembling R2 source code. It coordinates the line normalizer, parser and
code generator to produce a flat machine-code image.

Example Usage
-------------
>>> from r2asm.assembler import Assembler
>>>
>>> asm = Assembler()
>>> code = asm.assemble('''
... main:
...     mov r0, 10
... .loop:
...     add r0, r0, -1
...     jnz r0, .loop
...     hlt
... ''')
>>> print(f"Generated {len(code)} bytes")
>>> asm.write_binary("countdown.bin")

Command-Line Usage
------------------
The assembler can also be invoked from the command line:

    $ r2asm countdown.asm -o countdown.bin -l countdown.lst -s countdown.sym
"""

from pathlib import Path
from typing import Optional
import logging

from r2asm.assembler.parser import Statement, parse_source
from r2asm.assembler.codegen import CodeGenerator, EncodedProgram, Layout
from r2asm.errors import AssemblyFailedError, ErrorCollector, TooManyErrors


logger = logging.getLogger(__name__)


class Assembler:
    """
    Main R2 assembler class.

    Attributes:
        origin: Address of the first instruction
        max_errors: Maximum number of errors collected before giving up
    """

    def __init__(self, origin: int = 0,
                 defines: dict[str, int] | None = None,
                 max_errors: int = 100):
        """
        Initialize the assembler.

        Args:
            origin: Start address for the first instruction (default 0)
            defines: Dictionary of pre-defined constants. A source %define
                     or label with the same name is a duplicate symbol.
            max_errors: Stop after collecting this many errors
        """
        self._origin = origin
        self._max_errors = max_errors
        self._program: Optional[EncodedProgram] = None
        self._codegen = CodeGenerator(origin=origin, max_errors=max_errors)

        if defines:
            for name, value in defines.items():
                self.define_symbol(name, value)

    def define_symbol(self, name: str, value: int) -> None:
        """
        Pre-define a constant.

        Args:
            name: Symbol name
            value: Symbol value (masked to 16 bits)
        """
        self._codegen.define_symbol(name, value)

    # =========================================================================
    # Assembly
    # =========================================================================

    def parse(self, source: str, filename: str = "<input>") -> list[Statement]:
        """
        Parse source into statements without assembling.

        Raises:
            AssemblyFailedError: If any line fails to parse; every failing
                                 line is reported
        """
        errors = ErrorCollector(self._max_errors)
        try:
            statements = parse_source(source, filename, errors)
        except TooManyErrors as e:
            raise AssemblyFailedError(errors.errors, errors.report()) from e
        errors.raise_if_errors()
        logger.debug(f"Parsed {len(statements)} statements from {filename}")
        return statements

    def assemble_statements(self, statements: list[Statement]) -> EncodedProgram:
        """
        Run both passes over already parsed statements.

        Returns:
            The encoded program

        Raises:
            AssemblyFailedError: If any symbol or encoding error occurred
        """
        self._program = None
        self._program = self._codegen.generate(statements)
        return self._program

    def assemble(self, source: str, filename: str = "<input>") -> bytes:
        """
        Assemble source code from a string.

        The assembly pipeline is:
        1. Normalize lines and parse them into statements
        2. Pass 1: assign addresses and build the symbol table
        3. Pass 2: resolve references and encode

        Args:
            source: Assembly source code
            filename: Virtual filename for error messages

        Returns:
            Generated machine code

        Raises:
            AssemblyFailedError: If assembly fails
        """
        statements = self.parse(source, filename)
        return self.assemble_statements(statements).code

    def assemble_file(self, filepath: str | Path) -> bytes:
        """
        Assemble source code from a file.

        Raises:
            AssemblyFailedError: If assembly fails
            FileNotFoundError: If source file not found
        """
        filepath = Path(filepath)
        source = filepath.read_text()
        return self.assemble(source, str(filepath))

    # =========================================================================
    # Results
    # =========================================================================

    def get_code(self) -> bytes:
        """Return the machine code from the last successful assembly."""
        return self._program.code if self._program else b""

    def get_program(self) -> Optional[EncodedProgram]:
        return self._program

    def get_origin(self) -> int:
        return self._origin

    def get_symbols(self) -> dict[str, int]:
        """Return a dictionary of symbol names to values."""
        return self._codegen.get_symbols()

    def get_layout(self) -> Optional[Layout]:
        """Return the address layout computed by pass 1."""
        return self._codegen.get_layout()

    def get_listing(self) -> str:
        """
        Get the assembly listing as a string.

        Returns:
            Assembly listing with addresses, code bytes, and source
        """
        return self._codegen.get_listing()

    def get_symbol_file(self) -> str:
        """Format the symbol table as `NAME = $XXXX` lines sorted by name."""
        lines = ["; Symbol table", "; Generated by r2asm"]
        table = self._codegen.get_symbol_table()
        if table is not None:
            for sym in sorted(table, key=lambda s: s.name):
                kind = "  ; constant" if sym.is_constant else ""
                lines.append(f"{sym.name} = ${sym.value:04X}{kind}")
        return "\n".join(lines) + "\n"

    # =========================================================================
    # Output File Writing
    # =========================================================================

    def write_binary(self, filepath: str | Path) -> None:
        """Write raw machine code."""
        Path(filepath).write_bytes(self.get_code())
        logger.debug(f"Wrote {len(self.get_code())} bytes to {filepath}")

    def write_listing(self, filepath: str | Path) -> None:
        """Write the listing file."""
        Path(filepath).write_text(self.get_listing() + "\n")

    def write_symbols(self, filepath: str | Path) -> None:
        """Write the symbol file."""
        Path(filepath).write_text(self.get_symbol_file())


def assemble(source: str, filename: str = "<input>", origin: int = 0) -> bytes:
    """
    Convenience function to assemble source code.

    Returns:
        Generated machine code

    Raises:
        AssemblyFailedError: If assembly fails
    """
    return Assembler(origin=origin).assemble(source, filename)


def assemble_file(filepath: str | Path, origin: int = 0) -> bytes:
    """Convenience function to assemble a file."""
    return Assembler(origin=origin).assemble_file(filepath)
