"""
R2 Assembler
============

This module provides the assembler for the R2, a small machine with two
general registers (r0, r1), 16-bit words, byte and word moves, direct and
bracketed (memory) operands, a conditional jump and simple arithmetic.

Main Components
---------------
- **lexer**: Strips comments and splits lines into tokens
- **operands**: Parses a token into a register, number or symbol reference
- **parser**: Parses a line's tokens into a label, %define or instruction
- **codegen**: Pass 1 (addresses, symbol table) and pass 2 (resolution, encoding)
- **Assembler**: Facade that runs the whole pipeline

Example Usage
-------------
>>> from r2asm.assembler import Assembler
>>> asm = Assembler()
>>> asm.assemble('''
... %define SCREEN 0x8000
... start:
...     mov r0, [SCREEN]
...     jmp start
... ''')

Source Syntax
-------------
- ``; comment`` anywhere on a line
- ``label:`` and ``.sublabel:`` (scoped under the previous label)
- ``%define NAME VALUE``
- ``mnemonic operand, operand, ...`` with operands ``r0``/``r1``, numbers
  (``0x1A``, ``0b101``, ``42``, ``-3``) or names, optionally in brackets
"""

from r2asm.assembler.assembler import Assembler, assemble, assemble_file
from r2asm.assembler.lexer import SourceLine, tokenize_line, split_source
from r2asm.assembler.operands import (
    Immediate,
    Reference,
    Register,
    Value,
    parse_number,
    parse_value,
)
from r2asm.assembler.parser import (
    Define,
    Instruction,
    LabelDef,
    Macro,
    Statement,
    parse_line,
    parse_source,
)
from r2asm.assembler.opcodes import (
    InstructionInfo,
    Opcode,
    OPCODE_TABLE,
    MNEMONICS,
    instruction_size,
)
from r2asm.assembler.codegen import (
    CodeGenerator,
    EncodedProgram,
    Layout,
    Placement,
    Symbol,
    SymbolTable,
    assign_addresses,
    encode_instruction,
    resolve_references,
)

__all__ = [
    # Main class and functions
    "Assembler",
    "assemble",
    "assemble_file",
    # Line normalizer
    "SourceLine",
    "tokenize_line",
    "split_source",
    # Operands
    "Immediate",
    "Reference",
    "Register",
    "Value",
    "parse_number",
    "parse_value",
    # Parser
    "Define",
    "Instruction",
    "LabelDef",
    "Macro",
    "Statement",
    "parse_line",
    "parse_source",
    # Opcodes
    "InstructionInfo",
    "Opcode",
    "OPCODE_TABLE",
    "MNEMONICS",
    "instruction_size",
    # Code generator
    "CodeGenerator",
    "EncodedProgram",
    "Layout",
    "Placement",
    "Symbol",
    "SymbolTable",
    "assign_addresses",
    "encode_instruction",
    "resolve_references",
]
