"""
R2 Instruction Set Definition
=============================

This module defines the closed R2 instruction set: opcode numbers, operand
counts, and the rules that fix how many bytes each instruction occupies.
Both the parser (which validates arity) and the code generator (which
computes widths and emits bytes) use these definitions.

Instruction Format
------------------
```
Byte    Description
----    -----------
0       Opcode
1       Mode byte (only when the instruction has operands)
2..     Operand fields, in operand order
```

Mode Byte
---------
Two bits per operand, operand 0 in the lowest bits:

| Bit       | Meaning when set                                   |
|-----------|----------------------------------------------------|
| 2*i       | operand i is an immediate (number or resolved name) |
| 2*i + 1   | operand i is addressed (written in brackets)        |

Operand Fields
--------------
- Register: 1 byte, the register id (r0 = 0, r1 = 1)
- Immediate: 2 bytes, little-endian
- Immediate data in ``mov byte`` (not addressed): 1 byte

The addressed flag changes field size only for the data operand of
``mov byte`` (1 byte bare, 2 bytes in brackets); elsewhere it only sets a
mode bit. Operand kind and brackets are both known as soon as the line is
parsed, so the width of an instruction never depends on the value of a
symbol.

Instruction Summary
-------------------
| Mnemonic   | Operands | Opcode |
|------------|----------|--------|
| hlt        | 0        | $00    |
| reti       | 0        | $01    |
| jmp        | 1        | $02    |
| lvcd       | 1        | $03    |
| lkbd       | 1        | $04    |
| mov        | 2        | $05    |
| jnz        | 2        | $06    |
| add        | 3        | $07    |
| and        | 3        | $08    |
| mov byte   | 2        | $09    |
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from r2asm.assembler.operands import Value


# =============================================================================
# Opcode Enumeration
# =============================================================================

class Opcode(Enum):
    """Opcode byte for each instruction."""
    HLT = 0x00
    RETI = 0x01
    JMP = 0x02
    LVCD = 0x03
    LKBD = 0x04
    MOV = 0x05
    JNZ = 0x06
    ADD = 0x07
    AND = 0x08
    MOV_BYTE = 0x09


# =============================================================================
# Instruction Information
# =============================================================================

@dataclass(frozen=True)
class InstructionInfo:
    """
    Static description of one instruction.

    Attributes:
        opcode: The opcode for this instruction
        mnemonic: Mnemonic as written in source ("mov byte" for the byte move)
        operand_count: Number of operands, fixed for the instruction
        byte_data: True if non-addressed immediates are encoded in one byte
    """
    opcode: Opcode
    mnemonic: str
    operand_count: int
    byte_data: bool = False

    def __repr__(self) -> str:
        return (f"InstructionInfo({self.mnemonic!r}, opcode=${self.opcode.value:02X}, "
                f"operands={self.operand_count})")


# =============================================================================
# Opcode Table
# =============================================================================
# Key: (mnemonic, operand_count)
# The byte move is reached through the `mov byte` modifier, not by count,
# so it lives in MODIFIER_TABLE instead.
# =============================================================================

OPCODE_TABLE: dict[tuple[str, int], InstructionInfo] = {
    ("hlt", 0): InstructionInfo(Opcode.HLT, "hlt", 0),
    ("reti", 0): InstructionInfo(Opcode.RETI, "reti", 0),
    ("jmp", 1): InstructionInfo(Opcode.JMP, "jmp", 1),
    ("lvcd", 1): InstructionInfo(Opcode.LVCD, "lvcd", 1),
    ("lkbd", 1): InstructionInfo(Opcode.LKBD, "lkbd", 1),
    ("mov", 2): InstructionInfo(Opcode.MOV, "mov", 2),
    ("jnz", 2): InstructionInfo(Opcode.JNZ, "jnz", 2),
    ("add", 3): InstructionInfo(Opcode.ADD, "add", 3),
    ("and", 3): InstructionInfo(Opcode.AND, "and", 3),
}

MODIFIER_TABLE: dict[tuple[str, str], InstructionInfo] = {
    ("mov", "byte"): InstructionInfo(Opcode.MOV_BYTE, "mov byte", 2, byte_data=True),
}

# Mnemonics that accept a width modifier as their first field
MODIFIED_MNEMONICS: frozenset[str] = frozenset(m for m, _ in MODIFIER_TABLE)

MNEMONICS: frozenset[str] = frozenset(m for m, _ in OPCODE_TABLE)

# Mode byte bits, shifted left by 2 * operand index
MODE_IMMEDIATE = 0x01
MODE_ADDRESSED = 0x02

REGISTER_FIELD_SIZE = 1
WORD_FIELD_SIZE = 2
BYTE_FIELD_SIZE = 1


# =============================================================================
# Lookup Functions
# =============================================================================

def get_instruction_info(mnemonic: str, operand_count: int) -> Optional[InstructionInfo]:
    """
    Look up an instruction by mnemonic and operand count.

    Returns:
        InstructionInfo if found, None if the combination is invalid
    """
    return OPCODE_TABLE.get((mnemonic.lower(), operand_count))


def get_modified_info(mnemonic: str, modifier: str) -> Optional[InstructionInfo]:
    """Look up a modifier form such as `mov byte`."""
    return MODIFIER_TABLE.get((mnemonic.lower(), modifier.lower()))


def get_operand_counts(mnemonic: str) -> list[int]:
    """Return every operand count the mnemonic accepts, ascending."""
    mnemonic = mnemonic.lower()
    return sorted(count for (m, count) in OPCODE_TABLE if m == mnemonic)


# =============================================================================
# Width and Mode Helpers
# =============================================================================

def operand_size(info: InstructionInfo, operand: Value) -> int:
    """
    Number of bytes an operand field occupies.

    References count as immediates since that is what they resolve to.
    """
    if operand.is_register:
        return REGISTER_FIELD_SIZE
    if info.byte_data and not operand.addressed:
        return BYTE_FIELD_SIZE
    return WORD_FIELD_SIZE


def instruction_size(info: InstructionInfo, operands: tuple[Value, ...]) -> int:
    """Total encoded size of an instruction in bytes."""
    if not operands:
        return 1
    return 2 + sum(operand_size(info, op) for op in operands)


def mode_bits(operands: tuple[Value, ...]) -> int:
    """Build the mode byte for a list of operands."""
    mode = 0
    for index, operand in enumerate(operands):
        bits = 0
        if not operand.is_register:
            bits |= MODE_IMMEDIATE
        if operand.addressed:
            bits |= MODE_ADDRESSED
        mode |= bits << (2 * index)
    return mode
