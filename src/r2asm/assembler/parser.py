"""
R2 Assembly Statement Parser
============================

This module turns the tokens of one source line into a typed statement.
It is purely syntactic: it never looks at the symbol table, so every
line can be parsed on its own.

Statement Types
---------------
1. **LabelDef**: Label or sub-label definition
   ```asm
   main:           ; Top-level label
   .loop:          ; Sub-label, resolved as main.loop
   ```

2. **Define**: Compile-time constant
   ```asm
   %define SIZE 0x10
   ```

3. **Instruction**: Machine instruction with its operands
   ```asm
   hlt
   jmp .loop
   mov r0, [0x8000]
   mov byte [r1], 0x41
   add r0, r0, 0x5
   ```

Arity Checking
--------------
Each mnemonic takes a fixed number of operands. A known mnemonic used
with the wrong count is an OperandCountError reporting the expected and
received counts (``mov r0`` -> expected 2, received 1). A mnemonic that
is not in the instruction set is an UnknownMnemonicError.
"""

from dataclasses import dataclass, replace
from typing import Iterable, Optional, Sequence

from r2asm.errors import (
    AssemblerError,
    AssemblySyntaxError,
    ErrorCollector,
    OperandCountError,
    SourceLocation,
    UnknownMnemonicError,
    UnknownModifierError,
)
from r2asm.assembler.lexer import SourceLine, split_source
from r2asm.assembler.opcodes import (
    InstructionInfo,
    MODIFIED_MNEMONICS,
    MODIFIER_TABLE,
    get_instruction_info,
    get_modified_info,
    get_operand_counts,
    instruction_size,
)
from r2asm.assembler.operands import (
    Reference,
    Value,
    is_symbol_name,
    parse_number,
    parse_value,
)


LABEL_SUFFIX = ":"
SUBLABEL_PREFIX = "."
DEFINE_KEYWORD = "%define"

# Tokens in a `%define NAME VALUE` line
DEFINE_TOKENS = 3


# =============================================================================
# Statement Data Classes
# =============================================================================

@dataclass(frozen=True)
class Statement:
    """
    Base class for all parsed statements.

    Every statement keeps its source location and raw text for error
    reporting and listings. Statements are immutable; later passes build
    new structures instead of modifying them.
    """
    location: SourceLocation
    text: str


@dataclass(frozen=True)
class Macro(Statement):
    """Base class for directives that bind names rather than emit code."""
    pass


@dataclass(frozen=True)
class LabelDef(Macro):
    """
    Label definition statement.

    Attributes:
        name: Label name without the leading '.' or trailing ':'
        is_sub: True for sub-labels, which are scoped under the last label
    """
    name: str
    is_sub: bool = False


@dataclass(frozen=True)
class Define(Macro):
    """
    Constant definition (%define NAME VALUE).

    Attributes:
        name: Constant name
        value: 16-bit value
    """
    name: str
    value: int


@dataclass(frozen=True)
class Instruction(Statement):
    """
    Machine instruction.

    Attributes:
        info: Static instruction description (opcode, operand count)
        operands: Parsed operands, exactly info.operand_count of them
    """
    info: InstructionInfo
    operands: tuple[Value, ...] = ()

    def __post_init__(self):
        if len(self.operands) != self.info.operand_count:
            raise ValueError(
                f"{self.info.mnemonic} takes {self.info.operand_count} operands, "
                f"got {len(self.operands)}"
            )

    @property
    def mnemonic(self) -> str:
        return self.info.mnemonic

    @property
    def size(self) -> int:
        """Encoded size in bytes."""
        return instruction_size(self.info, self.operands)

    @property
    def references(self) -> list[str]:
        """Names of every symbolic operand, in operand order."""
        return [op.variant.label for op in self.operands if isinstance(op.variant, Reference)]

    def with_operands(self, operands: tuple[Value, ...]) -> "Instruction":
        """Return a copy of this instruction with different operands."""
        return replace(self, operands=tuple(operands))

    def __str__(self) -> str:
        if not self.operands:
            return self.mnemonic
        return f"{self.mnemonic} " + ", ".join(str(op) for op in self.operands)


# =============================================================================
# Line Parsing
# =============================================================================

def _check_count(expected: int, received: int) -> None:
    if received != expected:
        raise OperandCountError(expected, received)


def _check_name(name: str, what: str) -> None:
    if not is_symbol_name(name) or SUBLABEL_PREFIX in name:
        raise AssemblySyntaxError(f"invalid {what} name '{name}'")


def _parse_label(tokens: list[str], location: SourceLocation, text: str) -> LabelDef:
    _check_count(1, len(tokens))
    label = tokens[0]
    name = label.lstrip(SUBLABEL_PREFIX).rstrip(LABEL_SUFFIX)
    _check_name(name, "label")
    return LabelDef(location, text, name, is_sub=label.startswith(SUBLABEL_PREFIX))


def _parse_define(tokens: list[str], location: SourceLocation, text: str) -> Define:
    _check_count(DEFINE_TOKENS, len(tokens))
    name = tokens[1]
    _check_name(name, "constant")
    return Define(location, text, name, parse_number(tokens[2]))


def _build(info: InstructionInfo, operand_tokens: Sequence[str],
           location: SourceLocation, text: str) -> Instruction:
    operands = tuple(parse_value(token) for token in operand_tokens)
    return Instruction(location, text, info, operands)


def _parse_instruction(tokens: list[str], location: SourceLocation, text: str) -> Instruction:
    mnemonic = tokens[0]
    operand_tokens = tokens[1:]
    count = len(operand_tokens)

    if mnemonic.lower() in MODIFIED_MNEMONICS:
        modifiers = {mod for (m, mod) in MODIFIER_TABLE if m == mnemonic.lower()}
        if count and operand_tokens[0].lower() in modifiers:
            info = get_modified_info(mnemonic, operand_tokens[0])
            _check_count(info.operand_count, count - 1)
            return _build(info, operand_tokens[1:], location, text)
        if count == 3:
            raise UnknownModifierError(operand_tokens[0])

    info = get_instruction_info(mnemonic, count)
    if info is not None:
        return _build(info, operand_tokens, location, text)

    counts = get_operand_counts(mnemonic)
    if not counts:
        raise UnknownMnemonicError(mnemonic, " ".join(tokens))
    expected = min(counts, key=lambda c: abs(c - count))
    raise OperandCountError(expected, count)


def parse_line(
    tokens: Sequence[str],
    location: Optional[SourceLocation] = None,
    source_line: Optional[str] = None,
) -> Statement:
    """
    Parse the tokens of one non-empty line.

    Args:
        tokens: Output of the line normalizer for this line
        location: Where the line came from (for error messages)
        source_line: Raw line text (defaults to the tokens joined by spaces)

    Returns:
        LabelDef, Define or Instruction

    Raises:
        AssemblySyntaxError: Arity, mnemonic, modifier or name problems
        LiteralError: Malformed numeric literal
    """
    tokens = list(tokens)
    location = location or SourceLocation("<input>", 0)
    text = source_line if source_line is not None else " ".join(tokens)

    try:
        if not tokens:
            raise AssemblySyntaxError("empty statement")
        if tokens[0].endswith(LABEL_SUFFIX):
            return _parse_label(tokens, location, text)
        if tokens[0].startswith(DEFINE_KEYWORD):
            return _parse_define(tokens, location, text)
        return _parse_instruction(tokens, location, text)
    except AssemblerError as e:
        e.with_context(location, text)
        raise


def parse_lines(
    lines: Iterable[SourceLine],
    errors: Optional[ErrorCollector] = None,
) -> list[Statement]:
    """
    Parse normalized lines, collecting errors instead of stopping.

    Args:
        lines: Non-empty lines from the normalizer
        errors: Collector to receive per-line errors. If omitted, a local
                collector is used and AssemblyFailedError is raised at the
                end when any line failed.

    Returns:
        Statements for every line that parsed, in source order
    """
    collector = errors if errors is not None else ErrorCollector()
    statements: list[Statement] = []

    for line in lines:
        try:
            statements.append(parse_line(line.tokens, line.location, line.text))
        except AssemblerError as e:
            collector.add(e)

    if errors is None:
        collector.raise_if_errors()
    return statements


def parse_source(
    source: str,
    filename: str = "<input>",
    errors: Optional[ErrorCollector] = None,
) -> list[Statement]:
    """Normalize and parse a complete source text. See parse_lines."""
    return parse_lines(split_source(source, filename), errors)
