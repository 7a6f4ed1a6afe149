"""
R2 Operand Parser
=================

Converts a single token into a typed operand (``Value``).

An operand is one of three variants:

| Variant     | Syntax              | Example        |
|-------------|---------------------|----------------|
| Register    | ``r0``, ``r1``      | ``r1``         |
| Immediate   | numeric literal     | ``0x1A``, ``-3`` |
| Reference   | symbol name         | ``loop``, ``.next`` |

Wrapping any of them in brackets marks the operand as *addressed*: it
denotes the memory location at that register/number/label rather than
the value itself (``[r0]``, ``[0x8000]``, ``[buffer]``).

Number Formats
--------------

| Format      | Prefix   | Example  | Value  |
|-------------|----------|----------|--------|
| Decimal     | (none)   | 42       | 42     |
| Hexadecimal | 0x       | 0x1A     | 26     |
| Binary      | 0b       | 0b101    | 5      |
| Negative    | -        | -1       | 0xFFFF |

Every value is a 16-bit word; negative decimals are stored as their
two's-complement bit pattern.
"""

from dataclasses import dataclass, replace
from enum import Enum
import string

from r2asm.errors import AssemblySyntaxError, LiteralError


WORD_MASK = 0xFFFF

# Characters that can start a symbol name
SYMBOL_START = string.ascii_letters + "_."

# Characters that can continue a symbol name
SYMBOL_CHARS = string.ascii_letters + string.digits + "_."

BINARY_DIGITS = "01"


# =============================================================================
# Operand Variants
# =============================================================================

class Register(Enum):
    """General registers. The value is the register id used in encoding."""
    R0 = 0
    R1 = 1

    def __str__(self) -> str:
        return self.name.lower()


REGISTERS: dict[str, Register] = {str(reg): reg for reg in Register}


@dataclass(frozen=True)
class Immediate:
    """A 16-bit literal value."""
    value: int

    def __str__(self) -> str:
        return f"0x{self.value:04X}"


@dataclass(frozen=True)
class Reference:
    """A symbolic name, resolved to an Immediate by the second pass."""
    label: str

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class Value:
    """
    Instruction operand.

    Attributes:
        variant: Register, Immediate or Reference
        addressed: True if the operand was written in brackets
    """
    variant: Register | Immediate | Reference
    addressed: bool = False

    @property
    def is_register(self) -> bool:
        return isinstance(self.variant, Register)

    @property
    def is_immediate(self) -> bool:
        return isinstance(self.variant, Immediate)

    @property
    def is_reference(self) -> bool:
        return isinstance(self.variant, Reference)

    def resolved(self, value: int) -> "Value":
        """Return a copy with the variant replaced by Immediate(value)."""
        return replace(self, variant=Immediate(value & WORD_MASK))

    def __str__(self) -> str:
        text = str(self.variant)
        return f"[{text}]" if self.addressed else text


# =============================================================================
# Literal Parsing
# =============================================================================

def _digits(text: str, allowed: str, base: int, original: str) -> int:
    if not text:
        raise LiteralError(original, "no digits after prefix")
    if any(ch not in allowed for ch in text):
        raise LiteralError(original, f"invalid digit for base {base}")
    try:
        return int(text, base)
    except ValueError as e:
        # int() refuses very long decimal strings
        raise LiteralError(original, "too many digits") from e


def parse_number(text: str) -> int:
    """
    Parse a numeric literal into its 16-bit bit pattern.

    Args:
        text: Literal text such as "0x1A", "0b101", "-3" or "42"

    Returns:
        Value in the range 0..0xFFFF

    Raises:
        LiteralError: If the text is not a valid 16-bit literal
    """
    prefix = text[:2].lower()

    if prefix == "0x":
        value = _digits(text[2:], string.hexdigits, 16, text)
    elif prefix == "0b":
        value = _digits(text[2:], BINARY_DIGITS, 2, text)
    elif text.startswith("-"):
        magnitude = _digits(text[1:], string.digits, 10, text)
        if magnitude > 0x8000:
            raise LiteralError(text, "out of range for a signed 16-bit value")
        return -magnitude & WORD_MASK
    else:
        value = _digits(text, string.digits, 10, text)

    if value > WORD_MASK:
        raise LiteralError(text, "out of range for a 16-bit value")
    return value


def looks_numeric(text: str) -> bool:
    """True if text starts like a literal (digit or minus sign)."""
    return bool(text) and (text[0] in string.digits or text[0] == "-")


def is_symbol_name(text: str) -> bool:
    """True if text is usable as a label or define name."""
    return (
        bool(text)
        and text[0] in SYMBOL_START
        and all(ch in SYMBOL_CHARS for ch in text)
        and text.strip(".") != ""
    )


# =============================================================================
# Operand Parsing
# =============================================================================

def parse_value(token: str) -> Value:
    """
    Parse one operand token.

    Args:
        token: The operand as written, e.g. "r0", "[0x10]", "loop"

    Returns:
        The typed operand

    Raises:
        LiteralError: Numeric-looking token that does not parse
        AssemblySyntaxError: Token that is neither register, number nor name
    """
    addressed = len(token) >= 2 and token.startswith("[") and token.endswith("]")
    inner = token[1:-1] if addressed else token

    register = REGISTERS.get(inner.lower())
    if register is not None:
        return Value(register, addressed)

    if looks_numeric(inner):
        return Value(Immediate(parse_number(inner)), addressed)

    if is_symbol_name(inner):
        return Value(Reference(inner), addressed)

    raise AssemblySyntaxError(f"invalid operand '{token}'")
