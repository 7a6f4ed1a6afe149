"""
R2 Assembler Error Hierarchy
============================

This module defines the exception hierarchy for the R2 assembler.
All exceptions inherit from R2AsmError, allowing callers to catch all
assembler-related errors with a single except clause if desired.

Exception Hierarchy
-------------------
R2AsmError (base)
└── AssemblerError (assembler-related)
    ├── AssemblySyntaxError - syntax errors in source
    │   ├── OperandCountError - too few / too many operands
    │   ├── UnknownMnemonicError - mnemonic not valid for the operand count
    │   └── UnknownModifierError - unknown `mov` width modifier
    ├── LiteralError - malformed numeric literal
    ├── ValueRangeError - value does not fit its encoding slot
    ├── SymbolError - symbol table problems
    │   ├── DuplicateSymbolError - name bound more than once
    │   ├── NoParentLabelError - sub-label before any label
    │   └── UndefinedSymbolError - reference to an unknown name
    ├── AssemblyFailedError - one or more errors collected during assembly
    └── TooManyErrors - error limit reached

Error messages follow this format:
    filename:line: error: description
        source_line_text
    hint: suggestion for fixing (when available)
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class R2AsmError(Exception):
    """
    Base exception for all R2 assembler errors.

        try:
            assembler.assemble_file("program.asm")
        except R2AsmError as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    Represents a location in source code for error reporting.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
    """
    filename: str
    line: int

    def __str__(self) -> str:
        """Format as 'filename:line' for error messages."""
        return f"{self.filename}:{self.line}"


# =============================================================================
# Assembler Exceptions
# =============================================================================

class AssemblerError(R2AsmError):
    """
    Base exception for all assembler-related errors.

    Attributes:
        message: The error description
        location: Where in the source the error occurred (optional)
        hint: A suggestion for fixing the error (optional)
        source_line: The actual source text at the error location (optional)
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

        Example output:
            demo.asm:7: error: undefined symbol 'lop'
                jmp lop
            hint: did you mean 'loop'?
        """
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.source_line is not None:
            parts.append(f"    {self.source_line}")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)

    def with_context(self, location: SourceLocation, source_line: str) -> "AssemblerError":
        """
        Attach a location and source text to an error raised without them.

        Operand and literal parsing work on bare tokens and do not know
        which line they came from; the statement parser fills that in.
        """
        if self.location is None:
            self.location = location
        if self.source_line is None:
            self.source_line = source_line
        self.args = (self._format_message(),)
        return self


class AssemblySyntaxError(AssemblerError):
    """
    Syntax error in assembly source code.

    Always attributable to a single source line. Examples:
        - Wrong number of operands
        - Unknown mnemonic
        - Malformed operand or label name
    """
    pass


class OperandCountError(AssemblySyntaxError):
    """
    Wrong number of values on a line.

    Counts are of the values following the mnemonic (or of the whole
    line for directives), so `mov r0` reports expected=2, received=1.
    """

    def __init__(
        self,
        expected: int,
        received: int,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.expected = expected
        self.received = received
        self.too_few = received < expected
        self.too_many = received > expected

        quantity = "too few" if self.too_few else "too many"
        super().__init__(
            f"{quantity} values: expected {expected}, received {received}",
            location=location,
            source_line=source_line,
        )


class UnknownMnemonicError(AssemblySyntaxError):
    """
    Mnemonic not recognised for the number of operands given.

    Attributes:
        mnemonic: The offending mnemonic
        line_text: The whole line, re-joined from its tokens
    """

    def __init__(
        self,
        mnemonic: str,
        line_text: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.mnemonic = mnemonic
        self.line_text = line_text

        super().__init__(
            f"unknown statement '{mnemonic}' in '{line_text}'",
            location=location,
            source_line=source_line,
        )


class UnknownModifierError(AssemblySyntaxError):
    """Raised for `mov <modifier> a, b` when the modifier is not `byte`."""

    def __init__(
        self,
        modifier: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.modifier = modifier
        super().__init__(
            f"unknown mov modifier '{modifier}'",
            location=location,
            hint="the only supported modifier is 'byte'",
            source_line=source_line,
        )


class LiteralError(AssemblerError):
    """
    Malformed numeric literal.

    Raised when a token looks like a number (0x/0b prefix, leading digit
    or minus sign) but cannot be parsed as a 16-bit value.
    """

    def __init__(
        self,
        text: str,
        reason: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.text = text
        self.reason = reason
        super().__init__(
            f"bad number '{text}': {reason}",
            location=location,
            source_line=source_line,
        )


class ValueRangeError(AssemblerError):
    """A resolved value does not fit the operand slot it is encoded into."""
    pass


# =============================================================================
# Symbol Exceptions
# =============================================================================

class SymbolError(AssemblerError):
    """
    Base class for symbol table errors.

    Symbol errors are detected across both passes and are reported with
    every offending location, not only the first one found.

    Attributes:
        symbol: The resolved symbol name
        locations: Every source location involved
    """

    def __init__(
        self,
        message: str,
        symbol: str,
        locations: Optional[list[SourceLocation]] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.symbol = symbol
        self.locations = list(locations or [])
        super().__init__(
            message,
            location=self.locations[0] if self.locations else None,
            hint=hint,
            source_line=source_line,
        )

    def _format_message(self) -> str:
        text = super()._format_message()
        if len(self.locations) > 1:
            lines = ", ".join(str(loc.line) for loc in self.locations)
            text += f"\nlines: {lines}"
        return text


class DuplicateSymbolError(SymbolError):
    """
    Symbol defined multiple times.

    Raised when a label, sub-label or constant name is bound more than
    once. `locations` holds every definition in source order.
    """

    def __init__(
        self,
        symbol: str,
        locations: Optional[list[SourceLocation]] = None,
        source_line: Optional[str] = None,
    ):
        locations = list(locations or [])
        hint = None
        if len(locations) > 1:
            hint = f"'{symbol}' was first defined at {locations[0]}"
        super().__init__(
            f"duplicate symbol '{symbol}'",
            symbol,
            locations,
            hint=hint,
            source_line=source_line,
        )


class NoParentLabelError(SymbolError):
    """
    Sub-label used before any top-level label.

    Example:
        .loop:      ; Error: no label to scope '.loop' under
            jmp loop
    """

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        super().__init__(
            f"sub-label '.{symbol}' has no parent label",
            symbol,
            [location] if location else [],
            hint="define a top-level label (name:) before it",
            source_line=source_line,
        )


class UndefinedSymbolError(SymbolError):
    """
    Reference to an undefined symbol (label or constant).

    Raised during the second pass when a reference cannot be resolved.
    The assembler suggests similarly-named symbols to catch typos.
    """

    def __init__(
        self,
        symbol: str,
        locations: Optional[list[SourceLocation]] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
        similar_symbols: Optional[list[str]] = None,
    ):
        self.similar_symbols = similar_symbols or []

        if not hint and self.similar_symbols:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_symbols[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"undefined symbol '{symbol}'",
            symbol,
            locations,
            hint=hint,
            source_line=source_line,
        )


class AssemblyFailedError(AssemblerError):
    """
    Assembly produced one or more errors.

    Attributes:
        errors: Every collected error, in the order it was reported
    """

    def __init__(self, errors: list[AssemblerError], report: str = ""):
        self.errors = list(errors)
        count = len(self.errors)
        word = "error" if count == 1 else "errors"
        message = f"assembly failed with {count} {word}"
        if report:
            message += f":\n\n{report}"
        super().__init__(message)


# =============================================================================
# Error Collection for Multiple Error Reporting
# =============================================================================

class ErrorCollector:
    """
    Collects multiple errors for batch reporting.

    The assembler uses this to continue processing after encountering
    an error, collecting all errors before reporting them together.

    Example:
        collector = ErrorCollector(max_errors=100)
        collector.add(UndefinedSymbolError("loop"))
        if collector.has_errors():
            print(collector.report())
    """

    def __init__(self, max_errors: int = 100):
        """
        Initialize the error collector.

        Args:
            max_errors: Maximum errors to collect before raising TooManyErrors
        """
        self.errors: list[AssemblerError] = []
        self.max_errors = max_errors

    def add(self, error: AssemblerError) -> None:
        """
        Add an error to the collection.

        Raises:
            TooManyErrors: If max_errors has been reached
        """
        self.errors.append(error)
        if len(self.errors) >= self.max_errors:
            raise TooManyErrors(f"too many errors ({self.max_errors}), stopping")

    def extend(self, errors: list[AssemblerError]) -> None:
        for error in errors:
            self.add(error)

    def has_errors(self) -> bool:
        """Return True if any errors have been collected."""
        return len(self.errors) > 0

    def error_count(self) -> int:
        """Return the number of collected errors."""
        return len(self.errors)

    def report(self) -> str:
        """
        Format all errors for display.

        Returns:
            Formatted string with all errors and a summary line
        """
        lines = []

        for error in self.errors:
            lines.append(str(error))
            lines.append("")

        error_word = "error" if len(self.errors) == 1 else "errors"
        lines.append(f"{len(self.errors)} {error_word}")

        return "\n".join(lines)

    def raise_if_errors(self) -> None:
        """Raise AssemblyFailedError carrying every collected error."""
        if self.errors:
            raise AssemblyFailedError(self.errors, self.report())

    def clear(self) -> None:
        """Clear all collected errors."""
        self.errors.clear()


class TooManyErrors(AssemblerError):
    """
    Raised when too many errors have been encountered.

    This prevents the assembler from flooding the user when there are
    fundamental problems with the source code.
    """

    def __init__(self, message: str = "too many errors"):
        super().__init__(message)
