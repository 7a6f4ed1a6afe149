"""
R2 Code Generator
=================

This module turns parsed statements into R2 machine code. It implements
the classic two-pass process:

Pass 1 (Address Assignment)
---------------------------
- Walk the statements in source order with a running address counter
- Bind labels and sub-labels to the current address
- Bind %define constants to their values
- Advance the counter by the width of each instruction

Pass 2 (Resolution and Encoding)
--------------------------------
- Replace every symbolic operand with the value it names
- Encode each instruction into bytes

Instruction widths depend only on the instruction, on whether each
operand is a register or an immediate, and (for ``mov byte`` data) on
whether it is bracketed. All of that is known from parsing alone, so
one Pass 1 is enough: there is no relaxation loop.

Each pass produces a new structure (Layout, then resolved placements,
then bytes) and never modifies the statements it was given. Errors from
both passes are collected and reported together so that one run shows
every undefined or duplicated symbol in the file.

Sub-label Scoping
-----------------
```asm
main:
.loop:          ; bound as main.loop
    jnz r0, loop    ; tries 'loop', then 'main.loop'
    jmp .loop       ; tries only 'main.loop'
```
"""

from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence
import logging

from r2asm.errors import (
    AssemblerError,
    AssemblyFailedError,
    DuplicateSymbolError,
    ErrorCollector,
    NoParentLabelError,
    SourceLocation,
    TooManyErrors,
    UndefinedSymbolError,
    ValueRangeError,
)
from r2asm.assembler.parser import (
    Define,
    Instruction,
    LabelDef,
    Statement,
)
from r2asm.assembler.opcodes import mode_bits, operand_size
from r2asm.assembler.operands import Immediate, Reference, Register, Value, WORD_MASK


logger = logging.getLogger(__name__)

ADDRESS_SPACE = 0x10000

PREDEFINED = SourceLocation("<predefined>", 0)

# Sign-extended negative bytes (-128..-1) are accepted as byte data
BYTE_MAX = 0xFF
NEGATIVE_BYTE_MIN = 0xFF80


# =============================================================================
# Symbol Table
# =============================================================================

@dataclass(frozen=True)
class Symbol:
    """
    Symbol table entry.

    Attributes:
        name: Resolved symbol name (sub-labels as parent.name)
        value: Address for labels, value for constants
        location: Where the symbol was defined
        is_constant: True for %define and predefined symbols
        parent: Parent label for sub-labels
    """
    name: str
    value: int
    location: SourceLocation
    is_constant: bool = False
    parent: Optional[str] = None


class SymbolTable:
    """
    Mapping from resolved name to Symbol.

    Built by Pass 1 and only read afterwards. Names are case-sensitive.
    """

    def __init__(self):
        self._symbols: dict[str, Symbol] = {}

    def add(self, symbol: Symbol) -> bool:
        """
        Bind a symbol unless the name is already taken.

        Returns:
            True if bound, False if the name already existed (the
            existing binding is kept)
        """
        if symbol.name in self._symbols:
            return False
        self._symbols[symbol.name] = symbol
        return True

    def get(self, name: str) -> Optional[Symbol]:
        return self._symbols.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._symbols

    def __len__(self) -> int:
        return len(self._symbols)

    def __iter__(self) -> Iterator[Symbol]:
        return iter(self._symbols.values())

    def as_dict(self) -> dict[str, int]:
        """Return a dictionary of symbol names to values."""
        return {name: sym.value for name, sym in self._symbols.items()}

    @staticmethod
    def candidates(name: str, scope: Optional[str]) -> list[str]:
        """
        Names to try, in order, when resolving a reference.

        A plain name is tried as written and then under the enclosing
        label. A name starting with '.' is only tried under the label.
        """
        if name.startswith("."):
            return [f"{scope}{name}"] if scope else []
        names = [name]
        if scope:
            names.append(f"{scope}.{name}")
        return names

    def resolve(self, name: str, scope: Optional[str] = None) -> Optional[Symbol]:
        """Look up a reference from inside the given label scope."""
        for candidate in self.candidates(name, scope):
            symbol = self._symbols.get(candidate)
            if symbol is not None:
                return symbol
        return None

    def find_similar(self, name: str) -> list[str]:
        """
        Find symbols with similar names for error hints.

        Uses simple edit distance heuristic.
        """
        name_lower = name.lower().lstrip(".")
        similar = []

        for sym in self._symbols:
            sym_lower = sym.lower()
            short = sym_lower.rsplit(".", 1)[-1]
            for candidate in {sym_lower, short}:
                if (candidate == name_lower or
                        abs(len(candidate) - len(name_lower)) <= 1 and
                        _edit_distance(name_lower, candidate) <= 2):
                    similar.append(sym)
                    break

        return similar[:3]


def _edit_distance(s1: str, s2: str) -> int:
    """Calculate Levenshtein edit distance between two strings."""
    if len(s1) < len(s2):
        s1, s2 = s2, s1

    distances = list(range(len(s2) + 1))
    for i, c1 in enumerate(s1):
        new_distances = [i + 1]
        for j, c2 in enumerate(s2):
            if c1 == c2:
                new_distances.append(distances[j])
            else:
                new_distances.append(1 + min(distances[j], distances[j + 1], new_distances[-1]))
        distances = new_distances
    return distances[-1]


# =============================================================================
# Pass 1: Address Assignment
# =============================================================================

@dataclass(frozen=True)
class Placement:
    """
    A statement together with where Pass 1 put it.

    Attributes:
        statement: The parsed statement
        address: Address counter when the statement was reached
        scope: Top-level label in effect at this statement
    """
    statement: Statement
    address: int
    scope: Optional[str] = None


@dataclass
class Layout:
    """
    Result of Pass 1.

    Attributes:
        symbols: Populated symbol table
        placements: Every statement with its address, in source order
        origin: Starting address
        end: Final value of the address counter
        scope: Top-level label in effect after the last statement
        errors: Symbol errors found while walking
    """
    symbols: SymbolTable
    placements: list[Placement]
    origin: int
    end: int
    scope: Optional[str] = None
    errors: list[AssemblerError] = field(default_factory=list)

    @property
    def instructions(self) -> list[Placement]:
        """Placements of instruction statements only."""
        return [p for p in self.placements if isinstance(p.statement, Instruction)]

    @property
    def size(self) -> int:
        return self.end - self.origin


def assign_addresses(
    statements: Sequence[Statement],
    origin: int = 0,
    scope: Optional[str] = None,
    symbols: Optional[SymbolTable] = None,
) -> Layout:
    """
    Pass 1: assign addresses and build the symbol table.

    Args:
        statements: Parsed statements in source order
        origin: Address of the first instruction
        scope: Top-level label in effect before the first statement
        symbols: Table to extend (e.g. holding predefined constants);
                 a new one is created if omitted

    Returns:
        Layout with symbols, placements and any symbol errors
    """
    symbols = symbols if symbols is not None else SymbolTable()
    placements: list[Placement] = []
    errors: list[AssemblerError] = []
    definitions: dict[str, list[SourceLocation]] = {}
    # Source text of the first definition, None for caller-supplied symbols
    first_text: dict[str, Optional[str]] = {}
    pc = origin
    overflowed = False

    def bind(symbol: Symbol, stmt: Statement) -> None:
        if symbol.name not in definitions:
            existing = symbols.get(symbol.name)
            definitions[symbol.name] = [existing.location] if existing else []
            first_text[symbol.name] = None if existing else stmt.text
        definitions[symbol.name].append(stmt.location)
        symbols.add(symbol)

    def bind_address(name: str, stmt: LabelDef, parent: Optional[str] = None) -> None:
        if pc > WORD_MASK:
            errors.append(ValueRangeError(
                f"label '{name}' at ${pc:X} is outside the 16-bit address space",
                location=stmt.location,
                source_line=stmt.text,
            ))
        bind(Symbol(name, pc, stmt.location, parent=parent), stmt)

    for stmt in statements:
        placements.append(Placement(stmt, pc, scope))

        if isinstance(stmt, Define):
            bind(Symbol(stmt.name, stmt.value, stmt.location, is_constant=True), stmt)

        elif isinstance(stmt, LabelDef):
            if not stmt.is_sub:
                bind_address(stmt.name, stmt)
                scope = stmt.name
            elif scope is None:
                errors.append(NoParentLabelError(stmt.name, stmt.location, stmt.text))
            else:
                bind_address(f"{scope}.{stmt.name}", stmt, parent=scope)

        elif isinstance(stmt, Instruction):
            pc += stmt.size
            if pc > ADDRESS_SPACE and not overflowed:
                overflowed = True
                errors.append(ValueRangeError(
                    f"program exceeds the 64K address space at ${pc - stmt.size:04X}",
                    location=stmt.location,
                    source_line=stmt.text,
                ))

    for name, locations in definitions.items():
        if len(locations) > 1:
            errors.append(DuplicateSymbolError(name, locations, first_text[name]))

    logger.debug(
        f"Pass 1: {len(placements)} statements, {len(symbols)} symbols, "
        f"${origin:04X}-${pc:04X}"
    )
    return Layout(symbols, placements, origin, pc, scope, errors)


# =============================================================================
# Pass 2: Reference Resolution
# =============================================================================

def resolve_references(layout: Layout) -> tuple[list[Placement], list[AssemblerError]]:
    """
    Pass 2a: replace every Reference operand with an Immediate.

    Instructions with unresolved references are left out of the result.
    Every use of an undefined name is gathered into one error per name,
    listing all the lines that use it.

    Returns:
        (resolved instruction placements, errors)
    """
    symbols = layout.symbols
    resolved: list[Placement] = []
    unresolved: dict[str, list[Instruction]] = {}

    for placement in layout.instructions:
        inst = placement.statement
        operands: list[Value] = []
        complete = True

        for operand in inst.operands:
            if isinstance(operand.variant, Reference):
                name = operand.variant.label
                symbol = symbols.resolve(name, placement.scope)
                if symbol is None:
                    unresolved.setdefault(name, []).append(inst)
                    complete = False
                    continue
                operand = operand.resolved(symbol.value)
            operands.append(operand)

        if complete:
            resolved.append(Placement(inst.with_operands(tuple(operands)),
                                      placement.address, placement.scope))

    errors: list[AssemblerError] = []
    for name, insts in unresolved.items():
        errors.append(UndefinedSymbolError(
            name,
            locations=[i.location for i in insts],
            source_line=insts[0].text,
            similar_symbols=symbols.find_similar(name),
        ))

    logger.debug(f"Pass 2: resolved {len(resolved)} instructions, "
                 f"{len(unresolved)} undefined symbols")
    return resolved, errors


# =============================================================================
# Pass 2: Encoding
# =============================================================================

def encode_instruction(inst: Instruction) -> bytes:
    """
    Pass 2b: encode one fully resolved instruction.

    Raises:
        ValueRangeError: Byte data that does not fit in 8 bits
        ValueError: If a Reference operand is still present
    """
    code = bytearray([inst.info.opcode.value])
    if not inst.operands:
        return bytes(code)

    code.append(mode_bits(inst.operands))
    for operand in inst.operands:
        variant = operand.variant
        if isinstance(variant, Register):
            code.append(variant.value)
        elif isinstance(variant, Immediate):
            value = variant.value & WORD_MASK
            if operand_size(inst.info, operand) == 1:
                if BYTE_MAX < value < NEGATIVE_BYTE_MIN:
                    raise ValueRangeError(
                        f"value ${value:04X} does not fit in a byte",
                        location=inst.location,
                        source_line=inst.text,
                    )
                code.append(value & 0xFF)
            else:
                code.append(value & 0xFF)
                code.append((value >> 8) & 0xFF)
        else:
            raise ValueError(f"unresolved operand '{operand}' in {inst}")
    return bytes(code)


@dataclass(frozen=True)
class EncodedProgram:
    """
    Output of a successful assembly.

    Attributes:
        code: Machine code, address ordered, starting at origin
        origin: Address of the first byte
        symbols: Final symbol values
        placements: Resolved instructions with their addresses
    """
    code: bytes
    origin: int
    symbols: dict[str, int]
    placements: tuple[Placement, ...] = ()

    @property
    def end(self) -> int:
        return self.origin + len(self.code)


# =============================================================================
# Code Generator
# =============================================================================

class CodeGenerator:
    """
    Generates R2 machine code from parsed statements.

    The code generator maintains:
    - Predefined symbols (from the caller, e.g. -D on the command line)
    - The last Layout and output code
    - Error collection for batch reporting

    Usage:
        codegen = CodeGenerator(origin=0x0100)
        program = codegen.generate(statements)
        code = codegen.get_code()
    """

    def __init__(self, origin: int = 0, max_errors: int = 100):
        """
        Initialize the code generator.

        Args:
            origin: Address of the first instruction (0..$FFFF)
            max_errors: Stop collecting after this many errors
        """
        if not 0 <= origin <= WORD_MASK:
            raise ValueRangeError(f"origin ${origin:X} is outside the 16-bit address space")
        self._origin = origin
        self._predefined: dict[str, int] = {}
        self._errors = ErrorCollector(max_errors)
        self._code = bytearray()
        self._layout: Optional[Layout] = None
        self._listing_lines: list[str] = []

    # =========================================================================
    # Public Interface
    # =========================================================================

    def define_symbol(self, name: str, value: int) -> None:
        """Pre-define a constant symbol."""
        self._predefined[name] = value & WORD_MASK

    def generate(self, statements: Sequence[Statement]) -> EncodedProgram:
        """
        Run both passes and encode the program.

        Args:
            statements: Parsed statements in source order

        Returns:
            The encoded program

        Raises:
            AssemblyFailedError: If any pass reported errors; no code is
                                 produced in that case
        """
        self._code.clear()
        self._listing_lines.clear()
        self._errors.clear()

        try:
            program = self._generate(statements)
        except TooManyErrors as e:
            raise AssemblyFailedError(self._errors.errors, self._errors.report()) from e

        logger.debug(f"Generated {len(program.code)} bytes at ${program.origin:04X}")
        return program

    def get_code(self) -> bytes:
        """Return the generated machine code."""
        return bytes(self._code)

    def get_origin(self) -> int:
        return self._origin

    def get_layout(self) -> Optional[Layout]:
        """Return the Pass 1 layout of the last generate() call."""
        return self._layout

    def get_symbols(self) -> dict[str, int]:
        """Return a dictionary of symbol names to values."""
        if self._layout is None:
            return dict(self._predefined)
        return self._layout.symbols.as_dict()

    def get_symbol_table(self) -> Optional[SymbolTable]:
        return self._layout.symbols if self._layout else None

    def has_errors(self) -> bool:
        """Check if any errors occurred during the last generate()."""
        return self._errors.has_errors()

    def get_error_report(self) -> str:
        return self._errors.report()

    def get_listing(self) -> str:
        """
        Get the assembly listing as a string.

        Returns:
            The listing showing addresses, generated bytes, and source lines.
        """
        lines = []
        lines.append("R2 Assembler Listing")
        lines.append("=" * 60)
        lines.append("")
        lines.append("Addr   Code                Line  Source")
        lines.append("-" * 60)
        lines.extend(self._listing_lines)
        lines.append("")
        lines.append("Symbol Table")
        lines.append("-" * 30)
        for name, value in sorted(self.get_symbols().items()):
            lines.append(f"{name:20s} = ${value:04X}")
        return "\n".join(lines)

    # =========================================================================
    # Passes
    # =========================================================================

    def _predefined_table(self) -> SymbolTable:
        table = SymbolTable()
        for name, value in self._predefined.items():
            table.add(Symbol(name, value, PREDEFINED, is_constant=True))
        return table

    def _generate(self, statements: Sequence[Statement]) -> EncodedProgram:
        layout = assign_addresses(statements, self._origin, symbols=self._predefined_table())
        self._layout = layout
        self._errors.extend(layout.errors)

        resolved, errors = resolve_references(layout)
        self._errors.extend(errors)

        encoded: list[bytes] = []
        for placement in resolved:
            try:
                encoded.append(encode_instruction(placement.statement))
            except ValueRangeError as e:
                self._errors.add(e)

        self._errors.raise_if_errors()

        for code in encoded:
            self._code.extend(code)

        if len(self._code) != layout.size:
            raise AssemblerError(
                f"internal error: emitted {len(self._code)} bytes but "
                f"pass 1 assigned {layout.size}"
            )

        self._build_listing(layout, encoded)
        return EncodedProgram(bytes(self._code), self._origin,
                              layout.symbols.as_dict(), tuple(resolved))

    # =========================================================================
    # Listing
    # =========================================================================

    def _build_listing(self, layout: Layout, encoded: list[bytes]) -> None:
        """
        Build listing lines in source order.

        With no errors, `encoded` holds one entry per instruction in the
        same order as the instruction placements.
        """
        codes = iter(encoded)
        for placement in layout.placements:
            stmt = placement.statement
            line = stmt.location.line
            text = stmt.text.strip()
            if isinstance(stmt, Instruction):
                hex_str = " ".join(f"{b:02X}" for b in next(codes))
                self._listing_lines.append(
                    f"${placement.address:04X}  {hex_str:18s}  {line:4d}  {text}"
                )
            elif isinstance(stmt, Define):
                value = f"={stmt.value:04X}"
                self._listing_lines.append(f"       {value:18s}  {line:4d}  {text}")
            else:
                self._listing_lines.append(
                    f"${placement.address:04X}  {'':18s}  {line:4d}  {text}"
                )
