# =============================================================================
# test_codegen.py - Code Generator Unit Tests
# =============================================================================
# Tests for the two passes that turn statements into machine code.
#
# Test coverage includes:
#   - Pass 1: addresses, labels, sub-label scoping, constants
#   - Pass 1: duplicate and parentless symbols
#   - Pass 2: reference resolution and undefined symbols
#   - Instruction encoding and widths
#   - CodeGenerator error aggregation and limits
# =============================================================================

import pytest

from r2asm.assembler.codegen import (
    PREDEFINED,
    CodeGenerator,
    Symbol,
    SymbolTable,
    assign_addresses,
    encode_instruction,
    resolve_references,
)
from r2asm.assembler.operands import Immediate, Value
from r2asm.assembler.parser import parse_line, parse_source
from r2asm.errors import (
    AssemblyFailedError,
    DuplicateSymbolError,
    NoParentLabelError,
    UndefinedSymbolError,
    ValueRangeError,
)


COUNTDOWN = """\
main:
    mov r0, 10
.loop:
    add r0, r0, -1
    jnz r0, .loop
    hlt
"""


def inst(line: str):
    """Helper to parse a single instruction line."""
    return parse_line(line.replace(",", " ").split())


def layout_of(source: str, **kwargs):
    """Helper to run Pass 1 over source text."""
    return assign_addresses(parse_source(source), **kwargs)


def generate(source: str, origin: int = 0) -> bytes:
    """Helper to run both passes and return the code."""
    return CodeGenerator(origin=origin).generate(parse_source(source)).code


# =============================================================================
# Pass 1: Address Assignment
# =============================================================================

class TestAssignAddresses:
    """Test address assignment and symbol binding."""

    def test_label_is_sum_of_prior_widths(self):
        """A label's address is the origin plus every earlier width."""
        layout = layout_of("hlt\nmov r0, 1\nadd r0, r0, 0x5\nend:\n")
        assert layout.symbols.get("end").value == 1 + 5 + 6
        assert layout.size == 12

    def test_origin(self):
        layout = layout_of("hlt\nhere:\n", origin=0x100)
        assert layout.symbols.get("here").value == 0x101
        assert (layout.origin, layout.end) == (0x100, 0x101)

    def test_placements_in_source_order(self):
        layout = layout_of(COUNTDOWN)
        assert [p.address for p in layout.placements] == [0, 0, 5, 5, 11, 16]
        assert layout.end == 17
        assert len(layout.instructions) == 4

    def test_sublabel_scoped_under_label(self):
        """foo: then .bar: binds foo.bar."""
        layout = layout_of("foo:\nhlt\n.bar:\nhlt\n")
        symbol = layout.symbols.get("foo.bar")
        assert symbol.value == 1
        assert symbol.parent == "foo"
        assert "bar" not in layout.symbols

    def test_same_sublabel_in_two_scopes(self):
        layout = layout_of("a:\n.loop:\nhlt\nb:\n.loop:\nhlt\n")
        assert layout.symbols.get("a.loop").value == 0
        assert layout.symbols.get("b.loop").value == 1
        assert layout.errors == []

    def test_scope_carried_in(self):
        """A caller-supplied scope parents leading sub-labels."""
        layout = layout_of(".x:\nhlt\n", scope="main")
        assert layout.symbols.get("main.x").value == 0
        assert layout.scope == "main"

    def test_scope_after_last_label(self):
        assert layout_of("a:\nb:\n").scope == "b"

    def test_define(self):
        layout = layout_of("%define SIZE 0x10\n")
        symbol = layout.symbols.get("SIZE")
        assert symbol.value == 16
        assert symbol.is_constant

    def test_define_takes_no_space(self):
        layout = layout_of("%define SIZE 0x10\nstart:\n")
        assert layout.symbols.get("start").value == 0

    def test_labels_are_case_sensitive(self):
        layout = layout_of("Loop:\nloop:\n")
        assert layout.errors == []
        assert len(layout.symbols) == 2

    def test_statements_not_modified(self):
        statements = parse_source("jmp target\ntarget:\n")
        before = list(statements)
        assign_addresses(statements)
        assert statements == before


class TestPassOneErrors:
    """Test symbol errors detected while assigning addresses."""

    def test_sublabel_without_parent(self):
        layout = layout_of(".bar:\nhlt\n")
        assert len(layout.errors) == 1
        err = layout.errors[0]
        assert isinstance(err, NoParentLabelError)
        assert err.symbol == "bar"
        assert err.location.line == 1

    def test_duplicate_label(self):
        """Every definition site is reported and the first binding kept."""
        layout = layout_of("a:\nhlt\na:\n")
        assert len(layout.errors) == 1
        err = layout.errors[0]
        assert isinstance(err, DuplicateSymbolError)
        assert err.symbol == "a"
        assert [loc.line for loc in err.locations] == [1, 3]
        assert layout.symbols.get("a").value == 0

    def test_duplicate_reported_once_per_name(self):
        layout = layout_of("a:\na:\na:\n")
        assert len(layout.errors) == 1
        assert [loc.line for loc in layout.errors[0].locations] == [1, 2, 3]

    def test_define_clashes_with_label(self):
        layout = layout_of("%define X 1\nX:\n")
        assert isinstance(layout.errors[0], DuplicateSymbolError)

    def test_duplicate_sublabel(self):
        layout = layout_of("a:\n.x:\n.x:\n")
        assert layout.errors[0].symbol == "a.x"

    def test_clash_with_predefined(self):
        table = SymbolTable()
        table.add(Symbol("X", 7, PREDEFINED, is_constant=True))
        layout = layout_of("%define X 2\n", symbols=table)
        err = layout.errors[0]
        assert err.locations[0] == PREDEFINED
        assert err.locations[1].line == 1
        assert table.get("X").value == 7

    def test_address_space_overflow(self):
        layout = layout_of("jmp 0\njmp 0\n", origin=0xFFFC)
        assert len(layout.errors) == 1
        assert isinstance(layout.errors[0], ValueRangeError)
        assert layout.errors[0].location.line == 2

    def test_exactly_filling_address_space(self):
        assert layout_of("jmp 0\n", origin=0xFFFC).errors == []

    def test_label_past_end_of_memory(self):
        """A label just after a program that fills memory is out of range."""
        layout = layout_of("main:\njmp end\nend:\n.tail:\n", origin=0xFFFC)
        assert len(layout.errors) == 2
        assert all(isinstance(e, ValueRangeError) for e in layout.errors)
        assert [e.location.line for e in layout.errors] == [3, 4]

    def test_duplicate_shows_first_definition_text(self):
        layout = layout_of("a: ; first\nhlt\na: ; second\n")
        err = layout.errors[0]
        assert err.location.line == 1
        assert err.source_line == "a: ; first"

    def test_duplicate_of_predefined_has_no_source_text(self):
        table = SymbolTable()
        table.add(Symbol("X", 7, PREDEFINED, is_constant=True))
        err = layout_of("%define X 2\n", symbols=table).errors[0]
        assert err.source_line is None
        assert str(err).startswith("<predefined>:0: error:")


# =============================================================================
# Symbol Table
# =============================================================================

class TestSymbolTable:
    """Test symbol lookup rules."""

    @pytest.mark.parametrize("name, scope, expected", [
        ("loop", "main", ["loop", "main.loop"]),
        ("loop", None, ["loop"]),
        (".loop", "main", ["main.loop"]),
        (".loop", None, []),
    ])
    def test_candidates(self, name, scope, expected):
        assert SymbolTable.candidates(name, scope) == expected

    def test_first_binding_wins(self):
        table = SymbolTable()
        assert table.add(Symbol("a", 1, PREDEFINED))
        assert not table.add(Symbol("a", 2, PREDEFINED))
        assert table.as_dict() == {"a": 1}

    def test_find_similar(self):
        table = SymbolTable()
        table.add(Symbol("loop", 0, PREDEFINED))
        table.add(Symbol("main.next", 4, PREDEFINED))
        table.add(Symbol("unrelated", 8, PREDEFINED))
        assert table.find_similar("lop") == ["loop"]
        assert table.find_similar(".nxt") == ["main.next"]


# =============================================================================
# Pass 2: Reference Resolution
# =============================================================================

class TestResolveReferences:
    """Test replacing references with values."""

    def test_forward_reference(self):
        """jmp target where target is defined later."""
        resolved, errors = resolve_references(layout_of("jmp target\nhlt\ntarget:\n"))
        assert errors == []
        assert resolved[0].statement.operands == (Value(Immediate(5)),)

    def test_define_reference(self):
        """%define SIZE 0x10 makes SIZE resolve to 16."""
        resolved, _ = resolve_references(layout_of("%define SIZE 0x10\nmov r0, SIZE\n"))
        assert resolved[0].statement.operands[1] == Value(Immediate(16))

    def test_addressed_reference_stays_addressed(self):
        resolved, _ = resolve_references(layout_of("buf:\nmov r0, [buf]\n"))
        assert resolved[0].statement.operands[1] == Value(Immediate(0), addressed=True)

    def test_sublabel_reference(self):
        resolved, _ = resolve_references(layout_of("foo:\nhlt\n.bar:\njmp .bar\n"))
        assert resolved[1].statement.operands[0].variant.value == 1

    def test_plain_name_falls_back_to_scope(self):
        resolved, errors = resolve_references(layout_of("main:\n.loop:\njmp loop\n"))
        assert errors == []
        assert resolved[0].statement.operands[0].variant.value == 0

    def test_plain_name_prefers_global(self):
        source = "loop:\nhlt\nmain:\n.loop:\njmp loop\njmp .loop\n"
        resolved, _ = resolve_references(layout_of(source))
        assert resolved[1].statement.operands[0].variant.value == 0
        assert resolved[2].statement.operands[0].variant.value == 1

    def test_sublabel_from_other_scope(self):
        _, errors = resolve_references(layout_of("foo:\n.bar:\nother:\njmp .bar\n"))
        assert len(errors) == 1
        assert errors[0].symbol == ".bar"

    def test_qualified_name(self):
        _, errors = resolve_references(layout_of("foo:\n.bar:\nother:\njmp foo.bar\n"))
        assert errors == []

    def test_undefined_grouped_by_name(self):
        """Every use of a missing name is reported in one error."""
        _, errors = resolve_references(layout_of("jmp nowhere\njmp nowhere\njmp missing\n"))
        assert len(errors) == 2
        assert all(isinstance(e, UndefinedSymbolError) for e in errors)
        assert errors[0].symbol == "nowhere"
        assert [loc.line for loc in errors[0].locations] == [1, 2]
        assert "lines: 1, 2" in str(errors[0])

    def test_undefined_suggests_similar(self):
        _, errors = resolve_references(layout_of("loop:\njmp lop\n"))
        assert errors[0].similar_symbols == ["loop"]
        assert "did you mean 'loop'?" in str(errors[0])

    def test_original_statements_untouched(self):
        layout = layout_of("target:\njmp target\n")
        resolve_references(layout)
        assert layout.instructions[0].statement.operands[0].is_reference


# =============================================================================
# Encoding
# =============================================================================

class TestEncodeInstruction:
    """Test byte encoding of resolved instructions."""

    @pytest.mark.parametrize("line, expected", [
        ("hlt", [0x00]),
        ("reti", [0x01]),
        ("add r0, r0, 0x5", [0x07, 0x10, 0x00, 0x00, 0x05, 0x00]),
        ("and r1, r1, 0xFF00", [0x08, 0x10, 0x01, 0x01, 0x00, 0xFF]),
        ("mov r0, r1", [0x05, 0x00, 0x00, 0x01]),
        ("mov r0, [r1]", [0x05, 0x08, 0x00, 0x01]),
        ("mov [r1], r0", [0x05, 0x02, 0x01, 0x00]),
        ("mov r0, 0x1234", [0x05, 0x04, 0x00, 0x34, 0x12]),
        ("jmp 0x0010", [0x02, 0x01, 0x10, 0x00]),
        ("jnz r0, 5", [0x06, 0x04, 0x00, 0x05, 0x00]),
        ("lvcd [0x10]", [0x03, 0x03, 0x10, 0x00]),
        ("lkbd r1", [0x04, 0x00, 0x01]),
        ("add r1, [r0], [0x10]", [0x07, 0x38, 0x01, 0x00, 0x10, 0x00]),
        ("mov byte [r1], 0x41", [0x09, 0x06, 0x01, 0x41]),
        ("mov byte [0x8000], r0", [0x09, 0x03, 0x00, 0x80, 0x00]),
        ("mov byte r0, -1", [0x09, 0x04, 0x00, 0xFF]),
        ("mov byte r0, -128", [0x09, 0x04, 0x00, 0x80]),
    ])
    def test_encoding(self, line, expected):
        instruction = inst(line)
        code = encode_instruction(instruction)
        assert code == bytes(expected)
        assert len(code) == instruction.size

    def test_hlt_is_one_byte(self):
        assert len(encode_instruction(inst("hlt"))) == 1

    @pytest.mark.parametrize("line, size", [
        ("mov r0, 1", 5),
        ("mov r0, [1]", 5),
        ("mov byte r0, 1", 4),
        ("mov byte r0, [1]", 5),
    ])
    def test_brackets_widen_only_byte_data(self, line, size):
        assert inst(line).size == size

    @pytest.mark.parametrize("line", ["mov byte r0, 0x100", "mov byte r0, -129"])
    def test_byte_out_of_range(self, line):
        with pytest.raises(ValueRangeError):
            encode_instruction(inst(line))

    def test_unresolved_reference(self):
        with pytest.raises(ValueError):
            encode_instruction(inst("jmp somewhere"))


# =============================================================================
# Code Generator
# =============================================================================

class TestCodeGenerator:
    """Test the full two-pass generator."""

    def test_countdown(self):
        code = generate(COUNTDOWN)
        assert code == bytes([
            0x05, 0x04, 0x00, 0x0A, 0x00,
            0x07, 0x10, 0x00, 0x00, 0xFF, 0xFF,
            0x06, 0x04, 0x00, 0x05, 0x00,
            0x00,
        ])

    def test_forward_jump(self):
        assert generate("jmp target\nhlt\ntarget:\nhlt\n") == bytes(
            [0x02, 0x01, 0x05, 0x00, 0x00, 0x00]
        )

    def test_origin_shifts_labels(self):
        assert generate("start:\njmp start\n", origin=0x100) == bytes(
            [0x02, 0x01, 0x00, 0x01]
        )

    def test_length_matches_layout(self):
        codegen = CodeGenerator()
        program = codegen.generate(parse_source(COUNTDOWN))
        assert len(program.code) == codegen.get_layout().size
        assert program.end == 17

    def test_idempotent(self):
        statements = parse_source(COUNTDOWN)
        codegen = CodeGenerator()
        first = codegen.generate(statements)
        second = codegen.generate(statements)
        assert first.code == second.code
        assert first.symbols == second.symbols

    def test_predefined_symbol(self):
        codegen = CodeGenerator()
        codegen.define_symbol("PORT", 0x20)
        program = codegen.generate(parse_source("lvcd [PORT]\n"))
        assert program.code == bytes([0x03, 0x03, 0x20, 0x00])
        assert program.symbols["PORT"] == 0x20

    def test_errors_from_both_passes_reported_together(self):
        codegen = CodeGenerator()
        with pytest.raises(AssemblyFailedError) as exc_info:
            codegen.generate(parse_source("x:\nx:\njmp nowhere\n.y:\n"))
        kinds = [type(e) for e in exc_info.value.errors]
        assert DuplicateSymbolError in kinds
        assert UndefinedSymbolError in kinds
        assert len(kinds) == 2
        assert codegen.has_errors()
        assert codegen.get_code() == b""

    def test_byte_range_error_collected(self):
        with pytest.raises(AssemblyFailedError) as exc_info:
            generate("mov byte r0, 0x100\nmov byte r1, 0x200\n")
        assert len(exc_info.value.errors) == 2
        assert all(isinstance(e, ValueRangeError) for e in exc_info.value.errors)

    def test_error_limit(self):
        codegen = CodeGenerator(max_errors=2)
        with pytest.raises(AssemblyFailedError) as exc_info:
            codegen.generate(parse_source("jmp a\njmp b\njmp c\n"))
        assert len(exc_info.value.errors) == 2

    @pytest.mark.parametrize("origin", [-1, 0x10000])
    def test_bad_origin(self, origin):
        with pytest.raises(ValueRangeError):
            CodeGenerator(origin=origin)

    def test_label_past_end_fails_assembly(self):
        """A jump to 0x10000 is rejected instead of wrapping to 0."""
        with pytest.raises(AssemblyFailedError) as exc_info:
            generate("jmp end\nend:\n", origin=0xFFFC)
        assert isinstance(exc_info.value.errors[0], ValueRangeError)

    def test_overflow_fails_assembly(self):
        with pytest.raises(AssemblyFailedError) as exc_info:
            generate("jmp 0\n", origin=0xFFFE)
        assert isinstance(exc_info.value.errors[0], ValueRangeError)

    def test_listing(self):
        codegen = CodeGenerator()
        codegen.generate(parse_source("start:\n    hlt\n"))
        listing = codegen.get_listing()
        assert "$0000  00" in listing
        assert "hlt" in listing
        assert f"{'start':20s} = $0000" in listing
