# =============================================================================
# test_directives.py - Directive Tests
# =============================================================================
# End-to-end tests for every @ directive except @struct and @enum.
#
# Test coverage includes:
#   - @org, absolute and forward referenced
#   - @def / @symbol
#   - @db, @dw and @ds, including forward references and range checks
#   - @echo, @assert and @die
#   - Argument count and type errors
# =============================================================================

import pytest

from possum_asm.assembler import Assembler
from possum_asm.errors import (
    AssertionFailedError,
    DirectiveError,
    ExplicitAbortError,
    TypeMismatchError,
    UnresolvedSymbolError,
    ValueRangeError,
)


# =============================================================================
# Helper Functions
# =============================================================================

def assemble(source: str) -> Assembler:
    """Assemble source and return the assembler holding the result."""
    asm = Assembler()
    asm.assemble_string(source, "test.asm")
    return asm


def code(source: str) -> bytes:
    return assemble(source).get_code()


# =============================================================================
# @org Tests
# =============================================================================

class TestOrg:
    """Test the @org directive."""

    def test_sets_label_addresses(self):
        asm = assemble("@org $8000\nstart: @dw start")
        assert asm.get_code() == b"\x00\x80"
        assert asm.get_symbols()["start"] == 0x8000

    def test_does_not_pad(self):
        assert code("@db 1\n@org $100\n@db 2") == b"\x01\x02"

    def test_forward_referenced_origin(self):
        asm = assemble("""
            @org base
        start:
            @dw start
            @def base, $9000
        """)
        assert asm.get_code() == b"\x00\x90"
        assert asm.get_symbols()["start"] == 0x9000

    def test_labels_count_on_from_forward_origin(self):
        asm = assemble("""
            @org base
            @db 1, 2, 3
        after:
            @def base, $4000
        """)
        assert asm.get_symbols()["after"] == 0x4003

    @pytest.mark.parametrize("address", ["$10000", "-1"])
    def test_out_of_range(self, address):
        with pytest.raises(ValueRangeError):
            assemble(f"@org {address}")

    def test_forward_origin_out_of_range(self):
        with pytest.raises(ValueRangeError):
            assemble("@org base\n@def base, $12345")

    def test_overflow_past_top(self):
        with pytest.raises(ValueRangeError):
            assemble("@org $FFFF\n@dw 1")

    def test_overflow_past_top_with_forward_origin(self):
        with pytest.raises(ValueRangeError) as later:
            assemble("@org top\n@db 1, 2, 3\n@def top, $FFFF")
        with pytest.raises(ValueRangeError) as first:
            assemble("@def top, $FFFF\n@org top\n@db 1, 2, 3")
        assert later.value.message == first.value.message

    def test_forward_origin_fills_to_top(self):
        assert code("@org top\n@db 1, 2\n@def top, $FFFE") == b"\x01\x02"


# =============================================================================
# @def Tests
# =============================================================================

class TestDef:
    """Test @def and its alias @symbol."""

    def test_define(self):
        assert assemble("@def SIZE, 4 * 4").get_symbols()["SIZE"] == 16

    def test_forward_reference(self):
        asm = assemble("@def A, B + 1\n@def B, C * 2\n@def C, 5")
        assert asm.get_symbols() == {"A": 11, "B": 10, "C": 5}

    def test_symbol_alias(self):
        assert assemble("@symbol X, 3").get_symbols()["X"] == 3

    def test_requires_name(self):
        with pytest.raises(DirectiveError):
            assemble("@def 5, 5")

    def test_requires_two_arguments(self):
        with pytest.raises(DirectiveError) as exc_info:
            assemble("@def A")
        assert "expects 2 argument(s), got 1" in str(exc_info.value)

    def test_string_value(self):
        with pytest.raises(TypeMismatchError):
            assemble('@def A, "x"')


# =============================================================================
# Data Directive Tests
# =============================================================================

class TestDb:
    """Test @db."""

    def test_values_and_strings(self):
        assert code('@db 1, "AB", -1') == b"\x01AB\xff"

    def test_forward_reference(self):
        assert code("@db end\n@db 0\nend:") == b"\x02\x00"

    def test_negative_offset_to_later_label(self):
        asm = assemble("@db @here - LATER\n@dw 0\nLATER: @db 9")
        assert asm.get_code() == b"\xfd\x00\x00\x09"

    def test_out_of_range(self):
        with pytest.raises(ValueRangeError):
            assemble("@db 256")

    def test_forward_reference_out_of_range(self):
        with pytest.raises(ValueRangeError):
            assemble("@db big\n@def big, 300")

    def test_minimum_byte(self):
        assert code("@db -128") == b"\x80"

    def test_requires_argument(self):
        with pytest.raises(DirectiveError):
            assemble("@db")


class TestDw:
    """Test @dw."""

    def test_little_endian(self):
        assert code("@dw $1234, -1") == b"\x34\x12\xff\xff"

    def test_forward_reference(self):
        assert code("@dw end\nend:") == b"\x02\x00"

    def test_here_is_item_address(self):
        """Each item sees the address of its own first byte."""
        assert code("@org $10\n@dw @here, @here") == b"\x10\x00\x12\x00"

    def test_out_of_range(self):
        with pytest.raises(ValueRangeError):
            assemble("@dw 70000")

    def test_string_rejected(self):
        with pytest.raises(TypeMismatchError):
            assemble('@dw "ab"')


class TestDs:
    """Test @ds."""

    def test_default_fill(self):
        assert code("@ds 3") == b"\x00\x00\x00"

    def test_fill(self):
        assert code("@ds 2, $AA") == b"\xaa\xaa"

    def test_zero_size(self):
        assert code("@ds 0\n@db 1") == b"\x01"

    def test_forward_fill(self):
        assert code("@ds 2, f\n@def f, 7") == b"\x07\x07"

    def test_forward_size(self):
        asm = assemble("@db 1\n@ds n, $EE\nafter: @db 2\n@def n, 3")
        assert asm.get_code() == b"\x01\xee\xee\xee\x02"
        assert asm.get_symbols()["after"] == 4

    def test_forward_size_and_fill(self):
        assert code("@ds n, f\n@def n, 2\n@def f, 9") == b"\x09\x09"

    def test_negative_size(self):
        with pytest.raises(ValueRangeError):
            assemble("@ds -1")

    def test_forward_negative_size(self):
        with pytest.raises(ValueRangeError):
            assemble("@ds n\n@def n, -2")

    def test_forward_size_past_top(self):
        with pytest.raises(ValueRangeError):
            assemble("@org $FFF0\n@ds n\n@def n, $20")

    def test_bytes_after_forward_size_past_top(self):
        with pytest.raises(ValueRangeError):
            assemble("@org $FFF0\n@ds n\n@db 1\n@def n, $10")

    def test_forward_size_fills_to_top(self):
        assert code("@org $FFF0\n@ds n\n@def n, $10") == bytes(16)

    def test_fill_out_of_range(self):
        with pytest.raises(ValueRangeError):
            assemble("@ds 1, 300")

    def test_too_many_arguments(self):
        with pytest.raises(DirectiveError):
            assemble("@ds 1, 2, 3")


# =============================================================================
# Diagnostic Directive Tests
# =============================================================================

class TestEcho:
    """Test @echo."""

    def test_string(self):
        assert assemble('@echo "hello"').get_messages() == ["hello"]

    def test_value(self):
        assert assemble("@echo 6 * 7").get_messages() == ["42"]

    def test_forward_value_printed_when_resolved(self):
        asm = assemble('@echo later\n@echo "now"\n@def later, 1')
        assert asm.get_messages() == ["now", "1"]

    def test_unresolved_echo(self):
        with pytest.raises(UnresolvedSymbolError):
            assemble("@echo ghost")


class TestAssert:
    """Test @assert."""

    def test_passes(self):
        assemble("@assert 1 == 1")

    def test_fails_with_default_message(self):
        with pytest.raises(AssertionFailedError) as exc_info:
            assemble("@assert 1 == 2")
        assert exc_info.value.message == "assertion failed: 1 == 2"

    def test_fails_with_message(self):
        with pytest.raises(AssertionFailedError) as exc_info:
            assemble('@assert 0, "too big"')
        assert exc_info.value.message == "too big"

    def test_forward_reference(self):
        assemble("@assert end == 4\n@ds 4\nend:")

    def test_forward_reference_fails(self):
        with pytest.raises(AssertionFailedError):
            assemble("@assert end == 3\n@ds 4\nend:")

    def test_first_failure_in_source_order(self):
        with pytest.raises(AssertionFailedError) as exc_info:
            assemble('@assert later == 1, "first"\n@assert 0, "second"\n@def later, 2')
        assert exc_info.value.message == "first"

    def test_message_must_be_string(self):
        with pytest.raises(TypeMismatchError):
            assemble("@assert 1, 2")


class TestDie:
    """Test @die."""

    def test_string(self):
        with pytest.raises(ExplicitAbortError) as exc_info:
            assemble('@die "stop here"')
        assert exc_info.value.message == "stop here"

    def test_value(self):
        with pytest.raises(ExplicitAbortError) as exc_info:
            assemble("@die 1 + 2")
        assert exc_info.value.message == "3"

    def test_unresolved_argument_reported_as_written(self):
        with pytest.raises(ExplicitAbortError) as exc_info:
            assemble("@die later + 1\n@def later, 1")
        assert exc_info.value.message == "later + 1"

    def test_aborts_before_other_errors(self):
        with pytest.raises(ExplicitAbortError):
            assemble('@db 300\n@dw ghost\n@die "now"')


class TestUnknownDirective:
    """Test directives the assembler does not know."""

    def test_unknown(self):
        with pytest.raises(DirectiveError) as exc_info:
            assemble("@include \"x.asm\"")
        assert "@include" in str(exc_info.value)
