# =============================================================================
# test_expressions.py - Expression Evaluator Unit Tests
# =============================================================================
# Tests for the assembler expression evaluator.
# Covers expression parsing and evaluation functionality.
#
# Test coverage includes:
#   - Arithmetic with 32-bit wraparound
#   - C operator precedence and associativity
#   - Division and modulo sign rules, division by zero
#   - Arithmetic and logical shifts
#   - Short-circuit logical operators and the ternary
#   - Symbol references, local scope and deferred results
#   - The location counter (@here), absolute and symbolic
# =============================================================================

import pytest

from possum_asm.assembler.expressions import (
    Deferred,
    ExpressionEvaluator,
    ExprNode,
    evaluate as evaluate_expr,
)
from possum_asm.assembler.parser import parse_expression
from possum_asm.assembler.symbols import SymbolTable
from possum_asm.errors import DivisionByZeroError, ScopeError


# =============================================================================
# Helper Functions
# =============================================================================

def evaluate(expr_str: str, symbols: dict = None, here=0, scope: str = None):
    """
    Helper to evaluate an expression string.

    Args:
        expr_str: The expression string to evaluate (e.g., "1+2", "$FF & $0F")
        symbols: Optional dict of qualified symbol names to values
        here: Location counter for @here
        scope: Global label owning bare local names

    Returns:
        The integer result, or Deferred
    """
    table = SymbolTable()
    for name, value in (symbols or {}).items():
        table.define(name, value)
    return evaluate_expr(parse_expression(expr_str), table, here, scope)


# =============================================================================
# Arithmetic Tests
# =============================================================================

class TestArithmetic:
    """Test basic arithmetic operations."""

    def test_addition(self):
        assert evaluate("1 + 2") == 3

    def test_subtraction_goes_negative(self):
        """Values are signed: no wrap to 16 bits."""
        assert evaluate("1 - 2") == -1

    def test_multiplication(self):
        assert evaluate("6 * 7") == 42

    def test_hex_and_binary_operands(self):
        assert evaluate("$10 + %101 + 0x10 + 0b1 + 0o10") == 16 + 5 + 16 + 1 + 8

    def test_character_literal(self):
        assert evaluate("'A' + 1") == 66

    def test_overflow_wraps(self):
        """INT32_MAX + 1 wraps to INT32_MIN."""
        assert evaluate("$7FFFFFFF + 1") == -0x80000000

    def test_unsigned_literal_wraps(self):
        """A literal above INT32_MAX is read as its 32-bit pattern."""
        assert evaluate("$FFFFFFFF") == -1
        assert evaluate("$FFFFFFFF + 1") == 0

    def test_multiplication_wraps(self):
        assert evaluate("$10000 * $10000") == 0

    def test_negate_min_wraps(self):
        assert evaluate("-($7FFFFFFF + 1)") == -0x80000000


class TestDivision:
    """Test / and % sign rules."""

    @pytest.mark.parametrize("expr,expected", [
        ("7 / 2", 3),
        ("-7 / 2", -3),
        ("7 / -2", -3),
        ("-7 / -2", 3),
        ("7 % 3", 1),
        ("-7 % 3", -1),
        ("7 % -3", 1),
        ("-7 % -3", -1),
    ])
    def test_truncates_toward_zero(self, expr, expected):
        assert evaluate(expr) == expected

    def test_min_divided_by_minus_one_wraps(self):
        assert evaluate("($7FFFFFFF + 1) / -1") == -0x80000000

    def test_division_by_zero(self):
        with pytest.raises(DivisionByZeroError):
            evaluate("1 / 0")

    def test_modulo_by_zero(self):
        with pytest.raises(DivisionByZeroError):
            evaluate("1 % (2 - 2)")

    def test_division_by_zero_with_pending_dividend(self):
        """A zero divisor is fatal even while the other operand is unknown."""
        with pytest.raises(DivisionByZeroError):
            evaluate("later / 0")


# =============================================================================
# Precedence Tests
# =============================================================================

class TestPrecedence:
    """Test C operator precedence and associativity."""

    @pytest.mark.parametrize("expr,expected", [
        ("1 + 2 * 3", 7),
        ("(1 + 2) * 3", 9),
        ("10 - 4 - 3", 3),
        ("100 / 10 / 5", 2),
        ("1 << 2 + 1", 8),
        ("1 | 2 ^ 3 & 4", 1 | (2 ^ (3 & 4))),
        ("1 + 1 == 2", 1),
        ("1 < 2 == 1", 1),
        ("3 & 1 == 1", 3 & (1 == 1)),
        ("1 || 0 && 0", 1),
        ("-2 * 3", -6),
        ("~0 + 1", 0),
        ("!0 + 1", 2),
    ])
    def test_precedence(self, expr, expected):
        assert evaluate(expr) == expected

    def test_ternary_is_lowest(self):
        assert evaluate("1 + 1 ? 10 : 20") == 10

    def test_ternary_is_right_associative(self):
        assert evaluate("0 ? 1 : 0 ? 2 : 3") == 3
        assert evaluate("0 ? 1 : 1 ? 2 : 3") == 2


# =============================================================================
# Bitwise and Shift Tests
# =============================================================================

class TestBitwise:
    """Test bitwise and shift operators."""

    def test_and_or_xor(self):
        assert evaluate("$FF & $0F") == 0x0F
        assert evaluate("$F0 | $0F") == 0xFF
        assert evaluate("$FF ^ $0F") == 0xF0

    def test_complement(self):
        assert evaluate("~0") == -1
        assert evaluate("~$FF & $FFFF") == 0xFF00

    def test_arithmetic_right_shift_keeps_sign(self):
        assert evaluate("-16 >> 2") == -4
        assert evaluate("-1 >> 1") == -1

    def test_logical_right_shift(self):
        assert evaluate("-16 :> 28") == 0xF
        assert evaluate("-1 :> 1") == 0x7FFFFFFF

    def test_logical_left_shift(self):
        assert evaluate("1 <: 4") == 16
        assert evaluate("1 <: 31") == -0x80000000

    def test_shift_count_modulo_32(self):
        assert evaluate("1 << 33") == 2
        assert evaluate("8 >> 35") == 1

    def test_left_shift_wraps(self):
        assert evaluate("$40000000 << 1") == -0x80000000


# =============================================================================
# Logical Operator Tests
# =============================================================================

class TestLogical:
    """Test comparison and logical operators."""

    @pytest.mark.parametrize("expr,expected", [
        ("1 == 1", 1), ("1 != 1", 0),
        ("-1 < 0", 1), ("0 <= 0", 1),
        ("2 > 3", 0), ("3 >= 3", 1),
        ("!5", 0), ("!0", 1),
        ("2 && 3", 1), ("0 || 7", 1), ("0 || 0", 0),
    ])
    def test_boolean_results(self, expr, expected):
        assert evaluate(expr) == expected

    def test_and_short_circuits_pending_right(self):
        """0 && x is 0 without looking at x."""
        assert evaluate("0 && later") == 0

    def test_or_short_circuits_pending_right(self):
        assert evaluate("1 || later") == 1

    def test_and_short_circuits_division_by_zero(self):
        assert evaluate("0 && 1 / 0") == 0

    def test_ternary_skips_unselected_branch(self):
        assert evaluate("1 ? 5 : later") == 5
        assert evaluate("0 ? 1 / 0 : 6") == 6

    def test_ternary_defers_on_condition(self):
        assert evaluate("later ? 1 : 2") == Deferred(frozenset({"later"}))


# =============================================================================
# Symbol Tests
# =============================================================================

class TestSymbols:
    """Test symbol references."""

    def test_global_symbol(self):
        assert evaluate("buffer + 2", {"buffer": 0x1000}) == 0x1002

    def test_local_symbol_uses_scope(self):
        assert evaluate(".loop", {"main.loop": 0x8003}, scope="main") == 0x8003

    def test_direct_symbol_ignores_scope(self):
        assert evaluate("main.loop", {"main.loop": 7}, scope="other") == 7

    def test_local_symbol_without_scope(self):
        with pytest.raises(ScopeError):
            evaluate(".loop")

    def test_undefined_symbol_defers(self):
        result = evaluate("missing + 1")
        assert result == Deferred(frozenset({"missing"}))

    def test_deferred_collects_both_operands(self):
        result = evaluate("a + .b", scope="main")
        assert result == Deferred(frozenset({"a", "main.b"}))

    def test_pending_thunk_defers(self):
        """A name bound to a pending computation defers like an unknown name."""
        table = SymbolTable()
        table.define("later", object())
        result = evaluate_expr(ExprNode.symbol("later"), table)
        assert isinstance(result, Deferred)

    def test_evaluation_is_repeatable(self):
        """The evaluator keeps no state between calls."""
        table = SymbolTable()
        evaluator = ExpressionEvaluator(table)
        expr = parse_expression("x * 2")
        assert isinstance(evaluator.evaluate(expr), Deferred)
        table.define("x", 21)
        assert evaluator.evaluate(expr) == 42


# =============================================================================
# Location Counter Tests
# =============================================================================

class TestHere:
    """Test @here."""

    def test_absolute_here(self):
        assert evaluate("@here + 2", here=0x8000) == 0x8002

    def test_symbolic_here_resolved(self):
        here = ExprNode.binary("+", ExprNode.symbol("@org#1"), ExprNode.number(3))
        assert evaluate("@here", {"@org#1": 0x9000}, here=here) == 0x9003

    def test_symbolic_here_pending(self):
        here = ExprNode.symbol("@org#1")
        assert evaluate("@here - 1", here=here) == Deferred(frozenset({"@org#1"}))


# =============================================================================
# Rendering Tests
# =============================================================================

class TestRendering:
    """Test rendering expressions back to text for diagnostics."""

    def test_binary(self):
        assert str(parse_expression("a + 1")) == "a + 1"

    def test_nested_gets_parentheses(self):
        assert str(parse_expression("(a + 1) * 2")) == "(a + 1) * 2"

    def test_here_and_unary(self):
        assert str(parse_expression("-@here")) == "-@here"

    def test_ternary(self):
        assert str(parse_expression("c ? 1 : 2")) == "c ? 1 : 2"
