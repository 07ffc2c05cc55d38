# =============================================================================
# test_resolver.py - Deferred Evaluation Resolver Tests
# =============================================================================
# Test coverage includes:
#   - Sweeps in declaration order
#   - Chains of forward references of any depth
#   - Stalling on cycles and undefined names
#   - Errors raised by callbacks
# =============================================================================

import pytest

from possum_asm.assembler.expressions import ExprNode
from possum_asm.assembler.parser import parse_expression
from possum_asm.assembler.resolver import Resolver
from possum_asm.assembler.symbols import SymbolTable
from possum_asm.errors import DivisionByZeroError, ValueRangeError


# =============================================================================
# Helper Functions
# =============================================================================

def make_resolver():
    """Return (symbols, resolver, collected errors)."""
    symbols = SymbolTable()
    errors = []
    return symbols, Resolver(symbols, on_error=errors.append), errors


def define_pending(symbols, resolver, name, expr_str, scope=None):
    """Bind a name to an expression through the resolver."""
    thunk = resolver.defer(
        parse_expression(expr_str),
        0,
        scope,
        lambda value: symbols.publish(name, value),
        symbol=name,
    )
    symbols.define(name, thunk)
    return thunk


# =============================================================================
# Resolution Tests
# =============================================================================

class TestResolution:
    """Test driving thunks to a fixed point."""

    def test_single_thunk(self):
        symbols, resolver, _ = make_resolver()
        define_pending(symbols, resolver, "a", "2 + 3")
        assert resolver.run()
        assert symbols.lookup("a") == 5
        assert len(resolver) == 0

    def test_chain_in_declaration_order(self):
        symbols, resolver, _ = make_resolver()
        define_pending(symbols, resolver, "a", "b + 1")
        define_pending(symbols, resolver, "b", "c + 1")
        symbols.define("c", 10)
        assert resolver.run()
        assert symbols.lookup("a") == 12

    def test_reverse_chain_needs_one_sweep_per_link(self):
        symbols, resolver, _ = make_resolver()
        define_pending(symbols, resolver, "a", "b")
        define_pending(symbols, resolver, "b", "c")
        define_pending(symbols, resolver, "c", "d")
        symbols.define("d", 1)
        assert resolver.run()
        assert resolver.sweep_count == 3
        assert symbols.lookup("a") == 1

    def test_deep_chain_has_no_iteration_cap(self):
        symbols, resolver, _ = make_resolver()
        depth = 500
        for i in range(depth):
            define_pending(symbols, resolver, f"s{i}", f"s{i + 1} + 1")
        symbols.define(f"s{depth}", 0)
        assert resolver.run()
        assert symbols.lookup("s0") == depth

    def test_callbacks_run_once(self):
        symbols, resolver, _ = make_resolver()
        calls = []
        resolver.defer(ExprNode.symbol("x"), 0, None, calls.append)
        resolver.run()
        symbols.define("x", 4)
        resolver.run()
        resolver.run()
        assert calls == [4]

    def test_here_is_captured(self):
        symbols, resolver, _ = make_resolver()
        calls = []
        resolver.defer(parse_expression("@here + x"), 0x8000, None, calls.append)
        symbols.define("x", 1)
        resolver.run()
        assert calls == [0x8001]

    def test_scope_is_captured(self):
        symbols, resolver, _ = make_resolver()
        calls = []
        resolver.defer(parse_expression(".x"), 0, "main", calls.append)
        symbols.define("main.x", 9)
        resolver.run()
        assert calls == [9]

    def test_thunk_deferred_by_callback_runs_later(self):
        symbols, resolver, _ = make_resolver()
        calls = []

        def first(value):
            calls.append(("first", value))
            resolver.defer(ExprNode.number(value * 2), 0, None,
                           lambda v: calls.append(("second", v)))

        resolver.defer(ExprNode.symbol("x"), 0, None, first)
        symbols.define("x", 3)
        assert resolver.run()
        assert calls == [("first", 3), ("second", 6)]


# =============================================================================
# Stall Tests
# =============================================================================

class TestStall:
    """Test non-convergence."""

    def test_cycle_stalls(self):
        symbols, resolver, _ = make_resolver()
        define_pending(symbols, resolver, "a", "b")
        define_pending(symbols, resolver, "b", "a")
        assert not resolver.run()
        assert resolver.sweep_count == 1
        assert resolver.unresolved_names() == ["a", "b"]

    def test_undefined_name_reported(self):
        symbols, resolver, _ = make_resolver()
        define_pending(symbols, resolver, "a", "ghost + 1")
        assert not resolver.run()
        assert resolver.unresolved_names() == ["a", "ghost"]

    def test_anonymous_thunk_reports_blocker(self):
        symbols, resolver, _ = make_resolver()
        resolver.defer(ExprNode.symbol("ghost"), 0, None, lambda v: None)
        resolver.run()
        assert resolver.unresolved_names() == ["ghost"]

    def test_synthetic_names_left_out(self):
        symbols, resolver, _ = make_resolver()
        define_pending(symbols, resolver, "@org#1", "ghost")
        resolver.run()
        assert resolver.unresolved_names() == ["ghost"]

    def test_missing_is_updated(self):
        symbols, resolver, _ = make_resolver()
        thunk = resolver.defer(parse_expression("a + b"), 0, None, lambda v: None)
        symbols.define("a", 1)
        resolver.run()
        assert thunk.missing == frozenset({"b"})


# =============================================================================
# Error Tests
# =============================================================================

class TestErrors:
    """Test errors raised while resolving."""

    def test_callback_error_is_collected(self):
        symbols, resolver, errors = make_resolver()

        def fail(value):
            raise ValueRangeError(f"value {value} does not fit")

        resolver.defer(ExprNode.symbol("x"), 0, None, fail)
        define_pending(symbols, resolver, "y", "x")
        symbols.define("x", 300)
        assert resolver.run()
        assert len(errors) == 1
        assert symbols.lookup("y") == 300

    def test_division_by_zero_propagates(self):
        symbols, resolver, _ = make_resolver()
        resolver.defer(parse_expression("1 / x"), 0, None, lambda v: None)
        symbols.define("x", 0)
        with pytest.raises(DivisionByZeroError):
            resolver.run()
