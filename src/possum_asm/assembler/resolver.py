"""
Deferred Evaluation Resolver
============================

Forward references are handled without a second pass over the source.
Whenever an expression cannot be evaluated yet, the code that issued it
wraps it in a :class:`DeferredThunk` (the expression, the ``@here`` and
scope it was issued under, and a callback that writes the result where
it belongs) and hands it to the :class:`Resolver`.

The dependency graph between thunks is never built explicitly. Each
:meth:`Resolver.sweep` simply retries every pending thunk in declaration
order; a thunk that now evaluates is removed and its callback runs,
which usually publishes a symbol that lets later thunks succeed.

Sweeps repeat until nothing is pending, or until a whole sweep resolves
nothing. The second case is the only non-convergence signal: there is no
iteration cap, so chains of forward references may be arbitrarily deep,
while genuine cycles stop after one fruitless sweep.
"""

from dataclasses import dataclass, field
import itertools
import logging
from typing import Callable, Optional

from possum_asm.assembler.expressions import (
    Deferred,
    ExpressionEvaluator,
    ExprNode,
    Here,
)
from possum_asm.assembler.symbols import SYNTHETIC_PREFIX, SymbolTable
from possum_asm.errors import AssemblerError, DivisionByZeroError, SourceLocation


logger = logging.getLogger(__name__)


@dataclass(eq=False)
class DeferredThunk:
    """
    An expression waiting for its symbols.

    Attributes:
        expr: The expression to evaluate
        here: Location counter when the expression was issued
        scope: Global label open when the expression was issued
        on_resolved: Receives the value once the expression evaluates
        description: What the thunk produces, for logging
        symbol: Qualified name the thunk defines, if any
        location: Source location of the issuing node
        missing: Names that blocked the most recent attempt
        sequence: Declaration order
    """
    expr: ExprNode
    here: Here
    scope: Optional[str]
    on_resolved: Callable[[int], None]
    description: str = ""
    symbol: Optional[str] = None
    location: Optional[SourceLocation] = None
    missing: frozenset[str] = field(default_factory=frozenset)
    sequence: int = 0


class Resolver:
    """
    Drives pending thunks to a fixed point.

    Errors raised by a thunk's callback (for example a byte value that
    turns out not to fit) are passed to ``on_error`` and the sweep goes
    on. Division by zero is fatal and propagates.

    Usage:
        resolver = Resolver(symbols, on_error=collector.add)
        resolver.defer(expr, here, scope, on_resolved=callback)
        if not resolver.run():
            names = resolver.unresolved_names()
    """

    def __init__(
        self,
        symbols: SymbolTable,
        on_error: Callable[[AssemblerError], None],
        evaluator: Optional[ExpressionEvaluator] = None,
    ):
        self.symbols = symbols
        self.evaluator = evaluator or ExpressionEvaluator(symbols)
        self._on_error = on_error
        self._pending: list[DeferredThunk] = []
        self._sequence = itertools.count()
        self.sweep_count = 0

    @property
    def pending(self) -> list[DeferredThunk]:
        """Pending thunks in declaration order."""
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._pending)

    def defer(
        self,
        expr: ExprNode,
        here: Here,
        scope: Optional[str],
        on_resolved: Callable[[int], None],
        description: str = "",
        symbol: Optional[str] = None,
        location: Optional[SourceLocation] = None,
        missing: frozenset[str] = frozenset(),
    ) -> DeferredThunk:
        """Register an expression to be retried once its symbols resolve."""
        thunk = DeferredThunk(
            expr=expr,
            here=here,
            scope=scope,
            on_resolved=on_resolved,
            description=description or str(expr),
            symbol=symbol,
            location=location,
            missing=missing,
            sequence=next(self._sequence),
        )
        self._pending.append(thunk)
        logger.debug(f"Deferred {thunk.description} (waiting on {', '.join(sorted(missing))})")
        return thunk

    def sweep(self) -> int:
        """
        Retry every pending thunk once, in declaration order.

        Returns:
            Number of thunks resolved by this sweep

        Raises:
            DivisionByZeroError: If a divisor resolves to zero
        """
        self.sweep_count += 1
        attempts, self._pending = self._pending, []
        still_pending = []
        resolved = 0

        for thunk in attempts:
            result = self.evaluator.evaluate(thunk.expr, thunk.here, thunk.scope)
            if isinstance(result, Deferred):
                thunk.missing = result.names
                still_pending.append(thunk)
                continue

            resolved += 1
            logger.debug(f"Resolved {thunk.description} = {result}")
            try:
                thunk.on_resolved(result)
            except DivisionByZeroError:
                raise
            except AssemblerError as e:
                self._on_error(e)

        # Anything deferred by a callback goes after the survivors
        self._pending = still_pending + self._pending
        return resolved

    def run(self) -> bool:
        """
        Sweep until nothing is pending or a sweep makes no progress.

        Returns:
            True if every thunk resolved
        """
        while self._pending:
            before = len(self._pending)
            resolved = self.sweep()
            logger.debug(
                f"Sweep {self.sweep_count}: resolved {resolved} of {before}, "
                f"{len(self._pending)} pending"
            )
            if resolved == 0:
                logger.debug(f"Resolver stalled with {len(self._pending)} pending")
                return False
        return True

    def unresolved_names(self) -> list[str]:
        """
        Names to report when the resolver stalls.

        Every pending thunk's own symbol comes first, in declaration
        order, followed by every blocking name that was never defined.
        Names the assembler invented for itself are left out.
        """
        names: list[str] = []

        for thunk in self._pending:
            symbol = thunk.symbol
            if symbol and not symbol.startswith(SYNTHETIC_PREFIX) and symbol not in names:
                names.append(symbol)

        for thunk in self._pending:
            for name in sorted(thunk.missing):
                if name not in self.symbols and name not in names:
                    names.append(name)

        return names
