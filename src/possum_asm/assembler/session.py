"""
Assembly Session
================

An AssemblySession owns everything one assembly needs: the symbol table,
location counter, output buffer, resolver and error collector. Nothing
is shared between sessions, so independent assemblies never interfere.

Lifecycle
---------
1. ``feed()`` each parsed node in source order. Expressions that refer
   forward are deferred; errors are collected and assembly continues.
2. ``resolve()`` drives the resolver to a fixed point.
3. ``finish()`` resolves once more, then either returns the
   AssemblyResult or raises a single terminal error.

``@die`` and division by zero end the session immediately. Every other
error is held until the resolver has had every chance to finish the
deferred work.

Terminal Error Priority
-----------------------
When several problems are outstanding, ``finish()`` raises, in order:

1. the first collected error (duplicate symbol, type mismatch, ...)
2. UnresolvedSymbolError naming every unresolved symbol together
3. the first failed ``@assert`` in declaration order

The full report of collected errors is attached as ``error.report``.
"""

from dataclasses import dataclass, field
import itertools
import logging
from typing import Callable, Iterable, Optional, Union

from possum_asm.assembler.directives import DirectiveProcessor
from possum_asm.assembler.encoder import InstructionEncoder, NullEncoder, OperandField
from possum_asm.assembler.expressions import (
    Deferred,
    EvalResult,
    ExpressionEvaluator,
    ExprNode,
    Here,
)
from possum_asm.assembler.nodes import (
    DirectiveInvocation,
    EnumBlock,
    InstructionNode,
    LabelDefinition,
    Node,
    StructBlock,
)
from possum_asm.assembler.output import LocationCounter, OutputBuffer, Position
from possum_asm.assembler.resolver import Resolver
from possum_asm.assembler.structs import StructProcessor
from possum_asm.assembler.symbols import LabelKind, SymbolTable
from possum_asm.assembler.values import encode_value, wrap32
from possum_asm.config import AssemblerConfig
from possum_asm.errors import (
    PREDEFINED_LOCATION,
    AssemblerError,
    AssertionFailedError,
    DivisionByZeroError,
    ErrorCollector,
    ExplicitAbortError,
    SourceLocation,
    UnresolvedSymbolError,
)


logger = logging.getLogger(__name__)


@dataclass
class AssemblyResult:
    """
    Output of a successful assembly.

    Attributes:
        data: The assembled bytes
        symbols: Resolved symbols by qualified name
        messages: @echo output in the order it was resolved
    """
    data: bytes
    symbols: dict[str, int] = field(default_factory=dict)
    messages: list[str] = field(default_factory=list)


class AssemblySession:
    """
    Consumes parsed nodes and produces bytes.

    Usage:
        session = AssemblySession()
        session.feed_all(parse_source(source))
        result = session.finish()
    """

    def __init__(
        self,
        config: Optional[AssemblerConfig] = None,
        encoder: Optional[InstructionEncoder] = None,
    ):
        self.config = config or AssemblerConfig()
        self.symbols = SymbolTable()
        self.evaluator = ExpressionEvaluator(self.symbols)
        self.errors = ErrorCollector(max_errors=self.config.max_errors)
        self.resolver = Resolver(self.symbols, on_error=self.errors.add, evaluator=self.evaluator)
        self.counter = LocationCounter(max_address=self.config.max_address)
        self.buffer = OutputBuffer()
        self.messages: list[str] = []
        self.scope: Optional[str] = None

        self._encoder = encoder or NullEncoder()
        self._directives = DirectiveProcessor(self)
        self._structs = StructProcessor(self)
        self._anchor_ids = itertools.count(1)
        self._assertion_ids = itertools.count()
        self._failed_assertions: list[tuple[int, AssertionFailedError]] = []

    # =========================================================================
    # Node Consumption
    # =========================================================================

    def feed(self, node: Node) -> None:
        """
        Consume one node.

        Raises:
            ExplicitAbortError: On @die
            DivisionByZeroError: If a divisor resolves to zero
            TooManyErrors: If the error limit is reached
        """
        try:
            self._dispatch(node)
        except (ExplicitAbortError, DivisionByZeroError):
            raise
        except AssemblerError as e:
            logger.debug(f"Collected {e.kind} error: {e.message}")
            self.errors.add(e)

    def feed_all(self, nodes: Iterable[Node]) -> None:
        """Consume nodes in order."""
        for node in nodes:
            self.feed(node)

    def _dispatch(self, node: Node) -> None:
        if isinstance(node, LabelDefinition):
            self._define_label(node)
        elif isinstance(node, DirectiveInvocation):
            self._directives.process(node)
        elif isinstance(node, InstructionNode):
            self._encode_instruction(node)
        elif isinstance(node, StructBlock):
            self._structs.process_struct(node)
        elif isinstance(node, EnumBlock):
            self._structs.process_enum(node)
        else:
            raise AssemblerError(f"unsupported node {type(node).__name__}", node.location)

    def _define_label(self, node: LabelDefinition) -> None:
        name = node.name
        if node.is_local and not name.startswith("."):
            name = f".{name}"

        if LabelKind.classify(name) == LabelKind.GLOBAL:
            self.scope = name

        self.bind(name, self.counter.here_expr(), node.location)

    def _encode_instruction(self, node: InstructionNode) -> None:
        here = self.counter.here()
        for piece in self._encoder.encode(node):
            if isinstance(piece, OperandField):
                self.emit_value(piece.expr, piece.size, node.location, here=here)
            else:
                self.emit(piece, node.location)

    # =========================================================================
    # Services for Directive and Struct Processing
    # =========================================================================

    def define_symbol(self, name: str, value: int) -> None:
        """Define a symbol before assembly (command line -D, API)."""
        self.symbols.define(name, wrap32(value), PREDEFINED_LOCATION, is_predefined=True)

    def evaluate(self, expr: ExprNode, here: Optional[Here] = None) -> EvalResult:
        """Evaluate in the current scope, at the current location by default."""
        if here is None:
            here = self.counter.here()
        return self.evaluator.evaluate(expr, here, self.scope)

    def defer(
        self,
        expr: ExprNode,
        on_resolved: Callable[[int], None],
        pending: Deferred,
        location: Optional[SourceLocation] = None,
        description: str = "",
        here: Optional[Here] = None,
        symbol: Optional[str] = None,
    ) -> None:
        """Register an expression with the resolver under the current scope."""
        if here is None:
            here = self.counter.here()
        self.resolver.defer(
            expr,
            here,
            self.scope,
            on_resolved,
            description=description,
            symbol=symbol,
            location=location,
            missing=pending.names,
        )

    def bind(
        self,
        name: str,
        value: Union[int, ExprNode],
        location: Optional[SourceLocation] = None,
        here: Optional[Here] = None,
        check: Optional[Callable[[int], None]] = None,
    ) -> str:
        """
        Define a symbol now, or as a pending thunk if it refers forward.

        Args:
            name: Name as written (global, .local or direct)
            value: Value or expression
            location: Source location of the definition
            here: Location counter for @here (default: current)
            check: Validates the value before it is published

        Returns:
            The qualified name

        Raises:
            DuplicateSymbolError: If the name is already defined
            ScopeError: If a local name has no owning global label
        """
        qualified = self.symbols.qualify(name, self.scope, location)
        self.symbols.check_available(qualified, location)

        result = wrap32(value) if isinstance(value, int) else self.evaluate(value, here)
        if not isinstance(result, Deferred):
            if check is not None:
                check(result)
            self.symbols.define(qualified, result, location)
            return qualified

        def publish(resolved: int) -> None:
            if check is not None:
                check(resolved)
            self.symbols.publish(qualified, resolved)

        if here is None:
            here = self.counter.here()
        thunk = self.resolver.defer(
            value,
            here,
            self.scope,
            publish,
            description=f"symbol '{qualified}'",
            symbol=qualified,
            location=location,
            missing=result.names,
        )
        self.symbols.define(qualified, thunk, location)
        return qualified

    def emit(self, data: bytes, location: Optional[SourceLocation] = None) -> Position:
        """Append bytes at the location counter."""
        self.counter.advance(len(data), location)
        return self.buffer.emit(data)

    def reserve(self, count: int, location: Optional[SourceLocation] = None) -> Position:
        """Append placeholder bytes to be patched later."""
        self.counter.advance(count, location)
        return self.buffer.reserve(count)

    def emit_value(
        self,
        expr: ExprNode,
        size: int,
        location: Optional[SourceLocation] = None,
        here: Optional[Here] = None,
    ) -> None:
        """
        Emit an expression as a byte or word, patching it in later if
        it refers forward.
        """
        if here is None:
            here = self.counter.here()

        result = self.evaluate(expr, here)
        if not isinstance(result, Deferred):
            self.emit(encode_value(result, size, location), location)
            return

        position = self.reserve(size, location)

        def patch(resolved: int) -> None:
            self.buffer.patch(position, encode_value(resolved, size, location))

        self.defer(
            expr,
            patch,
            result,
            location=location,
            description=f"{'byte' if size == 1 else 'word'} '{expr}'",
            here=here,
        )

    def new_anchor(self, prefix: str) -> str:
        """Invent a unique name for a location anchor."""
        return f"@{prefix}#{next(self._anchor_ids)}"

    def echo(self, message: str) -> None:
        """Record an @echo message."""
        logger.info(message)
        self.messages.append(message)

    def next_assertion_id(self) -> int:
        return next(self._assertion_ids)

    def fail_assertion(self, assertion_id: int, error: AssertionFailedError) -> None:
        """Record a failed @assert, reported after the fixed point."""
        logger.debug(f"Assertion failed: {error.message}")
        self._failed_assertions.append((assertion_id, error))

    # =========================================================================
    # Resolution and Result
    # =========================================================================

    def resolve(self) -> bool:
        """
        Drive the resolver to a fixed point.

        Returns:
            True if nothing is left pending
        """
        return self.resolver.run()

    def finish(self) -> AssemblyResult:
        """
        Resolve, then return the result or raise the terminal error.

        Raises:
            AssemblerError: The single terminal error (see module docs)
        """
        self.resolve()

        if self.errors.has_errors():
            raise self._terminal(self.errors.errors[0])

        if len(self.resolver):
            names = self.resolver.unresolved_names()
            similar = []
            undefined = [name for name in names if name not in self.symbols]
            if undefined:
                similar = self.symbols.find_similar(undefined[0])
            first = self.resolver.pending[0]
            raise self._terminal(UnresolvedSymbolError(
                names,
                location=first.location,
                similar_symbols=similar,
            ))

        if self._failed_assertions:
            self._failed_assertions.sort(key=lambda entry: entry[0])
            raise self._terminal(self._failed_assertions[0][1])

        data = self.buffer.to_bytes()
        symbols = self.symbols.resolved()
        logger.info(f"Assembled {len(data)} bytes, {len(symbols)} symbols")
        return AssemblyResult(data=data, symbols=symbols, messages=list(self.messages))

    def _terminal(self, error: AssemblerError) -> AssemblerError:
        if self.errors.has_errors():
            error.report = self.errors.report()
        return error
