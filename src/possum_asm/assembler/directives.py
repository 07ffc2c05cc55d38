"""
Directive Processor
===================

Handles every ``@`` directive except ``@struct`` and ``@enum``.

| Directive                | Effect                                            |
|--------------------------|---------------------------------------------------|
| ``@org addr``            | Move the location counter; emits nothing          |
| ``@def name, expr``      | Define a symbol (``@symbol`` is an alias)         |
| ``@db item, ...``        | Emit bytes; strings emit their characters         |
| ``@dw item, ...``        | Emit little-endian words                          |
| ``@ds size[, fill]``     | Emit ``size`` copies of ``fill`` (default 0)      |
| ``@echo item``           | Record a message once the item resolves           |
| ``@assert expr[, msg]``  | Fail the assembly if expr resolves to zero        |
| ``@die item``            | Stop assembly immediately                         |

Every numeric argument may refer forward. Items of ``@db``/``@dw`` are
deferred one by one, each with the ``@here`` of its own first byte.
``@die`` is never deferred: an argument that cannot be evaluated yet is
reported as written.
"""

from typing import TYPE_CHECKING, Callable, Optional

from possum_asm.assembler.expressions import Deferred, ExprNode, ExprNodeType
from possum_asm.assembler.nodes import Argument, DirectiveInvocation
from possum_asm.assembler.values import encode_value
from possum_asm.errors import (
    AssertionFailedError,
    DirectiveError,
    ExplicitAbortError,
    TypeMismatchError,
    ValueRangeError,
)

if TYPE_CHECKING:
    from possum_asm.assembler.session import AssemblySession


def decode_text(data: bytes) -> str:
    """Decode a string argument for display."""
    return data.decode("latin-1")


class DirectiveProcessor:
    """
    Executes directive nodes against an assembly session.

    Usage:
        processor = DirectiveProcessor(session)
        processor.process(DirectiveInvocation("db", [ExprNode.number(1)]))
    """

    def __init__(self, session: "AssemblySession"):
        self._session = session
        self._handlers: dict[str, Callable[[DirectiveInvocation], None]] = {
            "org": self._do_org,
            "def": self._do_def,
            "symbol": self._do_def,
            "db": self._do_db,
            "dw": self._do_dw,
            "ds": self._do_ds,
            "echo": self._do_echo,
            "assert": self._do_assert,
            "die": self._do_die,
        }

    def process(self, node: DirectiveInvocation) -> None:
        """
        Execute one directive.

        Raises:
            DirectiveError: Unknown directive or wrong argument count
            TypeMismatchError: String where a number is required
            ExplicitAbortError: On @die
        """
        handler = self._handlers.get(node.kind.lower())
        if handler is None:
            known = ", ".join(f"@{name}" for name in sorted(self._handlers))
            raise DirectiveError(
                f"unknown directive '@{node.kind}'",
                node.location,
                hint=f"known directives: {known}, @struct, @enum",
            )
        handler(node)

    # =========================================================================
    # Argument Helpers
    # =========================================================================

    def _expect_args(
        self,
        node: DirectiveInvocation,
        minimum: int,
        maximum: Optional[int] = None,
    ) -> None:
        count = len(node.args)
        if count >= minimum and (maximum is None or count <= maximum):
            return
        if maximum is None:
            expected = f"at least {minimum}"
        elif minimum == maximum:
            expected = f"{minimum}"
        else:
            expected = f"{minimum} to {maximum}"
        raise DirectiveError(
            f"@{node.kind} expects {expected} argument(s), got {count}",
            node.location,
        )

    def _numeric(self, node: DirectiveInvocation, arg: Argument, what: str) -> ExprNode:
        if isinstance(arg, bytes):
            raise TypeMismatchError(
                f"@{node.kind} {what} must be a numeric expression, not a string",
                node.location,
            )
        return arg

    def _string(self, node: DirectiveInvocation, arg: Argument, what: str) -> bytes:
        if not isinstance(arg, bytes):
            raise TypeMismatchError(
                f"@{node.kind} {what} must be a string, not an expression",
                node.location,
            )
        return arg

    def _check_address(self, node: DirectiveInvocation) -> Callable[[int], None]:
        max_address = self._session.config.max_address

        def check(address: int) -> None:
            if not 0 <= address <= max_address:
                raise ValueRangeError(
                    f"@org address {address} is outside $0000..${max_address:04X}",
                    node.location,
                )

        return check

    # =========================================================================
    # Directive Handlers
    # =========================================================================

    def _do_org(self, node: DirectiveInvocation) -> None:
        self._expect_args(node, 1, 1)
        session = self._session
        expr = self._numeric(node, node.args[0], "address")
        check = self._check_address(node)

        result = session.evaluate(expr)
        if not isinstance(result, Deferred):
            check(result)
            session.counter.org(result)
            return

        anchor = session.new_anchor("org")

        def check_anchor(address: int) -> None:
            check(address)
            session.counter.resolve_anchor(anchor, address)

        session.bind(anchor, expr, node.location, check=check_anchor)
        session.counter.anchor(anchor)

    def _do_def(self, node: DirectiveInvocation) -> None:
        self._expect_args(node, 2, 2)
        target, value = node.args
        if isinstance(target, bytes) or target.node_type != ExprNodeType.SYMBOL:
            raise DirectiveError(
                f"@{node.kind} expects a symbol name as its first argument",
                node.location,
            )
        expr = self._numeric(node, value, "value")
        self._session.bind(target.value, expr, node.location)

    def _do_db(self, node: DirectiveInvocation) -> None:
        self._expect_args(node, 1)
        for arg in node.args:
            if isinstance(arg, bytes):
                self._session.emit(arg, node.location)
            else:
                self._session.emit_value(arg, 1, node.location)

    def _do_dw(self, node: DirectiveInvocation) -> None:
        self._expect_args(node, 1)
        for arg in node.args:
            expr = self._numeric(node, arg, "item")
            self._session.emit_value(expr, 2, node.location)

    def _do_ds(self, node: DirectiveInvocation) -> None:
        self._expect_args(node, 1, 2)
        session = self._session
        location = node.location
        size_expr = self._numeric(node, node.args[0], "size")
        fill_expr = self._numeric(node, node.args[1], "fill") if len(node.args) > 1 else None

        here = session.counter.here()
        size = session.evaluate(size_expr, here)
        fill = session.evaluate(fill_expr, here) if fill_expr is not None else 0

        def check_size(count: int) -> None:
            if count < 0:
                raise ValueRangeError(f"@ds size {count} is negative", location)

        if not isinstance(size, Deferred):
            check_size(size)
            if not isinstance(fill, Deferred):
                session.emit(encode_value(fill, 1, location) * size, location)
                return

            position = session.reserve(size, location)

            def patch_fill(value: int) -> None:
                session.buffer.patch(position, encode_value(value, 1, location) * size)

            session.defer(fill_expr, patch_fill, fill, location,
                          description=f"@ds fill '{fill_expr}'", here=here)
            return

        # Length unknown: leave a gap and count on from an anchor
        gap = session.buffer.gap()

        if isinstance(fill, Deferred):
            def set_fill(value: int) -> None:
                encode_value(value, 1, location)
                gap.fill = value

            session.defer(fill_expr, set_fill, fill, location,
                          description=f"@ds fill '{fill_expr}'", here=here)
        else:
            encode_value(fill, 1, location)
            gap.fill = fill

        def set_length(count: int) -> None:
            check_size(count)
            gap.length = count

        session.defer(size_expr, set_length, size, location,
                      description=f"@ds size '{size_expr}'", here=here)

        anchor = session.new_anchor("ds")
        end = ExprNode.binary("+", session.counter.here_expr(), size_expr)
        max_address = session.config.max_address

        def check_end(address: int) -> None:
            if address > max_address + 1:
                raise ValueRangeError(
                    f"bytes extend past address ${max_address:04X}",
                    location,
                    hint=f"the last byte would be at ${address - 1:X}",
                )
            session.counter.resolve_anchor(anchor, address)

        session.bind(anchor, end, location, here=here, check=check_end)
        session.counter.anchor(anchor)

    def _do_echo(self, node: DirectiveInvocation) -> None:
        """
        Record a message now, or when its argument resolves.

        Messages are kept in the order they are produced, not in source
        order: ``@echo X`` followed by ``@echo 2``, with ``X`` defined
        later, records ``"2"`` before the value of ``X``.
        """
        self._expect_args(node, 1, 1)
        session = self._session
        arg = node.args[0]

        if isinstance(arg, bytes):
            session.echo(decode_text(arg))
            return

        result = session.evaluate(arg)
        if isinstance(result, Deferred):
            session.defer(arg, lambda value: session.echo(str(value)), result,
                          node.location, description=f"@echo '{arg}'")
        else:
            session.echo(str(result))

    def _do_assert(self, node: DirectiveInvocation) -> None:
        self._expect_args(node, 1, 2)
        session = self._session
        expr = self._numeric(node, node.args[0], "condition")
        message: Optional[str] = None
        if len(node.args) > 1:
            message = decode_text(self._string(node, node.args[1], "message"))

        assertion_id = session.next_assertion_id()

        def check(value: int) -> None:
            if value == 0:
                session.fail_assertion(assertion_id, AssertionFailedError(
                    message or f"assertion failed: {expr}",
                    node.location,
                ))

        result = session.evaluate(expr)
        if isinstance(result, Deferred):
            session.defer(expr, check, result, node.location,
                          description=f"@assert '{expr}'")
        else:
            check(result)

    def _do_die(self, node: DirectiveInvocation) -> None:
        self._expect_args(node, 1, 1)
        arg = node.args[0]

        if isinstance(arg, bytes):
            message = decode_text(arg)
        else:
            result = self._session.evaluate(arg)
            message = str(arg) if isinstance(result, Deferred) else str(result)

        raise ExplicitAbortError(message, node.location)
