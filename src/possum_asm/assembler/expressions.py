"""
Assembly Expression Model and Evaluator
=======================================

This module defines the expression tree used by every directive and
instruction operand, and the evaluator that reduces it to a value.

Evaluation never fails because of a forward reference. Instead of a
value, :meth:`ExpressionEvaluator.evaluate` returns a :class:`Deferred`
naming the symbols that blocked it; the caller registers the expression
with the resolver and it is retried once those symbols have values.

Supported Operations
--------------------
Lowest to highest precedence (C rules):

1. Ternary: ``c ? a : b`` (only the selected branch is evaluated)
2. Logical OR: ``||`` (short-circuit)
3. Logical AND: ``&&`` (short-circuit)
4. Bitwise OR: ``|``
5. Bitwise XOR: ``^``
6. Bitwise AND: ``&``
7. Equality: ``==`` ``!=``
8. Relational: ``<`` ``<=`` ``>`` ``>=``
9. Shift: ``<<`` ``>>`` (arithmetic), ``<:`` ``:>`` (logical)
10. Additive: ``+`` ``-``
11. Multiplicative: ``*`` ``/`` ``%``
12. Unary: ``-`` ``~`` ``!`` ``+``

Arithmetic Rules
----------------
- Every result wraps to a signed 32-bit value.
- ``/`` truncates toward zero and ``%`` takes the sign of the dividend.
- Dividing by zero raises DivisionByZeroError immediately.
- Shift counts are taken modulo 32.
- Comparisons and logical operators produce 1 or 0.

Example Usage
-------------
>>> from possum_asm.assembler.expressions import ExprNode, evaluate
>>> from possum_asm.assembler.symbols import SymbolTable
>>> symbols = SymbolTable()
>>> symbols.define("buffer", 0x1000)
>>> expr = ExprNode.binary("+", ExprNode.symbol("buffer"), ExprNode.number(10))
>>> evaluate(expr, symbols)
4106
>>> evaluate(ExprNode.symbol("later"), symbols)
Deferred(names=frozenset({'later'}))
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING, Callable, Optional, Union

from possum_asm.assembler.values import MASK32, wrap32
from possum_asm.errors import DivisionByZeroError, ExpressionError, SourceLocation

if TYPE_CHECKING:
    from possum_asm.assembler.symbols import SymbolTable


# =============================================================================
# Expression AST Nodes
# =============================================================================

class ExprNodeType(Enum):
    """Types of expression AST nodes."""
    NUMBER = auto()      # Literal number
    SYMBOL = auto()      # Symbol reference
    HERE = auto()        # Location counter (@here)
    UNARY_OP = auto()    # Unary operation (-a, ~a, !a)
    BINARY_OP = auto()   # Binary operation (a + b)
    TERNARY = auto()     # Conditional (c ? a : b)


@dataclass(frozen=True)
class ExprNode:
    """
    Immutable AST node for expression evaluation.

    Each node has a type and carries the data appropriate to it:

    - NUMBER: ``value`` is the literal
    - SYMBOL: ``value`` is the name as written (``name``, ``.local``,
      ``global.local``)
    - UNARY_OP: ``operator`` applied to ``left``
    - BINARY_OP: ``left`` ``operator`` ``right``
    - TERNARY: ``condition`` ? ``left`` : ``right``

    ``location`` is informational and ignored for equality.
    """
    node_type: ExprNodeType
    value: int | str | None = None
    operator: str | None = None
    left: Optional["ExprNode"] = None
    right: Optional["ExprNode"] = None
    condition: Optional["ExprNode"] = None
    location: Optional[SourceLocation] = field(default=None, compare=False)

    @classmethod
    def number(cls, value: int, location: Optional[SourceLocation] = None) -> "ExprNode":
        return cls(ExprNodeType.NUMBER, value=value, location=location)

    @classmethod
    def symbol(cls, name: str, location: Optional[SourceLocation] = None) -> "ExprNode":
        return cls(ExprNodeType.SYMBOL, value=name, location=location)

    @classmethod
    def here(cls, location: Optional[SourceLocation] = None) -> "ExprNode":
        return cls(ExprNodeType.HERE, location=location)

    @classmethod
    def unary(cls, operator: str, operand: "ExprNode",
              location: Optional[SourceLocation] = None) -> "ExprNode":
        return cls(ExprNodeType.UNARY_OP, operator=operator, left=operand, location=location)

    @classmethod
    def binary(cls, operator: str, left: "ExprNode", right: "ExprNode",
               location: Optional[SourceLocation] = None) -> "ExprNode":
        return cls(ExprNodeType.BINARY_OP, operator=operator, left=left, right=right,
                   location=location)

    @classmethod
    def ternary(cls, condition: "ExprNode", if_true: "ExprNode", if_false: "ExprNode",
                location: Optional[SourceLocation] = None) -> "ExprNode":
        return cls(ExprNodeType.TERNARY, condition=condition, left=if_true, right=if_false,
                   location=location)

    def __str__(self) -> str:
        """Render back to source form, for diagnostics."""
        if self.node_type == ExprNodeType.NUMBER:
            return str(self.value)
        if self.node_type == ExprNodeType.SYMBOL:
            return str(self.value)
        if self.node_type == ExprNodeType.HERE:
            return "@here"
        if self.node_type == ExprNodeType.UNARY_OP:
            return f"{self.operator}{self.left._operand_text()}"
        if self.node_type == ExprNodeType.BINARY_OP:
            return f"{self.left._operand_text()} {self.operator} {self.right._operand_text()}"
        return (f"{self.condition._operand_text()} ? "
                f"{self.left._operand_text()} : {self.right._operand_text()}")

    def _operand_text(self) -> str:
        if self.node_type in (ExprNodeType.NUMBER, ExprNodeType.SYMBOL, ExprNodeType.HERE):
            return str(self)
        return f"({self})"


# =============================================================================
# Evaluation Results
# =============================================================================

@dataclass(frozen=True)
class Deferred:
    """
    Evaluation could not complete yet.

    Attributes:
        names: Qualified names of the symbols that had no value
    """
    names: frozenset[str]

    def __or__(self, other: "Deferred") -> "Deferred":
        return Deferred(self.names | other.names)


EvalResult = Union[int, Deferred]

# Location counter: absolute, or relative to a symbol not yet known
Here = Union[int, ExprNode]


# =============================================================================
# Operator Implementations
# =============================================================================

def _divide(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    if (a < 0) != (b < 0):
        quotient = -quotient
    return wrap32(quotient)


def _modulo(a: int, b: int) -> int:
    remainder = abs(a) % abs(b)
    return wrap32(-remainder if a < 0 else remainder)


UNARY_OPERATORS: dict[str, Callable[[int], int]] = {
    "-": lambda a: wrap32(-a),
    "+": lambda a: a,
    "~": lambda a: wrap32(~a),
    "!": lambda a: int(a == 0),
}

BINARY_OPERATORS: dict[str, Callable[[int, int], int]] = {
    "+": lambda a, b: wrap32(a + b),
    "-": lambda a, b: wrap32(a - b),
    "*": lambda a, b: wrap32(a * b),
    "/": _divide,
    "%": _modulo,
    "<<": lambda a, b: wrap32(a << (b & 31)),
    ">>": lambda a, b: a >> (b & 31),
    "<:": lambda a, b: wrap32(a << (b & 31)),
    ":>": lambda a, b: wrap32((a & MASK32) >> (b & 31)),
    "&": lambda a, b: wrap32(a & b),
    "|": lambda a, b: wrap32(a | b),
    "^": lambda a, b: wrap32(a ^ b),
    "==": lambda a, b: int(a == b),
    "!=": lambda a, b: int(a != b),
    "<": lambda a, b: int(a < b),
    "<=": lambda a, b: int(a <= b),
    ">": lambda a, b: int(a > b),
    ">=": lambda a, b: int(a >= b),
}

LOGICAL_OPERATORS = frozenset({"&&", "||"})


# =============================================================================
# Expression Evaluator
# =============================================================================

class ExpressionEvaluator:
    """
    Evaluates expression trees against a symbol table.

    The evaluator holds no state of its own besides the symbol table, so
    the resolver can retry the same expression any number of times.

    Attributes:
        symbols: The symbol table names are looked up in
    """

    def __init__(self, symbols: "SymbolTable"):
        self.symbols = symbols

    def evaluate(
        self,
        node: ExprNode,
        here: Here = 0,
        scope: Optional[str] = None,
    ) -> EvalResult:
        """
        Evaluate an expression.

        Args:
            node: The expression to evaluate
            here: Location counter captured when the expression was issued
            scope: Global label owning bare local names

        Returns:
            The wrapped 32-bit value, or Deferred naming the blocking symbols

        Raises:
            DivisionByZeroError: If a divisor resolves to zero
            ScopeError: If a local name is used with no open scope
        """
        return self._eval(node, here, scope)

    def _eval(self, node: ExprNode, here: Here, scope: Optional[str]) -> EvalResult:
        node_type = node.node_type

        if node_type == ExprNodeType.NUMBER:
            return wrap32(node.value)

        if node_type == ExprNodeType.SYMBOL:
            return self._resolve_symbol(node, scope)

        if node_type == ExprNodeType.HERE:
            if isinstance(here, ExprNode):
                return self._eval(here, 0, None)
            return wrap32(here)

        if node_type == ExprNodeType.UNARY_OP:
            operand = self._eval(node.left, here, scope)
            if isinstance(operand, Deferred):
                return operand
            return UNARY_OPERATORS[node.operator](operand)

        if node_type == ExprNodeType.TERNARY:
            condition = self._eval(node.condition, here, scope)
            if isinstance(condition, Deferred):
                return condition
            branch = node.left if condition else node.right
            return self._eval(branch, here, scope)

        if node.operator in LOGICAL_OPERATORS:
            return self._eval_logical(node, here, scope)

        return self._eval_binary(node, here, scope)

    def _eval_logical(self, node: ExprNode, here: Here, scope: Optional[str]) -> EvalResult:
        """Evaluate && and || with C short-circuit rules."""
        left = self._eval(node.left, here, scope)
        if isinstance(left, Deferred):
            return left

        if node.operator == "&&" and not left:
            return 0
        if node.operator == "||" and left:
            return 1

        right = self._eval(node.right, here, scope)
        if isinstance(right, Deferred):
            return right
        return int(right != 0)

    def _eval_binary(self, node: ExprNode, here: Here, scope: Optional[str]) -> EvalResult:
        left = self._eval(node.left, here, scope)
        right = self._eval(node.right, here, scope)

        # A zero divisor is fatal even while the dividend is pending
        if node.operator in ("/", "%") and right == 0:
            raise DivisionByZeroError(
                "division by zero" if node.operator == "/" else "modulo by zero",
                node.location,
            )

        if isinstance(left, Deferred) and isinstance(right, Deferred):
            return left | right
        if isinstance(left, Deferred):
            return left
        if isinstance(right, Deferred):
            return right

        try:
            operation = BINARY_OPERATORS[node.operator]
        except KeyError:
            raise ExpressionError(f"unknown operator '{node.operator}'", node.location)
        return operation(left, right)

    def _resolve_symbol(self, node: ExprNode, scope: Optional[str]) -> EvalResult:
        """
        Resolve a symbol reference.

        A name bound to a pending thunk, or not bound at all, defers the
        whole expression; the resolver tells the two apart later.
        """
        qualified = self.symbols.qualify(node.value, scope, node.location)
        binding = self.symbols.lookup(qualified)
        if isinstance(binding, int):
            return binding
        return Deferred(frozenset({qualified}))


# =============================================================================
# Convenience Functions
# =============================================================================

def evaluate(
    expr: ExprNode,
    symbols: "SymbolTable",
    here: Here = 0,
    scope: Optional[str] = None,
) -> EvalResult:
    """
    Convenience function to evaluate an expression.

    Args:
        expr: Expression tree
        symbols: Symbol table
        here: Current location counter
        scope: Global label owning bare local names

    Returns:
        The value, or Deferred if a symbol has no value yet
    """
    return ExpressionEvaluator(symbols).evaluate(expr, here, scope)
