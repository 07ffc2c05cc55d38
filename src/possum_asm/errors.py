"""
Possum Assembler Error Hierarchy
================================

This module defines the exception hierarchy for the assembler. All
exceptions inherit from PossumError, allowing callers to catch every
assembler-related error with a single except clause if desired.

Exception Hierarchy
-------------------
PossumError (base)
└── AssemblerError (assembler-related)
    ├── AssemblySyntaxError - syntax errors in source
    ├── DuplicateSymbolError - same qualified name defined twice
    ├── UnresolvedSymbolError - names still pending at fixed point
    ├── ScopeError - local label with no owning global label
    ├── TypeMismatchError - string where a number is needed, or vice versa
    ├── ExpressionError - error evaluating expression
    │   ├── DivisionByZeroError - division or modulo by zero
    │   └── ValueRangeError - value does not fit its destination
    ├── DirectiveError - error in assembler directive
    │   ├── MalformedStructError - invalid @struct block
    │   └── MalformedEnumError - invalid @enum block
    ├── AssertionFailedError - @assert evaluated to zero
    ├── ExplicitAbortError - @die
    ├── InstructionError - instruction could not be encoded
    └── TooManyErrors - error limit reached

Every assembler error carries a ``kind`` string (for example
``"UnresolvedSymbol"``) and a ``symbols`` tuple naming the offending
symbols, so front ends can report failures without parsing messages.

Error messages follow this format:
    filename:line:column: error: description
        source_line_text
        ^ (pointer to error location)
    hint: suggestion for fixing (when available)
"""

from dataclasses import dataclass
from typing import Iterable, Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class PossumError(Exception):
    """
    Base exception for all assembler errors.

        try:
            assembler.assemble_file("program.asm")
        except PossumError as e:
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
        column: Column number (1-indexed)
    """
    filename: str
    line: int
    column: int

    def __str__(self) -> str:
        """Format as 'filename:line:column' for error messages."""
        return f"{self.filename}:{self.line}:{self.column}"


# Location attached to symbols defined from the command line or API
PREDEFINED_LOCATION = SourceLocation("<predefined>", 0, 0)


# =============================================================================
# Assembler Exceptions
# =============================================================================

class AssemblerError(PossumError):
    """
    Base exception for all assembler-related errors.

    Attributes:
        message: The error description
        location: Where in the source the error occurred (optional)
        hint: A suggestion for fixing the error (optional)
        source_line: The actual source text at the error location (optional)
        symbols: Names of the symbols involved, if any
        report: Full collected error report, attached when the error
                terminates an assembly session
    """

    kind = "Assembler"

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
        symbols: Iterable[str] = (),
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        self.symbols = tuple(symbols)
        self.report: Optional[str] = None
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

        Example output:
            game.asm:15:9: error: unresolved symbol 'plyer'
                @dw plyer
                    ^
            hint: did you mean 'player'?
        """
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")
            if self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)


class AssemblySyntaxError(AssemblerError):
    """
    Syntax error in assembly source code.

    Raised when the lexer or parser encounters input that cannot be
    tokenized or parsed:
        - Invalid character in source
        - Unterminated string literal
        - Missing operand or closing brace
        - Invalid number format
    """

    kind = "Syntax"


class DuplicateSymbolError(AssemblerError):
    """
    Symbol defined multiple times.

    The first definition always wins; the hint points back at it.
    """

    kind = "DuplicateSymbol"

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        original_location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.symbol = symbol
        self.original_location = original_location

        hint = None
        if original_location:
            hint = f"'{symbol}' was first defined at {original_location}"

        super().__init__(
            f"duplicate symbol '{symbol}'",
            location=location,
            hint=hint,
            source_line=source_line,
            symbols=(symbol,),
        )


class UnresolvedSymbolError(AssemblerError):
    """
    One or more symbols could never be resolved.

    Raised once the resolver reaches a fixed point with work still pending,
    either because a name is never defined or because definitions depend
    on each other in a cycle. Every unresolved name is reported together.

    The assembler suggests similarly-named symbols when it can, helping
    to catch typos.
    """

    kind = "UnresolvedSymbol"

    def __init__(
        self,
        symbols: Iterable[str],
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
        similar_symbols: Optional[list[str]] = None,
    ):
        names = list(symbols)
        self.similar_symbols = similar_symbols or []

        if not hint and self.similar_symbols:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_symbols[:3])
            hint = f"did you mean {suggestions}?"

        quoted = ", ".join(f"'{name}'" for name in names)
        noun = "symbol" if len(names) == 1 else "symbols"

        super().__init__(
            f"unresolved {noun} {quoted}",
            location=location,
            hint=hint,
            source_line=source_line,
            symbols=names,
        )


class ScopeError(AssemblerError):
    """
    A local name was used with no global label open to own it.

    Example:
        .loop:      ; error: no global label defined before it
    """

    kind = "Scope"

    def __init__(
        self,
        symbol: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        super().__init__(
            f"local symbol '{symbol}' used with no global label defined before it",
            location=location,
            hint="define a global label first, or use the direct form 'global.local'",
            source_line=source_line,
            symbols=(symbol,),
        )


class TypeMismatchError(AssemblerError):
    """
    Argument of the wrong type.

    Raised when a string is given where a numeric expression is required
    (for example ``@dw "text"``) or a number where only a string makes
    sense.
    """

    kind = "TypeMismatch"


class ExpressionError(AssemblerError):
    """Error evaluating an expression."""

    kind = "Expression"


class DivisionByZeroError(ExpressionError):
    """
    Division or modulo by zero.

    Never deferred: raised as soon as the divisor resolves to zero, and
    fatal to the assembly session.
    """

    kind = "DivisionByZero"


class ValueRangeError(ExpressionError):
    """
    A resolved value does not fit where it is written.

    Examples:
        - @db 300          (bytes hold -128..255)
        - @dw 70000        (words hold -32768..65535)
        - @org $12345      (addresses are limited to the target range)
        - code extending past the top of the address space
    """

    kind = "ValueRange"


class DirectiveError(AssemblerError):
    """
    Error in assembler directive.

    Raised when a directive is used incorrectly:
        - unknown directive name
        - wrong number of arguments
        - @def without a symbol name
    """

    kind = "Directive"


class MalformedStructError(DirectiveError):
    """
    Invalid @struct block.

    Raised for a struct with no fields, a duplicate field name, or a
    field with a missing or negative size.
    """

    kind = "MalformedStruct"


class MalformedEnumError(DirectiveError):
    """Invalid @enum block: no variants, or a duplicate variant name."""

    kind = "MalformedEnum"


class AssertionFailedError(AssemblerError):
    """An @assert expression resolved to zero."""

    kind = "AssertionFailed"


class ExplicitAbortError(AssemblerError):
    """
    Assembly stopped by @die.

    Unconditional and immediate: the session ends as soon as the
    directive is reached.
    """

    kind = "ExplicitAbort"


class InstructionError(AssemblerError):
    """An instruction could not be encoded."""

    kind = "Instruction"


# =============================================================================
# Error Collection for Multiple Error Reporting
# =============================================================================

class ErrorCollector:
    """
    Collects multiple errors for batch reporting.

    The assembly session uses this to keep consuming nodes after an
    error, so deferred work still gets its chance to resolve and the
    user sees every problem from one run.

    Example:
        collector = ErrorCollector(max_errors=100)

        try:
            # ... assembly process ...
            if error_found:
                collector.add(DuplicateSymbolError(...))
        except TooManyErrors:
            pass  # Already logged max_errors

        if collector.has_errors():
            print(collector.report())
            sys.exit(1)
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
            raise TooManyErrors(f"Too many errors ({self.max_errors}), stopping")

    def has_errors(self) -> bool:
        """Return True if any errors have been collected."""
        return len(self.errors) > 0

    def report(self) -> str:
        """Format all errors for display."""
        lines = []

        for error in self.errors:
            lines.append(str(error))
            lines.append("")

        error_word = "error" if len(self.errors) == 1 else "errors"
        lines.append(f"{len(self.errors)} {error_word}")

        return "\n".join(lines)


class TooManyErrors(AssemblerError):
    """Raised when the error limit has been reached."""

    kind = "TooManyErrors"

    def __init__(self, message: str = "Too many errors"):
        super().__init__(message)
