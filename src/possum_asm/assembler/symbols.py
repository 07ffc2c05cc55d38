"""
Symbol Table
============

Labels, @def constants, struct offsets and enum variants all live in a
single flat mapping keyed by their qualified name.

Label Kinds
-----------
| Kind   | Written as     | Qualified name            |
|--------|----------------|---------------------------|
| Global | ``main``       | ``main``                  |
| Local  | ``.loop``      | ``<owning global>.loop``  |
| Direct | ``main.loop``  | ``main.loop``             |

A local name is owned by the nearest preceding global label, so the
same ``.loop`` may appear under many globals without collision. The
direct form reaches a local label from anywhere.

Each binding holds either a resolved value or the pending thunk that
will produce it. The first definition of a qualified name wins; any
later definition of the same name is a DuplicateSymbolError.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Iterator, Optional, Union

from possum_asm.errors import (
    DuplicateSymbolError,
    ScopeError,
    SourceLocation,
)

if TYPE_CHECKING:
    from possum_asm.assembler.resolver import DeferredThunk


# Prefix of names the assembler invents for itself (location anchors)
SYNTHETIC_PREFIX = "@"


# =============================================================================
# Label Kinds
# =============================================================================

class LabelKind(Enum):
    """How a name is scoped."""
    GLOBAL = auto()
    LOCAL = auto()
    DIRECT = auto()

    @classmethod
    def classify(cls, name: str) -> "LabelKind":
        """Classify a name as written in source."""
        if name.startswith("."):
            return cls.LOCAL
        if "." in name:
            return cls.DIRECT
        return cls.GLOBAL


# =============================================================================
# Symbol Entries
# =============================================================================

@dataclass
class Symbol:
    """
    A symbol table entry.

    Attributes:
        name: Qualified name
        value: Resolved value, or None while pending
        thunk: The deferred computation that will produce the value
        location: Where the symbol was defined
        is_predefined: True for symbols defined before assembly (e.g. -D)
    """
    name: str
    value: Optional[int] = None
    thunk: Optional["DeferredThunk"] = None
    location: Optional[SourceLocation] = None
    is_predefined: bool = False

    @property
    def is_resolved(self) -> bool:
        return self.value is not None

    @property
    def is_synthetic(self) -> bool:
        return self.name.startswith(SYNTHETIC_PREFIX)


# =============================================================================
# Symbol Table
# =============================================================================

class SymbolTable:
    """
    Flat mapping from qualified name to value or pending thunk.

    Usage:
        table = SymbolTable()
        name = table.qualify(".loop", scope="main")   # "main.loop"
        table.define(name, 0x8003)
        table.lookup("main.loop")                      # 0x8003
    """

    def __init__(self):
        self._symbols: dict[str, Symbol] = {}

    # =========================================================================
    # Name Qualification
    # =========================================================================

    @staticmethod
    def qualify(
        name: str,
        scope: Optional[str] = None,
        location: Optional[SourceLocation] = None,
    ) -> str:
        """
        Turn a name as written into its qualified form.

        Args:
            name: Name as written in source
            scope: The currently open global label, if any
            location: Source location for error reporting

        Raises:
            ScopeError: If a local name is used with no open scope
        """
        if LabelKind.classify(name) != LabelKind.LOCAL:
            return name
        if scope is None:
            raise ScopeError(name, location)
        return f"{scope}{name}"

    # =========================================================================
    # Definition
    # =========================================================================

    def check_available(
        self,
        qualified: str,
        location: Optional[SourceLocation] = None,
    ) -> None:
        """
        Fail if the qualified name already has any binding.

        Raises:
            DuplicateSymbolError: Pointing back at the first definition
        """
        existing = self._symbols.get(qualified)
        if existing is not None:
            raise DuplicateSymbolError(
                qualified,
                location=location,
                original_location=existing.location,
            )

    def define(
        self,
        qualified: str,
        value: Union[int, "DeferredThunk"],
        location: Optional[SourceLocation] = None,
        is_predefined: bool = False,
    ) -> Symbol:
        """
        Bind a qualified name to a value or a pending thunk.

        Raises:
            DuplicateSymbolError: If the name is already bound
        """
        self.check_available(qualified, location)

        if isinstance(value, int):
            symbol = Symbol(qualified, value=value, location=location,
                            is_predefined=is_predefined)
        else:
            symbol = Symbol(qualified, thunk=value, location=location,
                            is_predefined=is_predefined)

        self._symbols[qualified] = symbol
        return symbol

    def publish(self, qualified: str, value: int) -> None:
        """Replace a pending binding with its resolved value."""
        symbol = self._symbols[qualified]
        symbol.value = value
        symbol.thunk = None

    # =========================================================================
    # Lookup
    # =========================================================================

    def lookup(
        self,
        name: str,
        scope: Optional[str] = None,
    ) -> Union[int, "DeferredThunk", None]:
        """
        Look up a name.

        Returns:
            The value if resolved, the pending thunk if not yet resolved,
            or None if the name has never been defined
        """
        symbol = self._symbols.get(self.qualify(name, scope))
        if symbol is None:
            return None
        if symbol.is_resolved:
            return symbol.value
        return symbol.thunk

    def get(self, qualified: str) -> Optional[Symbol]:
        """Return the entry for a qualified name, if any."""
        return self._symbols.get(qualified)

    def __contains__(self, qualified: str) -> bool:
        return qualified in self._symbols

    def __len__(self) -> int:
        return len(self._symbols)

    def __iter__(self) -> Iterator[Symbol]:
        return iter(self._symbols.values())

    def resolved(self) -> dict[str, int]:
        """Resolved user-visible symbols, in definition order."""
        return {
            symbol.name: symbol.value
            for symbol in self._symbols.values()
            if symbol.is_resolved and not symbol.is_synthetic
        }

    def pending(self) -> list[str]:
        """Names still waiting on a thunk, in definition order."""
        return [
            symbol.name for symbol in self._symbols.values()
            if not symbol.is_resolved
        ]

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def find_similar(self, name: str, limit: int = 3) -> list[str]:
        """
        Find defined symbols with names close to ``name``.

        Used for "did you mean" hints. Compares case-insensitively with
        Levenshtein distance.
        """
        name_lower = name.lower()
        similar = []

        for symbol in self._symbols.values():
            if symbol.is_synthetic or symbol.name == name:
                continue
            candidate = symbol.name.lower()
            if (
                candidate == name_lower or
                abs(len(candidate) - len(name_lower)) <= 1 and
                _edit_distance(name_lower, candidate) <= 2
            ):
                similar.append(symbol.name)

        return similar[:limit]


def _edit_distance(s1: str, s2: str) -> int:
    """Calculate Levenshtein edit distance between two strings."""
    if len(s1) < len(s2):
        s1, s2 = s2, s1

    distances = range(len(s2) + 1)
    for i, c1 in enumerate(s1):
        new_distances = [i + 1]
        for j, c2 in enumerate(s2):
            if c1 == c2:
                new_distances.append(distances[j])
            else:
                new_distances.append(1 + min((
                    distances[j],
                    distances[j + 1],
                    new_distances[-1]
                )))
        distances = new_distances

    return distances[-1]
