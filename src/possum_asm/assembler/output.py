"""
Location Counter and Output Buffer
==================================

The location counter is the address ``@here`` reports. The output
buffer is the byte stream the assembly produces. They are kept apart:
``@org`` moves the counter without touching the buffer, so the buffer
only ever grows by appending, in emission order.

Patching
--------
Bytes whose value is not known yet are reserved as zeros. The position
returned by :meth:`OutputBuffer.reserve` stays valid for the life of the
buffer, and the resolver later patches the real value in place.

When the *length* of a region is unknown (``@ds`` with a forward
referenced size) the buffer records a :class:`Gap` instead. The gap's
length and fill byte are filled in by the resolver, and the gap is
expanded when the buffer is serialized.

Symbolic Counter
----------------
After an ``@org`` or ``@ds`` whose operand is still pending, the counter
no longer has an absolute value. It is then tracked as an offset from a
synthetic anchor symbol, and :meth:`LocationCounter.here` returns the
expression ``anchor + offset``. Labels defined at that point are
deferred like any other forward reference.
"""

from dataclasses import dataclass
from typing import Optional, Union

from possum_asm.assembler.expressions import ExprNode, Here
from possum_asm.errors import SourceLocation, ValueRangeError


# =============================================================================
# Location Counter
# =============================================================================

class LocationCounter:
    """
    Tracks the assembling address.

    Bytes counted while the counter is anchored cannot be range checked
    until the anchor's value is known. The counter remembers the extent
    of every such emission and checks them in :meth:`resolve_anchor`.

    Attributes:
        max_address: Highest address a byte may be emitted at
    """

    def __init__(self, max_address: int = 0xFFFF):
        self.max_address = max_address
        self._anchor: Optional[str] = None
        self._offset = 0
        # Anchor name -> (last offset, location) of each emission under it
        self._extents: dict[str, list[tuple[int, Optional[SourceLocation]]]] = {}
        self._bases: dict[str, int] = {}

    @property
    def is_symbolic(self) -> bool:
        """True while the counter is relative to an unresolved anchor."""
        return self._anchor is not None

    @property
    def anchor_name(self) -> Optional[str]:
        return self._anchor

    @property
    def offset(self) -> int:
        """Absolute address, or offset from the anchor when symbolic."""
        return self._offset

    def here(self) -> Here:
        """Return the counter as a value, or as an anchored expression."""
        if self._anchor is None:
            return self._offset
        anchor = ExprNode.symbol(self._anchor)
        if self._offset == 0:
            return anchor
        return ExprNode.binary("+", anchor, ExprNode.number(self._offset))

    def here_expr(self) -> ExprNode:
        """Return the counter as an expression tree."""
        here = self.here()
        if isinstance(here, ExprNode):
            return here
        return ExprNode.number(here)

    def org(self, address: int) -> None:
        """Jump to an absolute address. No bytes are emitted."""
        self._anchor = None
        self._offset = address

    def anchor(self, name: str) -> None:
        """Continue counting from an anchor symbol whose value is pending."""
        self._anchor = name
        self._offset = 0
        self._extents.setdefault(name, [])

    def advance(self, count: int, location: Optional[SourceLocation] = None) -> None:
        """
        Move past ``count`` emitted bytes.

        Raises:
            ValueRangeError: If the bytes would extend past max_address
        """
        if count <= 0:
            return
        last = self._offset + count - 1
        if self._anchor is None:
            self._check_last(last, location)
        else:
            base = self._bases.get(self._anchor)
            if base is None:
                self._extents[self._anchor].append((last, location))
            else:
                self._check_last(base + last, location)
        self._offset += count

    def resolve_anchor(self, name: str, address: int) -> None:
        """
        Record the value of an anchor and check the bytes already counted
        from it.

        Raises:
            ValueRangeError: If any of those bytes lies past max_address
        """
        self._bases[name] = address
        for last, location in self._extents.pop(name, []):
            self._check_last(address + last, location)

    def _check_last(self, last: int, location: Optional[SourceLocation]) -> None:
        if last > self.max_address:
            raise ValueRangeError(
                f"bytes extend past address ${self.max_address:04X}",
                location,
                hint=f"the last byte would be at ${last:X}",
            )


# =============================================================================
# Output Buffer
# =============================================================================

@dataclass
class Gap:
    """
    A run of fill bytes whose length is not known yet.

    Attributes:
        length: Number of bytes, or None while pending
        fill: Byte value repeated through the gap
    """
    length: Optional[int] = None
    fill: int = 0


@dataclass(frozen=True)
class Position:
    """Address of a byte inside the buffer, stable across later appends."""
    chunk: int
    offset: int


Chunk = Union[bytearray, Gap]


class OutputBuffer:
    """
    Ordered, append-only byte output with patchable reservations.

    Usage:
        buffer = OutputBuffer()
        buffer.emit(b"\\x3e")
        operand = buffer.reserve(1)     # value comes later
        ...
        buffer.patch(operand, b"\\x2a")
        data = buffer.to_bytes()
    """

    def __init__(self):
        self._chunks: list[Chunk] = []

    def emit(self, data: bytes) -> Position:
        """Append bytes and return the position of the first one."""
        if not self._chunks or not isinstance(self._chunks[-1], bytearray):
            self._chunks.append(bytearray())
        chunk = self._chunks[-1]
        position = Position(len(self._chunks) - 1, len(chunk))
        chunk.extend(data)
        return position

    def reserve(self, count: int) -> Position:
        """Append ``count`` placeholder zero bytes for later patching."""
        return self.emit(bytes(count))

    def patch(self, position: Position, data: bytes) -> None:
        """Overwrite previously reserved bytes."""
        chunk = self._chunks[position.chunk]
        if not isinstance(chunk, bytearray):
            raise TypeError("cannot patch inside a gap")
        end = position.offset + len(data)
        if end > len(chunk):
            raise IndexError("patch extends past the reserved bytes")
        chunk[position.offset:end] = data

    def gap(self) -> Gap:
        """Append a gap whose length is filled in later."""
        gap = Gap()
        self._chunks.append(gap)
        return gap

    @property
    def has_pending_gaps(self) -> bool:
        return any(isinstance(c, Gap) and c.length is None for c in self._chunks)

    def __len__(self) -> int:
        """Number of bytes known so far (pending gaps count as empty)."""
        total = 0
        for chunk in self._chunks:
            if isinstance(chunk, Gap):
                total += chunk.length or 0
            else:
                total += len(chunk)
        return total

    def to_bytes(self) -> bytes:
        """
        Serialize the buffer.

        Raises:
            ValueError: If a gap still has no length
        """
        out = bytearray()
        for chunk in self._chunks:
            if isinstance(chunk, Gap):
                if chunk.length is None:
                    raise ValueError("output still contains a gap of unknown length")
                out.extend(bytes([chunk.fill & 0xFF]) * chunk.length)
            else:
                out.extend(chunk)
        return bytes(out)
