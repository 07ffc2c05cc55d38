"""
Struct and Enum Processing
==========================

``@struct`` and ``@enum`` are sugar for a batch of symbol definitions.

Struct
------
::

    @struct Entry {
        tag: 1
        name: 16
        name_len: 1
    }

defines ``Entry.tag = 0``, ``Entry.name = 1``, ``Entry.name_len = 17``
and ``Entry = 18``. Each field symbol is the offset of the field (the
sum of the sizes before it) and the struct name is the total size.

A size may refer forward. From the first size that cannot be evaluated
yet, every later offset and the total are defined as pending sums over
the size expressions, so they all resolve as soon as the blocking size
does. Sizes are evaluated in the scope and at the ``@here`` of the
struct block itself.

Enum
----
::

    @enum Color { Red, Green, Blue }

defines ``Color.Red = 0``, ``Color.Green = 1``, ``Color.Blue = 2`` and
``Color = 3``.
"""

from typing import TYPE_CHECKING, Callable, Union

from possum_asm.assembler.expressions import Deferred, ExprNode
from possum_asm.assembler.nodes import EnumBlock, StructBlock, StructField
from possum_asm.assembler.values import wrap32
from possum_asm.errors import (
    MalformedEnumError,
    MalformedStructError,
    TypeMismatchError,
)

if TYPE_CHECKING:
    from possum_asm.assembler.session import AssemblySession


class StructProcessor:
    """Turns struct and enum blocks into symbol definitions."""

    def __init__(self, session: "AssemblySession"):
        self._session = session

    def process_struct(self, block: StructBlock) -> None:
        """
        Define the field offset symbols and the struct size symbol.

        Raises:
            MalformedStructError: No fields, duplicate field, missing or
                negative size
            TypeMismatchError: A string given as a size
        """
        self._validate_struct(block)
        session = self._session
        here = session.counter.here()

        # Running offset: a plain int until a size is pending
        offset: Union[int, ExprNode] = 0

        for item in block.fields:
            session.bind(f"{block.name}.{item.name}", offset, item.location or block.location,
                         here=here)

            check = self._size_check(block, item)
            size = session.evaluate(item.size, here)
            if isinstance(size, Deferred):
                session.defer(item.size, check, size, item.location or block.location,
                              description=f"size of '{block.name}.{item.name}'", here=here)
            else:
                check(size)

            if isinstance(offset, int) and not isinstance(size, Deferred):
                offset = wrap32(offset + size)
            else:
                running = ExprNode.number(offset) if isinstance(offset, int) else offset
                offset = ExprNode.binary("+", running, item.size)

        session.bind(block.name, offset, block.location, here=here)

    def _size_check(self, block: StructBlock, item: StructField) -> Callable[[int], None]:
        def check(size: int) -> None:
            if size < 0:
                raise MalformedStructError(
                    f"field '{item.name}' of struct '{block.name}' has negative size {size}",
                    item.location or block.location,
                    symbols=(f"{block.name}.{item.name}",),
                )

        return check

    def _validate_struct(self, block: StructBlock) -> None:
        if not block.fields:
            raise MalformedStructError(
                f"struct '{block.name}' has no fields",
                block.location,
                symbols=(block.name,),
            )

        seen = set()
        for item in block.fields:
            location = item.location or block.location
            if item.name in seen:
                raise MalformedStructError(
                    f"duplicate field '{item.name}' in struct '{block.name}'",
                    location,
                    symbols=(f"{block.name}.{item.name}",),
                )
            seen.add(item.name)

            if item.size is None:
                raise MalformedStructError(
                    f"field '{item.name}' of struct '{block.name}' has no size",
                    location,
                    hint=f"write the size after the name, e.g. '{item.name}: 1'",
                    symbols=(f"{block.name}.{item.name}",),
                )
            if isinstance(item.size, bytes):
                raise TypeMismatchError(
                    f"size of field '{item.name}' in struct '{block.name}' must be "
                    f"a numeric expression, not a string",
                    location,
                    symbols=(f"{block.name}.{item.name}",),
                )

    def process_enum(self, block: EnumBlock) -> None:
        """
        Define one symbol per variant and the variant count.

        Raises:
            MalformedEnumError: No variants, or a duplicate variant
        """
        if not block.variants:
            raise MalformedEnumError(
                f"enum '{block.name}' has no variants",
                block.location,
                symbols=(block.name,),
            )

        seen = set()
        for variant in block.variants:
            if variant in seen:
                raise MalformedEnumError(
                    f"duplicate variant '{variant}' in enum '{block.name}'",
                    block.location,
                    symbols=(f"{block.name}.{variant}",),
                )
            seen.add(variant)

        for index, variant in enumerate(block.variants):
            self._session.bind(f"{block.name}.{variant}", index, block.location)
        self._session.bind(block.name, len(block.variants), block.location)
