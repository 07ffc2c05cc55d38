"""
Parsed Source Nodes
===================

The parser turns source text into a flat, ordered stream of these nodes,
and the assembly session consumes them one at a time. Nodes can also be
built directly, which is how the session is driven without source text.

| Node                | Source form                              |
|---------------------|------------------------------------------|
| LabelDefinition     | ``main:`` / ``.loop:`` / ``main.loop:``  |
| DirectiveInvocation | ``@db 1, 2, "text"``                     |
| InstructionNode     | ``ld a, 42``                             |
| StructBlock         | ``@struct Point { x: 2, y: 2 }``         |
| EnumBlock           | ``@enum Color { Red, Green }``           |

Directive arguments are already parsed: expressions arrive as ExprNode
trees and strings as decoded bytes.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from possum_asm.assembler.expressions import ExprNode
from possum_asm.errors import SourceLocation


# A directive or instruction argument
Argument = Union[ExprNode, bytes]


@dataclass(kw_only=True)
class Node:
    """Base class for all parsed nodes."""
    location: Optional[SourceLocation] = None


@dataclass
class LabelDefinition(Node):
    """
    Label definition.

    Attributes:
        name: Label name (including the . prefix for local labels)
        is_local: True if this is a local label
    """
    name: str
    is_local: bool = False


@dataclass
class DirectiveInvocation(Node):
    """
    Assembler directive.

    Attributes:
        kind: Directive name without the @ (lowercase)
        args: Parsed arguments
    """
    kind: str
    args: list[Argument] = field(default_factory=list)


@dataclass
class InstructionNode(Node):
    """
    Machine instruction, passed to the instruction encoder.

    Attributes:
        mnemonic: The instruction mnemonic as written
        operands: Parsed operands
    """
    mnemonic: str
    operands: list[Argument] = field(default_factory=list)


@dataclass
class StructField:
    """
    One field of a struct.

    Attributes:
        name: Field name
        size: Size expression, None if missing, or bytes if a string was given
    """
    name: str
    size: Optional[Argument] = None
    location: Optional[SourceLocation] = None


@dataclass
class StructBlock(Node):
    """Struct definition: field offsets plus total size."""
    name: str
    fields: list[StructField] = field(default_factory=list)


@dataclass
class EnumBlock(Node):
    """Enum definition: one ordinal per variant plus the count."""
    name: str
    variants: list[str] = field(default_factory=list)
