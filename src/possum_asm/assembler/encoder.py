"""
Instruction Encoder Interface
=============================

The assembler core does not know any instruction set. Each
InstructionNode is handed to an encoder, which returns the pieces that
make up the instruction:

- ``bytes``: opcode bytes emitted as they are
- :class:`OperandField`: an operand expression emitted as a byte or
  little-endian word, deferred like an ``@db``/``@dw`` item when it
  refers forward

Inside an operand field, ``@here`` is the address of the instruction's
first byte.
"""

from dataclasses import dataclass
from typing import Protocol, Sequence, Union

from possum_asm.assembler.expressions import ExprNode
from possum_asm.assembler.nodes import InstructionNode
from possum_asm.errors import InstructionError, TypeMismatchError


@dataclass(frozen=True)
class OperandField:
    """
    An operand value inside an encoded instruction.

    Attributes:
        expr: Operand expression
        size: Encoded size in bytes (1 or 2)
    """
    expr: ExprNode
    size: int = 1


EncodedPiece = Union[bytes, OperandField]


class InstructionEncoder(Protocol):
    """Maps an instruction node to opcode bytes and operand fields."""

    def encode(self, node: InstructionNode) -> Sequence[EncodedPiece]:
        ...


class NullEncoder:
    """Encoder used when none is configured: every instruction is an error."""

    def encode(self, node: InstructionNode) -> Sequence[EncodedPiece]:
        raise InstructionError(
            f"no instruction encoder configured for '{node.mnemonic}'",
            node.location,
            hint="only directives can be assembled without an instruction set",
        )


class TableEncoder:
    """
    Encoder driven by a fixed table of opcodes.

    Each mnemonic maps to its opcode bytes and the sizes of its operands.
    Mnemonics are matched case-insensitively.

    Example:
        encoder = TableEncoder({
            "nop": (b"\\x00", ()),
            "jp": (b"\\xc3", (2,)),
            "djnz": (b"\\x10", (1,)),
        })
    """

    def __init__(self, table: dict[str, tuple[bytes, tuple[int, ...]]]):
        self._table = {name.lower(): entry for name, entry in table.items()}

    def encode(self, node: InstructionNode) -> Sequence[EncodedPiece]:
        entry = self._table.get(node.mnemonic.lower())
        if entry is None:
            raise InstructionError(f"unknown instruction '{node.mnemonic}'", node.location)

        opcode, operand_sizes = entry
        if len(node.operands) != len(operand_sizes):
            raise InstructionError(
                f"'{node.mnemonic}' takes {len(operand_sizes)} operand(s), "
                f"got {len(node.operands)}",
                node.location,
            )

        pieces: list[EncodedPiece] = [opcode]
        for operand, size in zip(node.operands, operand_sizes):
            if isinstance(operand, bytes):
                raise TypeMismatchError(
                    f"'{node.mnemonic}' operand must be numeric, not a string",
                    node.location,
                )
            pieces.append(OperandField(operand, size))
        return pieces
