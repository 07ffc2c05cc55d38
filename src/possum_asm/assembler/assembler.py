"""
Assembler - Main Interface
==========================

This module provides the main Assembler class, the primary interface for
assembling source code. It runs the lexer and parser, feeds the nodes to
an AssemblySession, and keeps the result for the output methods.

Example Usage
-------------
>>> from possum_asm.assembler import Assembler
>>>
>>> asm = Assembler()
>>> asm.assemble_string('''
...     @org $8000
... start:
...     @dw end
...     @db "hi", 0
... end:
... ''')
>>> asm.get_code().hex()
'0580686900'
>>> asm.get_symbols()["end"]
32773

Command-Line Usage
------------------
The assembler can also be invoked from the command line:

    $ possum-asm program.asm -o program.bin -s program.sym

Options:
    -o, --output FILE      Output binary file
    -s, --symbols FILE     Generate symbol file
    -D, --define SYM=VAL   Pre-define symbol
    -q, --quiet            Do not print @echo messages
    -v, --verbose          Verbose output
"""

from pathlib import Path
from typing import Iterable, Optional

from possum_asm.assembler.encoder import InstructionEncoder
from possum_asm.assembler.nodes import Node
from possum_asm.assembler.parser import parse_source
from possum_asm.assembler.session import AssemblyResult, AssemblySession
from possum_asm.assembler.values import to_unsigned32
from possum_asm.config import AssemblerConfig
from possum_asm.errors import AssemblerError


class Assembler:
    """
    Main assembler class.

    Each call to an ``assemble_*`` method runs a fresh AssemblySession,
    seeded with the symbols given to define_symbol().

    Attributes:
        verbose: If True, print progress messages
    """

    def __init__(
        self,
        verbose: bool = False,
        defines: dict[str, int] | None = None,
        config: AssemblerConfig | None = None,
        encoder: InstructionEncoder | None = None,
    ):
        """
        Initialize the assembler.

        Args:
            verbose: Enable verbose output
            defines: Dictionary of pre-defined symbols
            config: Session limits (default: AssemblerConfig.from_env())
            encoder: Instruction encoder (default: none, directives only)
        """
        self.verbose = verbose
        self._config = config or AssemblerConfig.from_env()
        self._encoder = encoder
        self._defines: dict[str, int] = {}
        self._result: Optional[AssemblyResult] = None

        if defines:
            for name, value in defines.items():
                self.define_symbol(name, value)

    def define_symbol(self, name: str, value: int) -> None:
        """
        Pre-define a symbol (like -D on command line).

        Args:
            name: Symbol name
            value: Symbol value
        """
        self._defines[name] = value

    # =========================================================================
    # Assembly Methods
    # =========================================================================

    def assemble_nodes(self, nodes: Iterable[Node]) -> bytes:
        """
        Assemble an already-parsed node stream.

        Returns:
            Assembled bytes

        Raises:
            AssemblerError: If assembly fails
        """
        session = AssemblySession(self._config, self._encoder)
        for name, value in self._defines.items():
            session.define_symbol(name, value)

        self._result = None
        session.feed_all(nodes)
        self._result = session.finish()

        if self.verbose:
            print(f"Generated {len(self._result.data)} bytes, "
                  f"{len(self._result.symbols)} symbols")

        return self._result.data

    def assemble_string(self, source: str, filename: str = "<input>") -> bytes:
        """
        Assemble source code from a string.

        Args:
            source: Assembly source code
            filename: Virtual filename for error messages

        Returns:
            Assembled bytes

        Raises:
            AssemblerError: If assembly fails
        """
        if self.verbose:
            print(f"Assembling {filename}...")

        nodes = parse_source(source, filename)

        if self.verbose:
            print(f"Parsed {len(nodes)} nodes")

        return self.assemble_nodes(nodes)

    def assemble_file(self, filepath: str | Path) -> bytes:
        """
        Assemble source code from a file.

        Raises:
            AssemblerError: If assembly fails
            FileNotFoundError: If source file not found
        """
        filepath = Path(filepath)
        source = filepath.read_text(encoding="utf-8")
        return self.assemble_string(source, str(filepath))

    # =========================================================================
    # Output Methods
    # =========================================================================

    def _require_result(self) -> AssemblyResult:
        if self._result is None:
            raise AssemblerError("nothing has been assembled yet")
        return self._result

    def get_code(self) -> bytes:
        """Get the assembled bytes."""
        return self._require_result().data

    def get_symbols(self) -> dict[str, int]:
        """Get the resolved symbol table."""
        return dict(self._require_result().symbols)

    def get_messages(self) -> list[str]:
        """Get @echo messages in the order they were resolved."""
        return list(self._require_result().messages)

    def write_binary(self, filepath: str | Path) -> None:
        """Write the assembled bytes as a raw binary file."""
        code = self.get_code()
        Path(filepath).write_bytes(code)

        if self.verbose:
            print(f"Wrote {len(code)} bytes to {filepath}")

    def write_symbols(self, filepath: str | Path) -> None:
        """
        Write symbol table file.

        Format: name value (one per line, sorted by name). Values that fit
        in 16 bits are written as 4 hex digits, others as 8.
        """
        symbols = self.get_symbols()
        with open(filepath, "w", encoding="utf-8") as f:
            f.write("# Symbol table\n")
            f.write("# Generated by possum-asm\n")
            for name, value in sorted(symbols.items()):
                f.write(f"{name} {format_value(value)}\n")

        if self.verbose:
            print(f"Wrote symbols to {filepath}")


def format_value(value: int) -> str:
    """Format a value as hex, the way the symbol file shows it."""
    if 0 <= value <= 0xFFFF:
        return f"${value:04X}"
    return f"${to_unsigned32(value):08X}"


# =============================================================================
# Convenience Functions
# =============================================================================

def assemble(source: str, filename: str = "<input>", **kwargs) -> bytes:
    """
    Convenience function to assemble source code.

    Args:
        source: Assembly source code
        filename: Virtual filename for errors
        **kwargs: Passed to Assembler()

    Returns:
        Assembled bytes

    Raises:
        AssemblerError: If assembly fails
    """
    return Assembler(**kwargs).assemble_string(source, filename)


def assemble_file(filepath: str | Path, **kwargs) -> bytes:
    """
    Convenience function to assemble a file.

    Raises:
        AssemblerError: If assembly fails
    """
    return Assembler(**kwargs).assemble_file(filepath)
