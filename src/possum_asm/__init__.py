"""
Possum Assembler - Macro Assembler for 8-bit Targets
====================================================

This package provides the symbol-resolution and expression-evaluation
engine of a macro assembler for an 8-bit CPU with a 16-bit address
space, together with a source front end and the ``possum-asm`` command.

Main Components
---------------
- **assembler**: Lexer, parser, assembly session and resolver
- **cli**: The possum-asm command-line tool
- **config**: Session limits, from defaults or the environment
- **errors**: Exception hierarchy shared by all components

Quick Start
-----------
Assemble a program:
    >>> from possum_asm import Assembler
    >>> asm = Assembler()
    >>> code = asm.assemble_file("program.asm")
    >>> asm.write_binary("program.bin")

Or use the command-line tool:
    $ possum-asm program.asm -o program.bin -s program.sym
"""

__version__ = "1.0.0"
__author__ = "Possum Assembler Contributors"

# =============================================================================
# Public API Exports
# =============================================================================

from possum_asm.assembler import Assembler, AssemblySession, assemble, assemble_file
from possum_asm.config import AssemblerConfig
from possum_asm.errors import (
    PossumError,
    AssemblerError,
    AssemblySyntaxError,
    DuplicateSymbolError,
    UnresolvedSymbolError,
    ScopeError,
    TypeMismatchError,
    ExpressionError,
    DivisionByZeroError,
    ValueRangeError,
    DirectiveError,
    MalformedStructError,
    MalformedEnumError,
    AssertionFailedError,
    ExplicitAbortError,
    InstructionError,
    SourceLocation,
)

__all__ = [
    # Version info
    "__version__",
    "__author__",
    # Assembler
    "Assembler",
    "AssemblySession",
    "AssemblerConfig",
    "assemble",
    "assemble_file",
    # Exception hierarchy
    "PossumError",
    "AssemblerError",
    "AssemblySyntaxError",
    "DuplicateSymbolError",
    "UnresolvedSymbolError",
    "ScopeError",
    "TypeMismatchError",
    "ExpressionError",
    "DivisionByZeroError",
    "ValueRangeError",
    "DirectiveError",
    "MalformedStructError",
    "MalformedEnumError",
    "AssertionFailedError",
    "ExplicitAbortError",
    "InstructionError",
    "SourceLocation",
]
