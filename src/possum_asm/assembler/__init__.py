"""
Possum Macro Assembler Core
===========================

This package assembles source for 8-bit targets with a 16-bit address
space, resolving forward references of any depth without requiring the
user to write multiple passes.

Main Components
---------------
- **Assembler**: Facade that parses source and runs an assembly session
- **Lexer** / **Parser**: Turn source text into a stream of nodes
- **AssemblySession**: Consumes nodes; owns symbols, output and resolver
- **ExpressionEvaluator**: 32-bit wraparound arithmetic, C precedence
- **SymbolTable**: Global, local and direct labels in one flat mapping
- **Resolver**: Retries deferred expressions until a fixed point
- **DirectiveProcessor** / **StructProcessor**: The ``@`` directives

Assembly Process
----------------
1. **Parsing**: tokenize source and parse it into nodes.
2. **Scan**: feed the nodes to the session in order. Bytes are emitted
   straight away; expressions that refer forward reserve their bytes and
   are registered with the resolver.
3. **Resolution**: sweep the deferred expressions until nothing is left
   or a sweep makes no progress, patching reserved bytes as values
   become known.

Example Usage
-------------
>>> from possum_asm.assembler import Assembler
>>> asm = Assembler()
>>> asm.assemble_string('''
... start:
...     @db end - start
...     @ds 3, $FF
... end:
... ''')
b'\\x04\\xff\\xff\\xff'

Supported Features
------------------
- Labels (global, ``.local`` and direct ``global.local``)
- Symbols (@def), structs (@struct) and enums (@enum)
- Data directives (@db, @dw, @ds) and origin (@org)
- Diagnostics (@echo, @assert, @die)
- Expressions with C operators, ``@here``, and logical shifts ``<: :>``
- Symbol table output
"""

from possum_asm.assembler.assembler import Assembler, assemble, assemble_file
from possum_asm.assembler.encoder import (
    InstructionEncoder,
    NullEncoder,
    OperandField,
    TableEncoder,
)
from possum_asm.assembler.expressions import (
    Deferred,
    ExpressionEvaluator,
    ExprNode,
    ExprNodeType,
    evaluate,
)
from possum_asm.assembler.lexer import Lexer, Token, TokenType
from possum_asm.assembler.nodes import (
    DirectiveInvocation,
    EnumBlock,
    InstructionNode,
    LabelDefinition,
    Node,
    StructBlock,
    StructField,
)
from possum_asm.assembler.parser import Parser, parse_expression, parse_source
from possum_asm.assembler.resolver import DeferredThunk, Resolver
from possum_asm.assembler.session import AssemblyResult, AssemblySession
from possum_asm.assembler.symbols import LabelKind, Symbol, SymbolTable

__all__ = [
    # Main class and functions
    "Assembler",
    "assemble",
    "assemble_file",
    # Session
    "AssemblySession",
    "AssemblyResult",
    # Lexer
    "Lexer",
    "Token",
    "TokenType",
    # Parser
    "Parser",
    "parse_source",
    "parse_expression",
    # Nodes
    "Node",
    "LabelDefinition",
    "DirectiveInvocation",
    "InstructionNode",
    "StructBlock",
    "StructField",
    "EnumBlock",
    # Expressions
    "ExprNode",
    "ExprNodeType",
    "ExpressionEvaluator",
    "Deferred",
    "evaluate",
    # Symbols and resolution
    "SymbolTable",
    "Symbol",
    "LabelKind",
    "Resolver",
    "DeferredThunk",
    # Instruction encoding
    "InstructionEncoder",
    "NullEncoder",
    "TableEncoder",
    "OperandField",
]
