"""
Assembly Language Parser
========================

This module implements the parser for the assembler. It converts a
stream of tokens from the lexer into the ordered node stream the
assembly session consumes.

Statements
----------
1. **LabelDefinition**: ``name:``, ``.local:`` or ``global.local:``.
   A label may share its line with a following statement.

2. **DirectiveInvocation**: ``@name`` followed by comma-separated
   arguments, each an expression or a string.
   ```asm
   @org $8000
   @def SIZE, end - start
   @db "hi", 0
   ```

3. **StructBlock** and **EnumBlock**: braces around fields or variants,
   separated by commas and/or newlines.
   ```asm
   @struct Entry {
       tag: 1
       name: 16
   }
   @enum Color { Red, Green, Blue }
   ```

4. **InstructionNode**: any other identifier at the start of a
   statement is a mnemonic; its operands are parsed like directive
   arguments and handed to the instruction encoder.

Expressions
-----------
Expressions are parsed by recursive descent with C precedence, from
``?:`` (lowest) through ``|| && | ^ &``, equality, relational, shifts,
additive and multiplicative operators to the unary ``- + ~ !``.
``@here`` is the current location counter.
"""

from typing import Optional

from possum_asm.assembler.expressions import ExprNode
from possum_asm.assembler.lexer import Lexer, Token, TokenType
from possum_asm.assembler.nodes import (
    Argument,
    DirectiveInvocation,
    EnumBlock,
    InstructionNode,
    LabelDefinition,
    Node,
    StructBlock,
    StructField,
)
from possum_asm.errors import AssemblySyntaxError


# =============================================================================
# Operator Precedence
# =============================================================================

# Binary operator levels, lowest precedence first
BINARY_LEVELS: list[dict[TokenType, str]] = [
    {TokenType.PIPE_PIPE: "||"},
    {TokenType.AND_AND: "&&"},
    {TokenType.PIPE: "|"},
    {TokenType.CARET: "^"},
    {TokenType.AMPERSAND: "&"},
    {TokenType.EQ: "==", TokenType.NE: "!="},
    {TokenType.LT: "<", TokenType.LE: "<=", TokenType.GT: ">", TokenType.GE: ">="},
    {TokenType.LSHIFT: "<<", TokenType.RSHIFT: ">>",
     TokenType.ULSHIFT: "<:", TokenType.URSHIFT: ":>"},
    {TokenType.PLUS: "+", TokenType.MINUS: "-"},
    {TokenType.STAR: "*", TokenType.SLASH: "/", TokenType.PERCENT: "%"},
]

UNARY_OPERATORS: dict[TokenType, str] = {
    TokenType.MINUS: "-",
    TokenType.PLUS: "+",
    TokenType.TILDE: "~",
    TokenType.BANG: "!",
}

# Directives with their own block syntax
BLOCK_DIRECTIVES = frozenset({"struct", "enum"})


# =============================================================================
# Parser Implementation
# =============================================================================

class Parser:
    """
    Parses assembly tokens into nodes.

    Usage:
        lexer = Lexer(source, filename)
        tokens = list(lexer.tokenize())
        parser = Parser(tokens, filename, source)
        nodes = parser.parse()
    """

    def __init__(
        self,
        tokens: list[Token],
        filename: str = "<input>",
        source: Optional[str] = None,
    ):
        """
        Initialize the parser.

        Args:
            tokens: List of tokens from lexer
            filename: Source filename for error reporting
            source: Source text, used to show the offending line in errors
        """
        self._tokens = tokens
        self._filename = filename
        self._source_lines = source.splitlines() if source else []
        self._pos = 0

    def parse(self) -> list[Node]:
        """
        Parse all tokens into nodes.

        Raises:
            AssemblySyntaxError: If syntax error encountered
        """
        nodes: list[Node] = []

        while not self._at_end():
            if self._match(TokenType.NEWLINE):
                continue
            nodes.extend(self._parse_line())

        return nodes

    def parse_expression(self) -> ExprNode:
        """Parse a single expression that must make up all the input."""
        expr = self._parse_expression()
        self._match(TokenType.NEWLINE)
        if not self._at_end():
            raise self._error(f"unexpected {self._describe(self._current())} after expression")
        return expr

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self._tokens) or self._current().type == TokenType.EOF

    def _current(self) -> Token:
        if self._pos >= len(self._tokens):
            last = self._tokens[-1] if self._tokens else None
            return Token(
                TokenType.EOF, None,
                last.line if last else 1,
                last.column if last else 1,
                last.filename if last else self._filename
            )
        return self._tokens[self._pos]

    def _peek(self, offset: int = 0) -> Token:
        pos = self._pos + offset
        if pos >= len(self._tokens):
            return self._current()
        return self._tokens[pos]

    def _advance(self) -> Token:
        token = self._current()
        self._pos += 1
        return token

    def _check(self, *types: TokenType) -> bool:
        return self._current().type in types

    def _match(self, *types: TokenType) -> Optional[Token]:
        if self._check(*types):
            return self._advance()
        return None

    def _expect(self, token_type: TokenType, message: str) -> Token:
        if not self._check(token_type):
            raise self._error(message)
        return self._advance()

    def _error(self, message: str, token: Optional[Token] = None) -> AssemblySyntaxError:
        """Create a syntax error at a token, with its source line when known."""
        token = token or self._current()
        source_line = None
        if 0 < token.line <= len(self._source_lines):
            source_line = self._source_lines[token.line - 1]
        return AssemblySyntaxError(message, token.location, source_line=source_line)

    @staticmethod
    def _describe(token: Token) -> str:
        if token.type == TokenType.NEWLINE:
            return "end of line"
        if token.type == TokenType.EOF:
            return "end of input"
        if token.type == TokenType.DIRECTIVE:
            return f"'@{token.value}'"
        if token.type == TokenType.STRING:
            return "string"
        if isinstance(token.value, int):
            return f"number {token.value}"
        return f"'{token.value}'"

    # =========================================================================
    # Statement Parsing
    # =========================================================================

    def _parse_line(self) -> list[Node]:
        """Parse labels and at most one statement, up to the end of line."""
        nodes: list[Node] = []

        while self._check(TokenType.IDENTIFIER) and self._peek(1).type == TokenType.COLON:
            token = self._advance()
            self._advance()
            nodes.append(LabelDefinition(
                token.value,
                is_local=token.value.startswith("."),
                location=token.location,
            ))

        if self._check(TokenType.DIRECTIVE):
            nodes.append(self._parse_directive())
        elif self._check(TokenType.IDENTIFIER):
            nodes.append(self._parse_instruction())

        if not self._match(TokenType.NEWLINE) and not self._at_end():
            raise self._error(f"unexpected {self._describe(self._current())}")

        return nodes

    def _parse_directive(self) -> Node:
        token = self._advance()
        kind = token.value

        if kind in BLOCK_DIRECTIVES:
            return self._parse_block(token)

        if kind == "here":
            raise self._error("@here is only valid inside an expression", token)

        return DirectiveInvocation(kind, self._parse_arguments(), location=token.location)

    def _parse_instruction(self) -> InstructionNode:
        token = self._advance()
        return InstructionNode(token.value, self._parse_arguments(), location=token.location)

    def _parse_arguments(self) -> list[Argument]:
        args: list[Argument] = []
        if self._check(TokenType.NEWLINE, TokenType.EOF):
            return args

        args.append(self._parse_argument())
        while self._match(TokenType.COMMA):
            args.append(self._parse_argument())
        return args

    def _parse_argument(self) -> Argument:
        string_token = self._match(TokenType.STRING)
        if string_token is not None:
            return string_token.value
        return self._parse_expression()

    # =========================================================================
    # Struct and Enum Blocks
    # =========================================================================

    def _parse_block(self, directive: Token) -> Node:
        name_token = self._expect(
            TokenType.IDENTIFIER, f"expected a name after '@{directive.value}'"
        )
        name = name_token.value
        if "." in name:
            raise self._error(f"'@{directive.value}' name may not contain '.'", name_token)

        self._skip_newlines()
        self._expect(TokenType.LBRACE, f"expected '{{' after '@{directive.value} {name}'")

        if directive.value == "struct":
            fields = self._parse_block_items(self._parse_struct_field)
            return StructBlock(name, fields, location=directive.location)

        variants = self._parse_block_items(self._parse_enum_variant)
        return EnumBlock(name, variants, location=directive.location)

    def _parse_block_items(self, parse_item) -> list:
        """Parse items separated by commas and/or newlines, up to '}'."""
        items = []
        self._skip_separators()
        while not self._match(TokenType.RBRACE):
            if self._at_end():
                raise self._error("expected '}' to close block")
            items.append(parse_item())
            if not self._check(TokenType.COMMA, TokenType.NEWLINE, TokenType.RBRACE):
                raise self._error(f"unexpected {self._describe(self._current())} in block")
            self._skip_separators()
        return items

    def _parse_struct_field(self) -> StructField:
        token = self._expect(TokenType.IDENTIFIER, "expected a field name")
        if "." in token.value:
            raise self._error("field name may not contain '.'", token)

        size: Optional[Argument] = None
        if self._match(TokenType.COLON):
            if not self._check(TokenType.COMMA, TokenType.NEWLINE, TokenType.RBRACE):
                size = self._parse_argument()
        return StructField(token.value, size, location=token.location)

    def _parse_enum_variant(self) -> str:
        token = self._expect(TokenType.IDENTIFIER, "expected a variant name")
        if "." in token.value:
            raise self._error("variant name may not contain '.'", token)
        return token.value

    def _skip_newlines(self) -> None:
        while self._match(TokenType.NEWLINE):
            pass

    def _skip_separators(self) -> None:
        while self._match(TokenType.NEWLINE, TokenType.COMMA):
            pass

    # =========================================================================
    # Expression Parsing
    # =========================================================================

    def _parse_expression(self) -> ExprNode:
        """Parse a full expression (ternary is the lowest precedence)."""
        condition = self._parse_binary(0)

        question = self._match(TokenType.QUESTION)
        if question is None:
            return condition

        if_true = self._parse_expression()
        self._expect(TokenType.COLON, "expected ':' in conditional expression")
        if_false = self._parse_expression()
        return ExprNode.ternary(condition, if_true, if_false, location=question.location)

    def _parse_binary(self, level: int) -> ExprNode:
        """Parse left-associative binary operators from a precedence level up."""
        if level == len(BINARY_LEVELS):
            return self._parse_unary()

        operators = BINARY_LEVELS[level]
        left = self._parse_binary(level + 1)

        while self._current().type in operators:
            token = self._advance()
            right = self._parse_binary(level + 1)
            left = ExprNode.binary(operators[token.type], left, right, location=token.location)

        return left

    def _parse_unary(self) -> ExprNode:
        token = self._current()
        if token.type in UNARY_OPERATORS:
            self._advance()
            operand = self._parse_unary()
            return ExprNode.unary(UNARY_OPERATORS[token.type], operand, location=token.location)
        return self._parse_primary()

    def _parse_primary(self) -> ExprNode:
        token = self._current()

        if token.type == TokenType.NUMBER:
            self._advance()
            return ExprNode.number(token.value, location=token.location)

        if token.type == TokenType.IDENTIFIER:
            self._advance()
            return ExprNode.symbol(token.value, location=token.location)

        if token.type == TokenType.DIRECTIVE and token.value == "here":
            self._advance()
            return ExprNode.here(location=token.location)

        if token.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_expression()
            self._expect(TokenType.RPAREN, "expected ')' to close expression")
            return expr

        if token.type == TokenType.STRING:
            raise self._error("a string cannot be used inside an expression")

        raise self._error(f"expected a value, got {self._describe(token)}")


# =============================================================================
# Convenience Functions
# =============================================================================

def parse_source(source: str, filename: str = "<input>") -> list[Node]:
    """
    Parse assembly source text into nodes.

    Args:
        source: Assembly source text
        filename: Source filename for error messages

    Returns:
        List of parsed nodes, in source order
    """
    tokens = list(Lexer(source, filename).tokenize())
    return Parser(tokens, filename, source).parse()


def parse_expression(text: str, filename: str = "<input>") -> ExprNode:
    """Parse a single expression from text."""
    tokens = list(Lexer(text, filename).tokenize())
    return Parser(tokens, filename, text).parse_expression()
