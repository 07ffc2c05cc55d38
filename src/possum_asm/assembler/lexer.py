"""
Assembly Language Lexer
=======================

This module implements the lexer (tokenizer) for the assembler. It
converts source text into a stream of tokens that the parser can process.

Token Types
-----------
- IDENTIFIER: Labels, mnemonics, symbol names (``main``, ``.loop``,
  ``main.loop``)
- DIRECTIVE: ``@`` followed by a name (``@db``, ``@here``)
- NUMBER: Decimal, hex, binary, octal, character literals
- STRING: Double-quoted strings, decoded to bytes
- Operators: ``+ - * / % & | ^ ~ ! << >> <: :> && || == != < <= > >= ?``
- Delimiters: ``, : ( ) { }``
- NEWLINE: End of line
- EOF: End of file

Number Formats
--------------
| Format      | Prefix     | Example       | Value |
|-------------|------------|---------------|-------|
| Decimal     | (none)     | 123           | 123   |
| Hexadecimal | $ or 0x    | $7F, 0x7F     | 127   |
| Binary      | % or 0b    | %1010, 0b1010 | 10    |
| Octal       | 0o         | 0o177         | 127   |
| Character   | '          | 'A'           | 65    |

``%`` is read as a binary prefix only where a value may start; after a
value it is the modulo operator, so ``10 %10`` is ``10 % 10``.

Strings
-------
Escapes: ``\\n \\r \\t \\\\ \\" \\' \\0 \\xNN \\$NN``. Strings are decoded
to Latin-1 bytes; characters outside Latin-1 are rejected.

Comments
--------
``;`` starts a comment that runs to the end of the line.

Example
-------
>>> from possum_asm.assembler.lexer import Lexer
>>> for token in Lexer("loop: @db $41 ; 'A'", "example.asm").tokenize():
...     print(token)
Token(IDENTIFIER, 'loop', 1:1)
Token(COLON, ':', 1:5)
Token(DIRECTIVE, 'db', 1:7)
Token(NUMBER, $41, 1:11)
Token(EOF, 1:20)
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional
import string

from possum_asm.errors import AssemblySyntaxError, SourceLocation


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """Token types for the assembly language."""

    # Structural tokens
    NEWLINE = auto()     # End of line (significant for statement boundaries)
    EOF = auto()         # End of file

    # Values
    IDENTIFIER = auto()  # Labels, mnemonics, symbols
    DIRECTIVE = auto()   # @name
    NUMBER = auto()      # Numeric literals (all formats)
    STRING = auto()      # Double-quoted string "..."

    # Arithmetic operators
    PLUS = auto()        # +
    MINUS = auto()       # -
    STAR = auto()        # *
    SLASH = auto()       # /
    PERCENT = auto()     # %

    # Bitwise operators
    AMPERSAND = auto()   # &
    PIPE = auto()        # |
    CARET = auto()       # ^
    TILDE = auto()       # ~
    LSHIFT = auto()      # <<
    RSHIFT = auto()      # >>
    ULSHIFT = auto()     # <:
    URSHIFT = auto()     # :>

    # Logical operators
    BANG = auto()        # !
    AND_AND = auto()     # &&
    PIPE_PIPE = auto()   # ||
    QUESTION = auto()    # ?

    # Comparison operators
    LT = auto()          # <
    GT = auto()          # >
    LE = auto()          # <=
    GE = auto()          # >=
    EQ = auto()          # ==
    NE = auto()          # !=

    # Delimiters
    COMMA = auto()       # ,
    COLON = auto()       # :
    LPAREN = auto()      # (
    RPAREN = auto()      # )
    LBRACE = auto()      # {
    RBRACE = auto()      # }


# Tokens after which an operator, not a value, is expected
VALUE_END_TOKENS = frozenset({
    TokenType.IDENTIFIER,
    TokenType.DIRECTIVE,
    TokenType.NUMBER,
    TokenType.STRING,
    TokenType.RPAREN,
})


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    A single token from the source code.

    Attributes:
        type: The TokenType classification
        value: Name for identifiers and directives, int for numbers,
               bytes for strings, the operator text for operators
        line: Line number in source (1-indexed)
        column: Column number in source (1-indexed)
        filename: Name of the source file
    """
    type: TokenType
    value: str | int | bytes | None
    line: int
    column: int
    filename: str

    def __repr__(self) -> str:
        if self.value is not None:
            if isinstance(self.value, int):
                return f"Token({self.type.name}, ${self.value:X}, {self.line}:{self.column})"
            return f"Token({self.type.name}, {self.value!r}, {self.line}:{self.column})"
        return f"Token({self.type.name}, {self.line}:{self.column})"

    @property
    def location(self) -> SourceLocation:
        """Return a SourceLocation for error reporting."""
        return SourceLocation(self.filename, self.line, self.column)


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes assembly source code.

    Usage:
        lexer = Lexer(source_text, filename)
        tokens = list(lexer.tokenize())

    Attributes:
        source: The source code being tokenized
        filename: Name of the source file (for error reporting)
    """

    # Characters that can start an identifier
    IDENT_START = string.ascii_letters + "_"

    # Characters that can continue an identifier
    IDENT_CHARS = string.ascii_letters + string.digits + "_"

    # Operators that are never the first character of a longer one
    SINGLE_CHAR_TOKENS = {
        "+": TokenType.PLUS,
        "-": TokenType.MINUS,
        "*": TokenType.STAR,
        "/": TokenType.SLASH,
        "^": TokenType.CARET,
        "~": TokenType.TILDE,
        "?": TokenType.QUESTION,
        ",": TokenType.COMMA,
        "(": TokenType.LPAREN,
        ")": TokenType.RPAREN,
        "{": TokenType.LBRACE,
        "}": TokenType.RBRACE,
    }

    # Two-character operators, checked before their one-character prefixes
    DOUBLE_CHAR_TOKENS = {
        "<<": TokenType.LSHIFT,
        ">>": TokenType.RSHIFT,
        "<:": TokenType.ULSHIFT,
        ":>": TokenType.URSHIFT,
        "<=": TokenType.LE,
        ">=": TokenType.GE,
        "==": TokenType.EQ,
        "!=": TokenType.NE,
        "&&": TokenType.AND_AND,
        "||": TokenType.PIPE_PIPE,
    }

    PREFIX_CHAR_TOKENS = {
        "<": TokenType.LT,
        ">": TokenType.GT,
        ":": TokenType.COLON,
        "!": TokenType.BANG,
        "&": TokenType.AMPERSAND,
        "|": TokenType.PIPE,
        "%": TokenType.PERCENT,
    }

    # Escape sequences in strings and character literals
    ESCAPE_SEQUENCES = {
        "n": "\n",
        "r": "\r",
        "t": "\t",
        "\\": "\\",
        '"': '"',
        "'": "'",
        "0": "\0",
    }

    def __init__(self, source: str, filename: str = "<input>", line_number: int = 1):
        """
        Initialize the lexer with source code.

        Args:
            source: The assembly source code to tokenize
            filename: Name of the source file (for error messages)
            line_number: Starting line number (default 1)
        """
        self.source = source
        self.filename = filename

        self._pos = 0
        self._line = line_number
        self._column = 1
        self._line_start_pos = 0
        self._last_type: Optional[TokenType] = None

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens from the source code.

        Raises:
            AssemblySyntaxError: If invalid syntax is encountered
        """
        while not self._at_end():
            if self._skip_whitespace():
                continue

            if self._skip_comment():
                continue

            token = self._scan_token()
            self._last_type = token.type
            yield token

        yield self._make_token(TokenType.EOF, None)

    # =========================================================================
    # Character Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        """Look ahead without advancing. Returns "" past the end."""
        pos = self._pos + offset
        if pos >= len(self.source):
            return ""
        return self.source[pos]

    def _advance(self) -> str:
        """Consume and return the current character."""
        if self._at_end():
            return ""

        char = self.source[self._pos]
        self._pos += 1

        if char == "\n":
            self._line += 1
            self._column = 1
            self._line_start_pos = self._pos
        else:
            self._column += 1

        return char

    # =========================================================================
    # Token Creation
    # =========================================================================

    def _make_token(
        self,
        token_type: TokenType,
        value: str | int | bytes | None,
        start_line: Optional[int] = None,
        start_column: Optional[int] = None,
    ) -> Token:
        return Token(
            type=token_type,
            value=value,
            line=start_line or self._line,
            column=start_column or self._column,
            filename=self.filename,
        )

    def _error(self, message: str) -> AssemblySyntaxError:
        """Create a syntax error at the current location."""
        location = SourceLocation(self.filename, self._line, self._column)

        line_end = self.source.find("\n", self._line_start_pos)
        if line_end == -1:
            line_end = len(self.source)
        source_line = self.source[self._line_start_pos:line_end]

        return AssemblySyntaxError(message, location, source_line=source_line)

    # =========================================================================
    # Whitespace and Comment Handling
    # =========================================================================

    def _skip_whitespace(self) -> bool:
        """Skip spaces, tabs and carriage returns, but not newlines."""
        skipped = False
        # '' in " \t\r" is True, so check for end of input first
        while self._peek() and self._peek() in " \t\r":
            self._advance()
            skipped = True
        return skipped

    def _skip_comment(self) -> bool:
        if self._peek() == ";":
            while not self._at_end() and self._peek() != "\n":
                self._advance()
            return True
        return False

    # =========================================================================
    # Token Scanning
    # =========================================================================

    def _scan_token(self) -> Token:
        start_line = self._line
        start_column = self._column

        char = self._peek()

        if char == "\n":
            self._advance()
            return self._make_token(TokenType.NEWLINE, None, start_line, start_column)

        if char in self.IDENT_START:
            return self._scan_identifier(start_line, start_column)

        if char == ".":
            return self._scan_local_name(start_line, start_column)

        if char == "@":
            return self._scan_directive(start_line, start_column)

        if char.isdigit():
            return self._scan_decimal_number(start_line, start_column)

        if char == "$":
            self._advance()
            return self._scan_digits(string.hexdigits, 16, "hexadecimal", start_line, start_column)

        if char == "%" and self._last_type not in VALUE_END_TOKENS and self._peek(1) in ("0", "1"):
            self._advance()
            return self._scan_digits("01", 2, "binary", start_line, start_column)

        if char == '"':
            return self._scan_string(start_line, start_column)

        if char == "'":
            return self._scan_char(start_line, start_column)

        pair = char + self._peek(1)
        if pair in self.DOUBLE_CHAR_TOKENS:
            self._advance()
            self._advance()
            return self._make_token(self.DOUBLE_CHAR_TOKENS[pair], pair, start_line, start_column)

        if char in self.PREFIX_CHAR_TOKENS:
            self._advance()
            return self._make_token(self.PREFIX_CHAR_TOKENS[char], char, start_line, start_column)

        if char in self.SINGLE_CHAR_TOKENS:
            self._advance()
            return self._make_token(self.SINGLE_CHAR_TOKENS[char], char, start_line, start_column)

        if char == "=":
            raise self._error("unexpected '=', use '==' for comparison or @def to define a symbol")

        raise self._error(f"unexpected character '{char}'")

    def _scan_name_part(self) -> str:
        chars = []
        while self._peek() and self._peek() in self.IDENT_CHARS:
            chars.append(self._advance())
        return "".join(chars)

    def _scan_identifier(self, start_line: int, start_column: int) -> Token:
        """
        Scan a global name, or a direct ``global.local`` name.
        """
        name = self._scan_name_part()

        if self._peek() == "." and self._peek(1) and self._peek(1) in self.IDENT_START:
            self._advance()
            name = f"{name}.{self._scan_name_part()}"
            if self._peek() == ".":
                raise self._error("a name may contain at most one '.'")

        return self._make_token(TokenType.IDENTIFIER, name, start_line, start_column)

    def _scan_local_name(self, start_line: int, start_column: int) -> Token:
        """Scan a local name: ``.`` followed by an identifier."""
        self._advance()
        if not (self._peek() and self._peek() in self.IDENT_START):
            raise self._error("expected identifier after '.'")
        name = self._scan_name_part()
        if self._peek() == ".":
            raise self._error("a name may contain at most one '.'")
        return self._make_token(TokenType.IDENTIFIER, f".{name}", start_line, start_column)

    def _scan_directive(self, start_line: int, start_column: int) -> Token:
        self._advance()
        if not (self._peek() and self._peek() in self.IDENT_START):
            raise self._error("expected directive name after '@'")
        name = self._scan_name_part()
        return self._make_token(TokenType.DIRECTIVE, name.lower(), start_line, start_column)

    def _scan_decimal_number(self, start_line: int, start_column: int) -> Token:
        """Scan a decimal number, or a 0x / 0b / 0o prefixed one."""
        if self._peek() == "0":
            prefix = self._peek(1).lower()
            radixes = {"x": (string.hexdigits, 16, "hexadecimal"),
                       "b": ("01", 2, "binary"),
                       "o": ("01234567", 8, "octal")}
            if prefix in radixes:
                self._advance()
                self._advance()
                digits, base, name = radixes[prefix]
                return self._scan_digits(digits, base, name, start_line, start_column)

        return self._scan_digits(string.digits, 10, "decimal", start_line, start_column)

    def _scan_digits(
        self,
        digits: str,
        base: int,
        name: str,
        start_line: int,
        start_column: int,
    ) -> Token:
        chars = []
        while self._peek() and (self._peek() in digits or self._peek() == "_"):
            char = self._advance()
            if char != "_":
                chars.append(char)

        if not chars:
            raise self._error(f"expected {name} digits")
        if self._peek() and self._peek() in self.IDENT_CHARS:
            raise self._error(f"invalid {name} digit '{self._peek()}'")

        value = int("".join(chars), base)
        return self._make_token(TokenType.NUMBER, value, start_line, start_column)

    def _scan_string(self, start_line: int, start_column: int) -> Token:
        self._advance()  # consume opening "

        chars = []
        while not self._at_end():
            char = self._peek()

            if char == '"':
                self._advance()
                return self._make_token(
                    TokenType.STRING,
                    self._encode("".join(chars)),
                    start_line,
                    start_column,
                )

            if char == "\n":
                raise self._error("unterminated string literal")

            if char == "\\":
                self._advance()
                chars.append(self._scan_escape_sequence())
            else:
                chars.append(self._advance())

        raise self._error("unterminated string literal")

    def _scan_char(self, start_line: int, start_column: int) -> Token:
        """Scan a character literal; its value is the character code."""
        self._advance()  # consume opening '

        if self._at_end() or self._peek() == "\n":
            raise self._error("unterminated character literal")

        if self._peek() == "\\":
            self._advance()
            char = self._scan_escape_sequence()
        else:
            char = self._advance()

        if self._peek() != "'":
            raise self._error("expected closing quote for character literal")
        self._advance()

        value = self._encode(char)[0]
        return self._make_token(TokenType.NUMBER, value, start_line, start_column)

    def _scan_escape_sequence(self) -> str:
        if self._at_end():
            raise self._error("unexpected end of input in escape sequence")

        char = self._advance()

        if char in self.ESCAPE_SEQUENCES:
            return self.ESCAPE_SEQUENCES[char]

        # \xNN and \$NN: exactly two hex digits
        if char in "x$":
            hex_chars = self._peek() + self._peek(1)
            if len(hex_chars) != 2 or any(c not in string.hexdigits for c in hex_chars):
                raise self._error(f"expected two hexadecimal digits after \\{char}")
            self._advance()
            self._advance()
            return chr(int(hex_chars, 16))

        raise self._error(f"unknown escape sequence '\\{char}'")

    def _encode(self, text: str) -> bytes:
        try:
            return text.encode("latin-1")
        except UnicodeEncodeError as e:
            raise self._error(f"character '{text[e.start]}' cannot be encoded as a byte")

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def get_current_line(self) -> str:
        """Get the current line of source text."""
        line_end = self.source.find("\n", self._line_start_pos)
        if line_end == -1:
            line_end = len(self.source)
        return self.source[self._line_start_pos:line_end]
