"""
Assembler Configuration
=======================

Limits and defaults for an assembly session. Configuration can come from:
- Default values (defined here)
- Keyword arguments when constructing AssemblerConfig
- Environment variables, via AssemblerConfig.from_env()

Environment variables (all optional):
    POSSUM_ASM_MAX_ADDRESS: Highest valid address ($hex, 0x hex or decimal)
    POSSUM_ASM_MAX_ERRORS: Errors to collect before giving up
"""

from dataclasses import dataclass
import logging
import os


logger = logging.getLogger(__name__)


def parse_number(text: str) -> int:
    """
    Parse a number written the way the assembler accepts it.

    Supports ``$FF`` and ``0xFF`` hex, ``%1010`` and ``0b1010`` binary,
    and plain decimal, with an optional leading minus sign.

    Raises:
        ValueError: If the text is not a valid number
    """
    text = text.strip()
    negative = text.startswith("-")
    if negative:
        text = text[1:]

    if text.startswith("$"):
        value = int(text[1:], 16)
    elif text.startswith("%"):
        value = int(text[1:], 2)
    elif text[:2].lower() in ("0x", "0b", "0o"):
        value = int(text, 0)
    else:
        value = int(text, 10)

    return -value if negative else value


@dataclass
class AssemblerConfig:
    """
    Configuration for an assembly session.

    Attributes:
        max_address: Highest address code may occupy (default: $FFFF)
        max_errors: Errors collected before assembly stops (default: 100)
    """

    max_address: int = 0xFFFF
    max_errors: int = 100

    @classmethod
    def from_env(cls) -> "AssemblerConfig":
        """
        Create AssemblerConfig from environment variables.

        Invalid values are ignored with a warning, keeping the default.
        """
        config = cls()

        if max_address := os.environ.get("POSSUM_ASM_MAX_ADDRESS"):
            try:
                config.max_address = parse_number(max_address)
            except ValueError:
                logger.warning(f"Ignoring invalid POSSUM_ASM_MAX_ADDRESS={max_address!r}")

        if max_errors := os.environ.get("POSSUM_ASM_MAX_ERRORS"):
            try:
                config.max_errors = int(max_errors)
            except ValueError:
                logger.warning(f"Ignoring invalid POSSUM_ASM_MAX_ERRORS={max_errors!r}")

        return config
