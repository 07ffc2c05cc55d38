"""
Possum Assembler Command-Line Interface
=======================================

This package provides the command-line tool for the assembler:

- **possum-asm**: assemble a source file to a raw binary

The tool is a Click-based CLI application with help and error
reporting shared through ``possum_asm.cli.errors``.
"""

__all__ = ["posasm"]
