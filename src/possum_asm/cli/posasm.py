"""
possum-asm - Assembler Command-Line Interface
=============================================

This module implements the command-line interface for the assembler.
It assembles one source file to a raw binary image, optionally writing
a symbol table next to it.

Usage Examples
--------------
Basic assembly:
    $ possum-asm hello.asm

With output file and symbol table:
    $ possum-asm hello.asm -o hello.bin -s hello.sym

With defines:
    $ possum-asm -D DEBUG -D BASE=$8000 program.asm

Verbose mode:
    $ possum-asm -v hello.asm
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from possum_asm import __version__
from possum_asm.assembler import Assembler
from possum_asm.cli.errors import ExitCode, handle_cli_exception
from possum_asm.config import parse_number


def parse_define(defn: str) -> tuple[str, int]:
    """
    Parse a -D argument.

    ``NAME=VALUE`` takes any number syntax the assembler accepts;
    a bare ``NAME`` defaults to 1.

    Raises:
        click.BadParameter: If the name is empty or the value invalid
    """
    if "=" in defn:
        name, value_str = defn.split("=", 1)
        try:
            value = parse_number(value_str)
        except ValueError:
            raise click.BadParameter(f"invalid value in -D {defn}") from None
    else:
        name, value = defn, 1

    name = name.strip()
    if not name:
        raise click.BadParameter(f"missing symbol name in -D {defn}")
    return name, value


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "input_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output binary file (default: input.bin)",
)
@click.option(
    "-s", "--symbols",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Generate symbol file",
)
@click.option(
    "-D", "--define",
    multiple=True,
    help="Define symbol (format: NAME=VALUE, or NAME for 1)",
)
@click.option(
    "-q", "--quiet",
    is_flag=True,
    help="Do not print @echo messages",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="possum-asm")
def main(
    input_file: Path,
    output: Optional[Path],
    symbols: Optional[Path],
    define: tuple[str, ...],
    quiet: bool,
    verbose: bool,
) -> None:
    """
    Assemble source code to a raw binary.

    INPUT_FILE is the assembly source file (.asm) to assemble.

    Labels, symbols and data may refer forward to anything defined later
    in the file; the assembler resolves them without extra passes.

    \b
    Examples:
        possum-asm hello.asm              # Outputs hello.bin
        possum-asm hello.asm -o out.bin   # Specify output file
        possum-asm -D DEBUG=1 hello.asm   # Define symbol
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    output_file = output if output is not None else input_file.with_suffix(".bin")

    asm = Assembler(verbose=verbose)

    for defn in define:
        try:
            name, value = parse_define(defn)
        except click.BadParameter as e:
            click.echo(f"Error: {e.message}", err=True)
            sys.exit(ExitCode.INVALID_ARGS)
        asm.define_symbol(name, value)

    try:
        asm.assemble_file(input_file)

        if not quiet:
            for message in asm.get_messages():
                click.echo(message)

        asm.write_binary(output_file)
        if symbols:
            asm.write_symbols(symbols)

        if verbose:
            click.echo(f"Assembly complete: {len(asm.get_code())} bytes, "
                       f"{len(asm.get_symbols())} symbols")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Assembly")


if __name__ == "__main__":
    main()
