"""
r2asm - R2 Assembler Command-Line Interface
===========================================

This module implements the command-line interface for the R2 assembler.

Usage Examples
--------------
Basic assembly:
    $ r2asm program.asm

With output file:
    $ r2asm program.asm -o program.bin

Generate all output files:
    $ r2asm program.asm -o program.bin -l program.lst -s program.sym

With a load address and defines:
    $ r2asm --origin 0x0100 -D DEBUG=1 program.asm

Verbose mode:
    $ r2asm -v program.asm
"""

from pathlib import Path
from typing import Optional
import logging

import click

from r2asm import __version__
from r2asm.assembler import Assembler
from r2asm.assembler.operands import parse_number
from r2asm.cli.errors import handle_cli_exception
from r2asm.errors import LiteralError


def _parse_origin(ctx: click.Context, param: click.Parameter, value: str) -> int:
    try:
        return parse_number(value)
    except LiteralError as e:
        raise click.BadParameter(e.message) from e


def _parse_defines(defines: tuple[str, ...]) -> dict[str, int]:
    """Parse -D NAME=VALUE options. A bare NAME defines it as 1."""
    result = {}
    for defn in defines:
        if "=" in defn:
            name, value_str = defn.split("=", 1)
            try:
                result[name.strip()] = parse_number(value_str.strip())
            except LiteralError as e:
                raise click.BadParameter(f"invalid value in -D {defn}: {e.reason}") from e
        else:
            result[defn.strip()] = 1
    return result


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
    "-l", "--listing",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Generate listing file",
)
@click.option(
    "-s", "--symbols",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Generate symbol file",
)
@click.option(
    "-D", "--define",
    multiple=True,
    help="Define constant (format: NAME=VALUE, can be repeated)",
)
@click.option(
    "--origin",
    default="0",
    callback=_parse_origin,
    help="Address of the first instruction (default: 0)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output",
)
@click.version_option(version=__version__, prog_name="r2asm")
def main(
    input_file: Path,
    output: Optional[Path],
    listing: Optional[Path],
    symbols: Optional[Path],
    define: tuple[str, ...],
    origin: int,
    verbose: bool,
) -> None:
    """
    Assemble R2 source code into a raw binary image.

    INPUT_FILE is the assembly source file (.asm) to assemble.

    \b
    Examples:
        r2asm hello.asm              # Outputs hello.bin
        r2asm hello.asm -o out.bin   # Specify output file
        r2asm -D DEBUG=1 hello.asm   # Define constant
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    output_file = output if output is not None else input_file.with_suffix(".bin")

    try:
        asm = Assembler(origin=origin, defines=_parse_defines(define))

        if verbose:
            click.echo(f"Assembling {input_file}...")

        asm.assemble_file(input_file)
        asm.write_binary(output_file)
        if verbose:
            click.echo(f"Wrote {len(asm.get_code())} bytes to {output_file}")

        if listing:
            asm.write_listing(listing)
            if verbose:
                click.echo(f"Wrote listing to {listing}")

        if symbols:
            asm.write_symbols(symbols)
            if verbose:
                click.echo(f"Wrote symbols to {symbols}")

        if verbose:
            code = asm.get_code()
            click.echo(f"Assembly complete: {len(code)} bytes at ${asm.get_origin():04X}")
            click.echo(f"Defined {len(asm.get_symbols())} symbols")

    except Exception as e:
        handle_cli_exception(e, verbose=verbose, error_type="Assembly")


if __name__ == "__main__":
    main()
