"""
R2 Assembly Line Normalizer
===========================

This module splits raw assembly source into lines of tokens. R2 assembly
is strictly line oriented: every statement fits on one line and its fields
are separated by spaces or commas, so tokenizing is a matter of cutting
the line up rather than scanning characters.

Rules
-----
- Everything from the first ``;`` onward is a comment and is dropped.
- Surrounding whitespace is trimmed.
- The rest is split on space, tab, comma and carriage return; empty
  fields are discarded.

Tokenizing never fails. Lines that end up with no tokens are kept by
``tokenize_line`` (it returns an empty list) and filtered out by
``split_source``, which is what the parser consumes.

Example
-------
>>> from r2asm.assembler.lexer import tokenize_line
>>> tokenize_line("    add r0, r0, 0x5   ; bump")
['add', 'r0', 'r0', '0x5']
"""

from dataclasses import dataclass
from typing import Iterator
import re

from r2asm.errors import SourceLocation


COMMENT_CHAR = ";"

# Field separators inside a line
SEPARATORS = re.compile(r"[ \t,\r]")


@dataclass(frozen=True)
class SourceLine:
    """
    One non-empty source line after normalization.

    Attributes:
        number: Line number in the source (1-indexed)
        text: The raw line as written, without its line terminator
        tokens: Ordered, non-empty fields of the line
        filename: Name of the source file (for error reporting)
    """
    number: int
    text: str
    tokens: tuple[str, ...]
    filename: str = "<input>"

    @property
    def location(self) -> SourceLocation:
        """Return a SourceLocation for error reporting."""
        return SourceLocation(self.filename, self.number)


def tokenize_line(text: str) -> list[str]:
    """
    Strip the comment and whitespace from a line and split it into tokens.

    Args:
        text: One raw line of source

    Returns:
        The tokens in order; empty for blank and comment-only lines
    """
    comment = text.find(COMMENT_CHAR)
    if comment >= 0:
        text = text[:comment]
    text = text.strip()
    return [field for field in SEPARATORS.split(text) if field]


def iter_source_lines(source: str, filename: str = "<input>") -> Iterator[SourceLine]:
    """Yield a SourceLine for every line of source that has tokens."""
    # Only \n ends a line; a stray \r is a field separator
    for index, text in enumerate(source.split("\n")):
        tokens = tokenize_line(text)
        if tokens:
            yield SourceLine(index + 1, text.rstrip("\r"), tuple(tokens), filename)


def split_source(source: str, filename: str = "<input>") -> list[SourceLine]:
    """
    Normalize a whole source text.

    Args:
        source: Complete assembly source
        filename: Name used in error locations

    Returns:
        Every non-empty line, numbered from 1 as in the original text
    """
    return list(iter_source_lines(source, filename))
