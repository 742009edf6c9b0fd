# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Line tokenizer for scripts.

A line is split into words on unquoted spaces and tabs:

    [cond] [!cond:suffix] ! cmd 'quoted arg' $VAR &

Single quotes quote literally ('' is a literal quote inside a quoted
string). Environment references are expanded outside quotes only and are
never re-split.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional

from gscript.engine.errors import ParseError
from gscript.engine.state import Expect


@dataclass
class Word:
    text: str
    quoted: bool = False


@dataclass
class CondRef:
    """A guard such as [!exec:git]."""

    name: str
    suffix: str = ""
    negate: bool = False
    has_suffix: bool = False

    def __str__(self) -> str:
        bang = "!" if self.negate else ""
        if self.has_suffix:
            return f"[{bang}{self.name}:{self.suffix}]"
        return f"[{bang}{self.name}]"


@dataclass
class ParsedLine:
    """One executable script line."""

    raw: str
    name: str
    args: List[str] = field(default_factory=list)
    conds: List[CondRef] = field(default_factory=list)
    want: Expect = Expect.SUCCESS
    background: bool = False


def split_words(line: str, expand: Callable[[str], str]) -> List[Word]:
    """Split a line into words, expanding unquoted text with ``expand``."""
    words: List[Word] = []
    parts: List[str] = []
    plain: List[str] = []
    in_word = False
    quoted = False
    i = 0

    def _flush_plain() -> None:
        if plain:
            parts.append(expand("".join(plain)))
            plain.clear()

    while i < len(line):
        c = line[i]
        if c in " \t":
            if in_word:
                _flush_plain()
                words.append(Word("".join(parts), quoted))
                parts.clear()
                in_word, quoted = False, False
            i += 1
            continue

        in_word = True
        if c != "'":
            plain.append(c)
            i += 1
            continue

        # Quoted segment
        _flush_plain()
        quoted = True
        i += 1
        segment = []
        while True:
            if i >= len(line):
                raise ParseError("unterminated quoted argument")
            if line[i] == "'":
                if line[i + 1:i + 2] == "'":
                    segment.append("'")
                    i += 2
                    continue
                i += 1
                break
            segment.append(line[i])
            i += 1
        parts.append("".join(segment))

    if in_word:
        _flush_plain()
        words.append(Word("".join(parts), quoted))
    return words


def parse_cond(text: str) -> CondRef:
    """Parse the inside of a [guard]."""
    body = text.strip()
    negate = body.startswith("!")
    if negate:
        body = body[1:].strip()
    name, sep, suffix = body.partition(":")
    if not name:
        raise ParseError(f"empty condition [{text}]")
    return CondRef(name=name, suffix=suffix, negate=negate, has_suffix=bool(sep))


def parse_line(line: str, expand: Callable[[str], str]) -> Optional[ParsedLine]:
    """
    Parse one script line.

    Returns:
        A ParsedLine, or None for blank and comment lines.

    Raises:
        ParseError: On unterminated quotes, or guards/prefixes without a command.
    """
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None

    words = split_words(stripped, expand)
    parsed = ParsedLine(raw=stripped, name="")

    while words and not words[0].quoted and words[0].text.startswith("["):
        text = words.pop(0).text
        if not text.endswith("]"):
            raise ParseError(f"unterminated condition {text}")
        parsed.conds.append(parse_cond(text[1:-1]))

    if words and not words[0].quoted and words[0].text in ("!", "?"):
        parsed.want = Expect.FAILURE if words.pop(0).text == "!" else Expect.ANY

    if words and not words[-1].quoted and words[-1].text == "&":
        words.pop()
        parsed.background = True

    if not words:
        raise ParseError("missing command")
    parsed.name = words[0].text
    parsed.args = [w.text for w in words[1:]]
    return parsed
