"""Extract code blocks from Scrapbox page lines."""

import logging
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace
from typing import Any

logger = logging.getLogger(__name__)

TITLE_PATTERN = re.compile(r"^(\s*)code:(.+?)(\(.+\))?\s*$")
BODY_PATTERN = re.compile(r"^(\s*)(.*)$", re.DOTALL)
EXTENSION_PATTERN = re.compile(r"^.+\.(.*)$")


@dataclass(frozen=True)
class Line:
    """A single line of a page."""

    id: str
    text: str
    user_id: str | None = None
    created: int | None = None
    updated: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Line":
        """Build a line from a page API line object.

        Args:
            data: Mapping with at least ``id`` and ``text`` keys

        Returns:
            Line object
        """
        return cls(
            id=str(data["id"]),
            text=data.get("text", ""),
            user_id=data.get("userId"),
            created=data.get("created"),
            updated=data.get("updated"),
        )


@dataclass(frozen=True)
class CodeTitle:
    """Properties declared by a code block title line."""

    filename: str
    lang: str
    indent: int


@dataclass(frozen=True)
class CodeBlockFilter:
    """Exact-match filter on filename and language.

    Empty or missing fields impose no constraint.
    """

    filename: str | None = None
    lang: str | None = None

    def matches(self, title: CodeTitle) -> bool:
        if self.filename and self.filename != title.filename:
            return False
        if self.lang and self.lang != title.lang:
            return False
        return True


@dataclass
class TinyCodeBlock:
    """A code block found in a page, one record per block (not per file)."""

    filename: str
    lang: str
    title_line: Line
    body_lines: list[Line] = field(default_factory=list)
    next_line: Line | None = None

    def append_body(self, line: Line, body: str) -> None:
        """Append a body line carrying the text returned by extract_from_code_body()."""
        self.body_lines.append(replace(line, text=body))

    def close(self, next_line: Line | None) -> None:
        """Set the line after the block and remove the block's base indentation.

        The base indentation is the smallest indentation among body lines
        with content, so nesting inside the block is kept. Whitespace-only
        lines get empty text.

        Args:
            next_line: Line that ended the block, or None at end of input
        """
        self.next_line = next_line
        indents = [
            len(line.text) - len(line.text.lstrip())
            for line in self.body_lines
            if line.text.strip()
        ]
        base = min(indents, default=0)
        self.body_lines[:] = [
            replace(line, text=line.text[base:] if line.text.strip() else "")
            for line in self.body_lines
        ]

    @property
    def code(self) -> str:
        """Body text of the block, re-indented relative to the title."""
        return "\n".join(line.text for line in self.body_lines)

    @property
    def title_indent(self) -> int:
        match = TITLE_PATTERN.match(self.title_line.text)
        return len(match.group(1)) if match else 0


@dataclass(frozen=True)
class _Scanning:
    """Not inside a code block."""


@dataclass(frozen=True)
class _InBlock:
    """Inside a code block; ``block`` is None when it is filtered out."""

    title: CodeTitle
    block: TinyCodeBlock | None


def extract_from_code_title(text: str) -> CodeTitle | None:
    """Parse a code block title line.

    ``code:foo.py`` takes its language from the extension, ``code:foo(js)``
    declares it explicitly and ``code:Makefile`` uses the whole filename.

    Args:
        text: Line text

    Returns:
        CodeTitle if ``text`` is a title line, otherwise None
    """
    match = TITLE_PATTERN.match(text)
    if match is None:
        return None

    filename = match.group(2).strip()
    tag = match.group(3)
    if tag is not None:
        lang = tag[1:-1]
    else:
        ext = EXTENSION_PATTERN.match(filename)
        if ext is None:
            lang = filename
        elif ext.group(1) == "":
            # `code:foo.` does not open a block
            return None
        else:
            lang = ext.group(1)

    return CodeTitle(filename=filename, lang=lang, indent=len(match.group(1)))


def extract_from_code_body(text: str, title_indent: int) -> str | None:
    """Return the body text of a line inside a code block.

    The first ``title_indent`` indentation characters are dropped so the body
    keeps its indentation relative to the title line.

    Args:
        text: Line text
        title_indent: Indentation of the block's title line

    Returns:
        Re-indented body text, or None if the line ends the block
    """
    match = BODY_PATTERN.match(text)
    indent, body = match.group(1), match.group(2)
    if len(indent) <= title_indent:
        return None
    return indent[title_indent:] + body


def iter_code_blocks(
    lines: Iterable[Line], filter: CodeBlockFilter | None = None
) -> Iterator[TinyCodeBlock]:
    """Yield code blocks in source order as each one closes.

    Args:
        lines: Page lines in order
        filter: Optional filter applied to each title line

    Yields:
        TinyCodeBlock objects matching ``filter``
    """
    lines = list(lines)
    state: _Scanning | _InBlock = _Scanning()
    i = 0

    while i < len(lines):
        line = lines[i]

        if isinstance(state, _InBlock):
            body = extract_from_code_body(line.text, state.title.indent)
            if body is not None:
                if state.block is not None:
                    state.block.append_body(line, body)
                i += 1
                continue

            # Terminator: close the block and look at the same line again
            if state.block is not None:
                state.block.close(line)
                yield state.block
            state = _Scanning()
            continue

        title = extract_from_code_title(line.text)
        if title is not None:
            collecting = filter is None or filter.matches(title)
            block = None
            if collecting:
                block = TinyCodeBlock(
                    filename=title.filename,
                    lang=title.lang,
                    title_line=line,
                )
            state = _InBlock(title=title, block=block)
        i += 1

    if isinstance(state, _InBlock) and state.block is not None:
        state.block.close(None)
        yield state.block


def extract_code_blocks(
    lines: Iterable[Line], filter: CodeBlockFilter | None = None
) -> list[TinyCodeBlock]:
    """Extract all code blocks from page lines.

    Blocks are returned one per title line, so two blocks with the same
    filename in one page stay separate.

    Args:
        lines: Page lines in order
        filter: Optional filter; None collects every block

    Returns:
        List of TinyCodeBlock objects in source order
    """
    blocks = list(iter_code_blocks(lines, filter))
    logger.debug("Extracted %d code block(s)", len(blocks))
    return blocks
