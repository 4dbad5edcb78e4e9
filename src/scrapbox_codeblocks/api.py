"""Get the code blocks of a page or of already loaded lines."""

import logging
from dataclasses import dataclass

from scrapbox_codeblocks.parser.codeblock import (
    CodeBlockFilter,
    Line,
    TinyCodeBlock,
    extract_code_blocks,
)
from scrapbox_codeblocks.source.rest import ScrapboxClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinesTarget:
    """Lines that are already loaded."""

    lines: list[Line]


@dataclass(frozen=True)
class PageTarget:
    """A page to fetch by project and title."""

    project: str
    title: str


Target = LinesTarget | PageTarget


def resolve_lines(target: Target, client: ScrapboxClient | None = None) -> list[Line]:
    """Turn a target into a concrete list of lines.

    Args:
        target: Loaded lines or a page to fetch
        client: Client used for PageTarget; a default one is created if None

    Returns:
        List of Line objects

    Raises:
        ScrapboxError: If the page cannot be fetched
    """
    if isinstance(target, LinesTarget):
        return list(target.lines)

    logger.info("Fetching %s/%s", target.project, target.title)
    if client is not None:
        return client.get_lines(target.project, target.title)
    with ScrapboxClient() as default_client:
        return default_client.get_lines(target.project, target.title)


def get_code_blocks(
    target: Target,
    filter: CodeBlockFilter | None = None,
    *,
    client: ScrapboxClient | None = None,
) -> list[TinyCodeBlock]:
    """Get every code block of a page, one record per block.

    The lines are fully resolved before parsing starts, so fetch errors are
    raised as-is and an empty list always means "no matching code blocks".

    Args:
        target: Loaded lines or a page to fetch
        filter: Optional filename/lang filter
        client: Client used for PageTarget

    Returns:
        List of TinyCodeBlock objects in source order
    """
    lines = resolve_lines(target, client)
    return extract_code_blocks(lines, filter)
