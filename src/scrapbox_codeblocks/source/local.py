"""Build page lines from local text and page JSON."""

import json
import logging
from pathlib import Path
from typing import Any

from scrapbox_codeblocks.parser.codeblock import Line

logger = logging.getLogger(__name__)


def lines_from_text(text: str, *, id_prefix: str = "L") -> list[Line]:
    """Split raw text into lines with stable ids.

    Args:
        text: Page text, one Scrapbox line per text line
        id_prefix: Prefix for generated line ids

    Returns:
        List of Line objects; empty text gives an empty list
    """
    if not text:
        return []
    return [
        Line(id=f"{id_prefix}{index}", text=line_text)
        for index, line_text in enumerate(text.splitlines())
    ]


def lines_from_page(data: dict[str, Any]) -> list[Line]:
    """Convert a page API response into lines.

    Args:
        data: Page JSON object with a ``lines`` array

    Returns:
        List of Line objects

    Raises:
        ValueError: If ``data`` has no ``lines`` array
    """
    raw_lines = data.get("lines") if isinstance(data, dict) else None
    if not isinstance(raw_lines, list):
        raise ValueError("Page data has no 'lines' array")
    return [Line.from_dict(item) for item in raw_lines]


def load_lines(path: Path) -> list[Line]:
    """Read lines from a local file.

    ``.json`` files are read as page JSON, anything else as plain text.

    Args:
        path: File to read

    Returns:
        List of Line objects
    """
    content = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        lines = lines_from_page(json.loads(content))
    else:
        lines = lines_from_text(content)
    logger.debug("Loaded %d line(s) from %s", len(lines), path)
    return lines
