"""Fetch pages from the Scrapbox REST API."""

import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

from scrapbox_codeblocks.parser.codeblock import Line
from scrapbox_codeblocks.source.local import lines_from_page

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://scrapbox.io"

# Characters kept as-is in page titles, except at the end of the title
NO_ENCODE_CHARS = '@$&+=:;",'
NO_TAIL_CHARS = ':;",'

PAGE_SORTS = (
    "updatedWithMe",
    "updated",
    "created",
    "accessed",
    "pageRank",
    "linked",
    "views",
    "title",
)


class ScrapboxError(Exception):
    """Error reported while fetching from Scrapbox."""

    def __init__(self, message: str, name: str | None = None) -> None:
        super().__init__(message)
        self.name = name or type(self).__name__
        self.message = message

    def __str__(self) -> str:
        return f"{self.name}: {self.message}"


class NotFoundError(ScrapboxError):
    """The project or page does not exist."""


class NotLoggedInError(ScrapboxError):
    """The project is private and no valid session was given."""


class NotMemberError(ScrapboxError):
    """The session user is not a member of the private project."""


class UnexpectedError(ScrapboxError):
    """Any failure that the API did not describe."""


ERROR_TYPES: dict[str, type[ScrapboxError]] = {
    "NotFoundError": NotFoundError,
    "NotLoggedInError": NotLoggedInError,
    "NotMemberError": NotMemberError,
}


def encode_title_uri(title: str) -> str:
    """Encode a page title for use in a URL path.

    Spaces become underscores. A few punctuation characters stay readable
    unless they end the title.

    Args:
        title: Page title

    Returns:
        Encoded title
    """
    encoded = []
    last = len(title) - 1
    for index, char in enumerate(title):
        if char == " ":
            encoded.append("_")
        elif char not in NO_ENCODE_CHARS or (index == last and char in NO_TAIL_CHARS):
            encoded.append(quote(char, safe="!~*'()"))
        else:
            encoded.append(char)
    return "".join(encoded)


def cookie(sid: str) -> str:
    """Build the Cookie header value for a session id."""
    return f"connect.sid={sid}"


def to_error(body: Any) -> ScrapboxError | None:
    """Classify an error response body.

    Args:
        body: Decoded JSON object or raw response text

    Returns:
        Typed error, or None if ``body`` does not describe an error
    """
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except json.JSONDecodeError:
            return None

    if not isinstance(body, dict):
        return None
    message = body.get("message")
    name = body.get("name")
    if not isinstance(message, str):
        return None
    if name is not None and not isinstance(name, str):
        return None

    error_type = ERROR_TYPES.get(name or "", UnexpectedError)
    return error_type(message, name=name)


class ScrapboxClient:
    """Minimal client for the page endpoints of the Scrapbox API."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        sid: str | None = None,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Scrapbox origin
            sid: Optional ``connect.sid`` session id for private projects
            timeout: Request timeout in seconds
            client: Optional pre-configured httpx.Client (primarily for tests)
        """
        self.base_url = base_url.rstrip("/")
        self.sid = sid
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

    def __enter__(self) -> "ScrapboxClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _get(self, path: str, params: dict[str, str]) -> Any:
        url = f"{self.base_url}{path}"
        headers = {"Cookie": cookie(self.sid)} if self.sid else None
        logger.debug("GET %s params=%s", url, params)

        try:
            response = self._client.get(url, params=params, headers=headers)
        except httpx.HTTPError as exc:
            raise UnexpectedError(f'Failed to fetch "{url}": {exc}') from exc

        if response.is_error:
            error = to_error(response.text)
            if error is None:
                raise UnexpectedError(
                    f'Unexpected error has occurred when fetching "{url}" '
                    f"(status {response.status_code})"
                )
            logger.info("Fetching %s failed: %s", url, error)
            raise error

        try:
            return response.json()
        except ValueError as exc:
            raise UnexpectedError(f'Invalid JSON returned from "{url}"') from exc

    def get_page(self, project: str, title: str, *, follow_rename: bool = True) -> dict[str, Any]:
        """Fetch the JSON data of a page.

        Args:
            project: Project name
            title: Page title (case-insensitive)
            follow_rename: Follow the page if it was renamed

        Returns:
            Page JSON object

        Raises:
            NotFoundError: If the project or page does not exist
            NotLoggedInError: If the project is private and no session was given
            NotMemberError: If the session user cannot read the project
            UnexpectedError: For any other failure
        """
        path = f"/api/pages/{project}/{encode_title_uri(title)}"
        params = {"followRename": "true" if follow_rename else "false"}
        return self._get(path, params)

    def get_lines(self, project: str, title: str) -> list[Line]:
        """Fetch a page and return its lines."""
        page = self.get_page(project, title)
        try:
            return lines_from_page(page)
        except (ValueError, KeyError, TypeError) as exc:
            raise UnexpectedError(f"Page {project}/{title} has no valid lines") from exc

    def list_pages(
        self,
        project: str,
        *,
        sort: str | None = None,
        limit: int | None = None,
        skip: int | None = None,
    ) -> dict[str, Any]:
        """List the pages of a project.

        Args:
            project: Project name
            sort: One of PAGE_SORTS (server default is "updated")
            limit: Maximum number of pages (server default is 100)
            skip: Index to start listing from

        Returns:
            Page list JSON object
        """
        if sort is not None and sort not in PAGE_SORTS:
            raise ValueError(f"Unknown sort: {sort}")

        params = {}
        if sort is not None:
            params["sort"] = sort
        if limit is not None:
            params["limit"] = str(limit)
        if skip is not None:
            params["skip"] = str(skip)
        return self._get(f"/api/pages/{project}", params)
