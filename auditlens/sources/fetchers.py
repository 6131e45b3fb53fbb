"""Retrieve raw contract source from remote URLs."""

from __future__ import annotations

from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..logging import get_logger

logger = get_logger("sources.fetchers")

_USER_AGENT = "auditlens/0.1"


class SourceFetchError(RuntimeError):
    """Raised when contract source cannot be retrieved."""


def fetch_url_text(url: str, *, timeout: float = 30.0) -> str:
    """GET ``url`` and return the decoded body."""
    request = Request(url, headers={"User-Agent": _USER_AGENT}, method="GET")
    logger.debug("Fetching contract source from %s", url)
    try:
        with urlopen(request, timeout=timeout) as response:  # type: ignore[arg-type]
            raw = response.read()
            charset = response.headers.get_content_charset() or "utf-8"
    except HTTPError as exc:
        raise SourceFetchError(
            f"Failed to fetch contract code from URL: {exc.reason}"
        ) from exc
    except URLError as exc:
        raise SourceFetchError(
            f"Failed to fetch contract code from URL: {exc.reason}"
        ) from exc
    return raw.decode(charset, errors="replace")


def decode_upload(data: bytes) -> str:
    """Decode uploaded file bytes, tolerating a BOM and invalid sequences."""
    return data.decode("utf-8-sig", errors="replace")


__all__ = ["SourceFetchError", "decode_upload", "fetch_url_text"]
