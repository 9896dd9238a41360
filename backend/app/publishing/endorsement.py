"""Checks that a source page links back to its published markdown document."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol
from urllib import error as urllib_error
from urllib import request as urllib_request
from urllib.parse import urlsplit, urlunsplit

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

USER_AGENT = "curated-merge-endorsement-checker/1.0"


@dataclass(slots=True)
class EndorsementResult:
    valid: bool
    expected_href: str
    error: str | None = None


class EndorsementChecker(Protocol):
    """Protocol for pluggable endorsement checks."""

    def check(self, *, source_url: str, domain: str, path: str) -> EndorsementResult:
        """Return whether the source page endorses the document at (domain, path)."""


def normalize_href(url: str) -> str:
    """Force https and drop a trailing slash so equivalent links compare equal."""

    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.netloc:
        return url
    return urlunsplit(("https", parts.netloc.lower(), parts.path.rstrip("/"), parts.query, ""))


def expected_endorsement_href(public_host: str, domain: str, path: str) -> str:
    return normalize_href(f"https://{public_host}/{domain}/{path}.md")


def parse_head_links(html: str) -> list[dict[str, str]]:
    """Attributes of every <link> inside <head>, multi-valued attributes space-joined."""

    soup = BeautifulSoup(html, "html.parser")
    if soup.head is None:
        return []
    links: list[dict[str, str]] = []
    for tag in soup.head.find_all("link"):
        links.append(
            {
                name.lower(): " ".join(value) if isinstance(value, list) else (value or "")
                for name, value in tag.attrs.items()
            }
        )
    return links


def find_endorsement(html: str, expected_href: str) -> dict[str, str] | None:
    for link in parse_head_links(html):
        rels = link.get("rel", "").lower().split()
        if (
            "alternate" in rels
            and link.get("type", "").lower() == "text/markdown"
            and normalize_href(link.get("href", "")) == expected_href
        ):
            return link
    return None


@dataclass(slots=True)
class HttpEndorsementChecker:
    """Fetches the source page over HTTP and inspects its <head> links."""

    public_host: str
    timeout_seconds: int = 5
    max_bytes: int = 2 * 1024 * 1024

    def check(self, *, source_url: str, domain: str, path: str) -> EndorsementResult:
        expected = expected_endorsement_href(self.public_host, domain, path)
        req = urllib_request.Request(url=source_url, method="GET", headers={"User-Agent": USER_AGENT})
        try:
            with urllib_request.urlopen(req, timeout=self.timeout_seconds) as resp:
                charset = resp.headers.get_content_charset() or "utf-8"
                html = resp.read(self.max_bytes).decode(charset, errors="replace")
        except urllib_error.HTTPError as exc:
            return EndorsementResult(valid=False, expected_href=expected, error=f"source fetch HTTP {exc.code}")
        except (urllib_error.URLError, TimeoutError, ValueError) as exc:
            return EndorsementResult(valid=False, expected_href=expected, error=f"source fetch failed: {exc}")

        if find_endorsement(html, expected) is None:
            logger.info("endorsement.missing domain=%s path=%s expected=%s", domain, path, expected)
            return EndorsementResult(valid=False, expected_href=expected, error="endorsement missing or incorrect")
        return EndorsementResult(valid=True, expected_href=expected)
