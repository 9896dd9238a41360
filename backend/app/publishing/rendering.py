"""Deterministic markdown rendering of extracted page content."""

from __future__ import annotations

import hashlib
import json
from datetime import datetime
from urllib.parse import urlsplit

from app.schemas.document import ExtractedContent


GENERATED_BY = "curated-merge-api"
DEFAULT_PATH = "index"


def derive_path(source_url: str) -> str:
    """Document path for a source URL: the URL path without surrounding slashes."""

    try:
        path = urlsplit(source_url).path
    except ValueError:
        return DEFAULT_PATH
    return path.strip("/") or DEFAULT_PATH


def source_domain(source_url: str) -> str:
    try:
        return (urlsplit(source_url).hostname or "").lower()
    except ValueError:
        return ""


def compute_content_hash(content: ExtractedContent) -> str:
    """sha256 over the canonical JSON form of the extracted content."""

    canonical = json.dumps(
        content.model_dump(mode="json"),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def render_markdown(
    content: ExtractedContent,
    *,
    source_url: str,
    content_hash: str,
    generated_at: datetime,
    generated_by: str = GENERATED_BY,
) -> str:
    """Render front matter followed by title, headings, body, list items and tables."""

    front_matter = [
        "---",
        f"title: {_quote(content.title)}",
        f"source_url: {_quote(source_url)}",
        f"source_domain: {_quote(source_domain(source_url))}",
        f"generated_by: {_quote(generated_by)}",
        f"generated_at: {_quote(generated_at.isoformat())}",
        f"content_hash: {_quote(content_hash)}",
        "---",
        "",
    ]

    blocks: list[str] = []
    if content.title:
        blocks.append(f"# {content.title}\n\n")
    for heading in content.headings:
        blocks.append(f"{'#' * heading.level} {heading.text}\n\n")
    if content.body:
        blocks.append(f"{content.body}\n\n")
    if content.lists:
        blocks.append("".join(f"- {item}\n" for item in content.lists) + "\n")
    for table in content.tables:
        blocks.append(f"{table.html}\n\n")

    return "\n".join(front_matter) + "".join(blocks)
