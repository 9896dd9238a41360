"""Normalization of inbound serving requests into document keys."""

from __future__ import annotations

import re
from dataclasses import dataclass

from app.publishing.rendering import DEFAULT_PATH


_PORT_RE = re.compile(r":\d+$")
_UNSAFE_PATH_RE = re.compile(r"[^\w\-/.]", re.ASCII)


class InvalidDocumentPath(ValueError):
    """Raised when a requested document path is empty or unsafe."""


@dataclass(frozen=True, slots=True)
class DocumentKey:
    domain: str
    path: str


def normalize_domain(raw: str) -> str:
    domain = raw.strip().lower()
    if domain.startswith("www."):
        domain = domain[4:]
    domain = _PORT_RE.sub("", domain)
    return domain.rstrip("/")


def normalize_document_request(request_path: str) -> DocumentKey:
    """Turn `/{domain}/{path...}[.md]` into the stored (domain, path) key."""

    segments = [segment for segment in request_path.split("/") if segment]
    if not segments:
        raise InvalidDocumentPath("missing domain")

    domain = normalize_domain(segments[0])
    if not domain:
        raise InvalidDocumentPath("missing domain")

    path_segments = segments[1:]
    if path_segments and path_segments[-1].endswith(".md"):
        path_segments[-1] = path_segments[-1][: -len(".md")]
    path = "/".join(segment for segment in path_segments if segment) or DEFAULT_PATH

    if ".." in path or _UNSAFE_PATH_RE.search(path):
        raise InvalidDocumentPath(f"invalid path: {path}")
    return DocumentKey(domain=domain, path=path)
