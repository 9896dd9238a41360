"""Markdown document rendering, request normalization and endorsement checks."""

from app.publishing.endorsement import EndorsementChecker, EndorsementResult, HttpEndorsementChecker
from app.publishing.normalization import DocumentKey, InvalidDocumentPath, normalize_document_request
from app.publishing.rendering import compute_content_hash, derive_path, render_markdown

__all__ = [
    "DocumentKey",
    "EndorsementChecker",
    "EndorsementResult",
    "HttpEndorsementChecker",
    "InvalidDocumentPath",
    "compute_content_hash",
    "derive_path",
    "normalize_document_request",
    "render_markdown",
]
