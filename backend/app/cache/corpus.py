"""Static corpus files acting as the source-of-truth tier."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from app.cache.tiers import CollectionSpec, TierError

logger = logging.getLogger(__name__)


class CorpusSource:
    """Loads curated collections from `.json` / `.ndjson` files in one directory."""

    def __init__(self, corpus_dir: str | Path) -> None:
        self._corpus_dir = Path(corpus_dir)

    def load(self, collection: CollectionSpec) -> list[dict[str, Any]]:
        path = self._corpus_dir / collection.corpus_file
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise TierError(f"corpus file unavailable: {path}") from exc

        if path.suffix == ".ndjson":
            return _parse_ndjson(content, path.name)
        if path.suffix == ".json":
            try:
                decoded = json.loads(content)
            except json.JSONDecodeError as exc:
                raise TierError(f"corpus file is not valid JSON: {path}") from exc
            if isinstance(decoded, list):
                return [item for item in decoded if isinstance(item, dict)]
            if isinstance(decoded, dict):
                return [decoded]
            raise TierError(f"corpus file has unexpected top-level type: {path}")
        raise TierError(f"unsupported corpus file type: {path}")


def _parse_ndjson(content: str, filename: str) -> list[dict[str, Any]]:
    records: list[dict[str, Any]] = []
    for line_number, line in enumerate(content.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            item = json.loads(line)
        except json.JSONDecodeError as exc:
            logger.warning("corpus.line_skipped file=%s line=%d error=%s", filename, line_number, exc)
            continue
        if isinstance(item, dict):
            records.append(item)
    return records
