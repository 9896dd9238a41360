"""Deactivate active documents whose source page no longer links to them.

Usage (from repository root):
    python backend/scripts/reverify_endorsements.py [--domain example.com]
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from app.config import get_settings
from app.db.session import SessionLocal
from app.publishing.endorsement import HttpEndorsementChecker
from app.services.documents import reverify_active_documents


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Re-check endorsements of active markdown documents.")
    parser.add_argument("--domain", default=None, help="Limit the sweep to one domain.")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    checker = HttpEndorsementChecker(
        public_host=settings.markdown_public_host,
        timeout_seconds=settings.endorsement_timeout_seconds,
    )
    with SessionLocal() as db:
        outcomes = reverify_active_documents(db, checker, domain=args.domain)

    print("Reverification complete")
    print(f"deactivated={len(outcomes)}")
    for outcome in outcomes:
        if outcome.version is not None:
            print(f"  {outcome.status.value} {outcome.version.domain}/{outcome.version.path}")


if __name__ == "__main__":
    main()
