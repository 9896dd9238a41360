"""Activate one markdown document version by content hash or by id.

Usage (from repository root):
    python backend/scripts/activate_document.py --domain example.com --path guides/setup --hash <sha256>
    python backend/scripts/activate_document.py --id 42

Usage (from backend directory):
    python scripts/activate_document.py --id 42
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Make `app` imports work whether the script is run from repo root or backend/.
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from app.db.session import SessionLocal
from app.services.documents import activate_version, activate_version_by_id, list_versions


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Activate a markdown document version.")
    parser.add_argument("--id", type=int, dest="version_id", help="Version id to activate.")
    parser.add_argument("--domain", help="Document domain, e.g. example.com.")
    parser.add_argument("--path", help="Document path, e.g. guides/setup.")
    parser.add_argument("--hash", dest="content_hash", help="Content hash of the version to activate.")
    args = parser.parse_args(argv)
    if args.version_id is None and not (args.domain and args.path and args.content_hash):
        parser.error("either --id or all of --domain, --path and --hash are required")
    return args


def main(argv: list[str] | None = None) -> int:
    """Run the activation and print the resulting version list."""

    args = parse_args(argv)
    with SessionLocal() as db:
        if args.version_id is not None:
            outcome = activate_version_by_id(db, args.version_id)
        else:
            outcome = activate_version(db, args.domain, args.path, args.content_hash)

        print(f"status={outcome.status.value}")
        if outcome.error:
            print(f"error={outcome.error}")
        if outcome.version is None:
            return 1

        version = outcome.version
        print(f"domain={version.domain} path={version.path}")
        for row in list_versions(db, version.domain, version.path):
            marker = "*" if row.is_active else " "
            print(f"  {marker} id={row.id} hash={row.content_hash} created_at={row.created_at.isoformat()}")
    return 0 if outcome.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
