"""Public markdown serving route: GET /{domain}/{path}[.md]."""

import logging
from datetime import datetime, timezone
from email.utils import format_datetime

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.db.dependencies import get_db
from app.publishing.normalization import InvalidDocumentPath, normalize_document_request
from app.services.documents import ServeStatus, get_servable_document

logger = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store"}

router = APIRouter()


def _http_date(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


@router.get("/{document_path:path}")
def serve_document(
    document_path: str,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Serve the single active markdown version for a verified domain."""

    try:
        key = normalize_document_request(document_path)
    except InvalidDocumentPath as exc:
        raise HTTPException(status_code=400, detail=str(exc), headers=NO_STORE) from exc

    outcome = get_servable_document(db, key.domain, key.path)
    logger.info(
        "serving.request domain=%s path=%s status=%s reason=%s",
        key.domain,
        key.path,
        outcome.status.value,
        outcome.reason,
    )
    if outcome.status is ServeStatus.FORBIDDEN:
        raise HTTPException(status_code=403, detail="Forbidden", headers=NO_STORE)
    if outcome.status is ServeStatus.NOT_FOUND or outcome.version is None:
        raise HTTPException(status_code=404, detail="Markdown not found", headers=NO_STORE)

    version = outcome.version
    body = (version.content or "").encode("utf-8")
    if len(body) > settings.max_served_document_bytes:
        logger.error("serving.content_too_large domain=%s path=%s bytes=%d", key.domain, key.path, len(body))
        raise HTTPException(status_code=500, detail="Content too large", headers=NO_STORE)

    return Response(
        content=body,
        media_type="text/markdown; charset=utf-8",
        headers={
            "Cache-Control": "public, max-age=300",
            "ETag": f'"{version.content_hash}"',
            "Last-Modified": _http_date(version.generated_at),
        },
    )
