"""Markdown render route."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.db.dependencies import get_db
from app.routers.admin import require_admin_key
from app.schemas.common import ApiResponse
from app.schemas.document import RenderRequest, RenderResult
from app.services.documents import VersionStatus, render_extracted_document

router = APIRouter(prefix="/v1", dependencies=[Depends(require_admin_key)])


@router.post("/render", response_model=ApiResponse[RenderResult])
def post_render(payload: RenderRequest, db: Session = Depends(get_db)) -> ApiResponse[RenderResult]:
    """Render extracted content and store it as a new (or duplicate) document version."""

    outcome, markdown = render_extracted_document(
        db,
        domain=payload.domain,
        source_url=payload.source_url,
        extracted=payload.extracted_content,
        content_hash=payload.content_hash,
    )
    if outcome.status is VersionStatus.FAILED or outcome.version is None:
        raise HTTPException(status_code=500, detail=outcome.error or "Render failed")

    version = outcome.version
    return ApiResponse(
        data=RenderResult(
            status=outcome.status.value,
            domain=version.domain,
            path=version.path,
            content_hash=version.content_hash,
            is_active=version.is_active,
            rendered_markdown=markdown if outcome.status is VersionStatus.CREATED else None,
        )
    )
