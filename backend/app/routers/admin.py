"""API-key protected document administration routes."""

import logging
import secrets

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.db.dependencies import get_db
from app.publishing.normalization import normalize_domain
from app.schemas.common import ApiResponse
from app.schemas.document import (
    ActivateByIdRequest,
    DocumentKeyRequest,
    DocumentVersionRead,
    VersionListRead,
    VersionOutcomeRead,
)
from app.schemas.domain import DomainRead, DomainRegisterRequest
from app.services.documents import (
    VersionOutcome,
    VersionStatus,
    activate_version,
    activate_version_by_id,
    deactivate_version,
    list_versions,
)
from app.services.domains import mark_domain_verified, register_domain

logger = logging.getLogger(__name__)


def require_admin_key(
    x_api_key: str | None = Header(default=None),
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Accept the admin key from `x-api-key` or `Authorization` (raw or Bearer)."""

    presented = x_api_key or authorization
    if presented and presented.lower().startswith("bearer "):
        presented = presented[len("bearer "):].strip()
    expected = settings.admin_api_key
    if not expected or not presented or not secrets.compare_digest(presented, expected):
        logger.warning("admin.unauthorized key_present=%s", bool(presented))
        raise HTTPException(status_code=401, detail="Valid admin API key required")


router = APIRouter(prefix="/v1/admin", dependencies=[Depends(require_admin_key)])


def outcome_response(outcome: VersionOutcome) -> ApiResponse[VersionOutcomeRead]:
    """Map a store outcome to the response envelope, raising for not-found and failures."""

    if outcome.status is VersionStatus.NOT_FOUND:
        raise HTTPException(status_code=404, detail="Document version not found")
    if outcome.status is VersionStatus.FAILED:
        raise HTTPException(status_code=500, detail=outcome.error or "Document store operation failed")
    version = DocumentVersionRead.model_validate(outcome.version) if outcome.version is not None else None
    return ApiResponse(data=VersionOutcomeRead(status=outcome.status.value, version=version))


@router.post("/activate", response_model=ApiResponse[VersionOutcomeRead])
def post_activate(payload: DocumentKeyRequest, db: Session = Depends(get_db)) -> ApiResponse[VersionOutcomeRead]:
    """Make one version the single active version of its document."""

    return outcome_response(activate_version(db, payload.domain, payload.path, payload.content_hash))


@router.post("/deactivate", response_model=ApiResponse[VersionOutcomeRead])
def post_deactivate(payload: DocumentKeyRequest, db: Session = Depends(get_db)) -> ApiResponse[VersionOutcomeRead]:
    return outcome_response(deactivate_version(db, payload.domain, payload.path, payload.content_hash))


@router.post("/activate-by-id", response_model=ApiResponse[VersionOutcomeRead])
def post_activate_by_id(
    payload: ActivateByIdRequest,
    db: Session = Depends(get_db),
) -> ApiResponse[VersionOutcomeRead]:
    return outcome_response(activate_version_by_id(db, payload.version_id))


@router.get("/versions", response_model=ApiResponse[VersionListRead])
def get_versions(
    domain: str = Query(..., min_length=1, max_length=255),
    path: str = Query(..., min_length=1, max_length=1024),
    db: Session = Depends(get_db),
) -> ApiResponse[VersionListRead]:
    """List every version of a document, newest first."""

    domain = normalize_domain(domain)
    versions = [DocumentVersionRead.model_validate(row) for row in list_versions(db, domain, path)]
    return ApiResponse(
        data=VersionListRead(
            domain=domain,
            path=path,
            versions=versions,
            total=len(versions),
            active_count=sum(1 for version in versions if version.is_active),
        )
    )


@router.post("/domains", response_model=ApiResponse[DomainRead])
def post_register_domain(payload: DomainRegisterRequest, db: Session = Depends(get_db)) -> ApiResponse[DomainRead]:
    return ApiResponse(data=DomainRead.model_validate(register_domain(db, payload.domain)))


@router.post("/domains/verify", response_model=ApiResponse[DomainRead])
def post_verify_domain(payload: DomainRegisterRequest, db: Session = Depends(get_db)) -> ApiResponse[DomainRead]:
    """Record that the out-of-band ownership check succeeded."""

    record = mark_domain_verified(db, payload.domain)
    if record is None:
        raise HTTPException(status_code=404, detail="Domain not registered")
    return ApiResponse(data=DomainRead.model_validate(record))
