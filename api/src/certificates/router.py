"""Certificate API endpoints.

Provides routes for:
- Course completion check (mints the certificate when complete)
- Listing the current user's certificates
"""

from fastapi import APIRouter

from src.auth.dependencies import CurrentUser

from .dependencies import CertificateServiceDep, handle_certificate_error
from .schemas import (
    CertificateCheckRequest,
    CertificateListResponse,
    CertificateResponse,
    CompletionCheckResult,
)
from .service import CertificateError


router = APIRouter(prefix="/v1/certificates", tags=["certificates"])


@router.post(
    "/check",
    response_model=CompletionCheckResult,
    summary="Check course completion",
)
async def check_completion(
    data: CertificateCheckRequest,
    service: CertificateServiceDep,
    user: CurrentUser,
) -> CompletionCheckResult:
    """Check whether the course of a lesson is complete for the current user.

    Issues the certificate on the first check that finds every active
    lesson completed.
    """
    try:
        return await service.check(user.id, data.lesson_id)
    except CertificateError as e:
        raise handle_certificate_error(e) from e


@router.get(
    "",
    response_model=CertificateListResponse,
    summary="List my certificates",
)
async def list_certificates(
    service: CertificateServiceDep,
    user: CurrentUser,
) -> CertificateListResponse:
    """List certificates issued to the current user."""
    certificates = await service.list_certificates(user.id)
    return CertificateListResponse(
        items=[CertificateResponse.from_entity(c) for c in certificates],
        total=len(certificates),
    )
