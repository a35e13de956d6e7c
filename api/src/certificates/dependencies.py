"""FastAPI dependencies for certificates."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import CertificateError, CertificateService


async def get_certificate_service(request: Request) -> CertificateService:
    """Get the local certificate service from app state."""
    service = getattr(request.app.state, "certificate_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Servico de certificados nao disponivel",
        )
    return service


CertificateServiceDep = Annotated[CertificateService, Depends(get_certificate_service)]


def handle_certificate_error(error: CertificateError) -> HTTPException:
    """Convert certificate errors to HTTP exceptions."""
    status_map = {
        "lesson_not_found": status.HTTP_404_NOT_FOUND,
        "course_without_lessons": status.HTTP_400_BAD_REQUEST,
        "completion_check_failed": status.HTTP_502_BAD_GATEWAY,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
