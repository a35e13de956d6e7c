"""Drip release API endpoints.

Provides routes for:
- Module availability of a course for the current student
"""

from datetime import UTC, datetime
from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from src.auth.dependencies import CurrentUser
from src.core.logging import get_logger

from .dependencies import CourseDirectoryDep
from .scheduler import check_module_availability
from .schemas import CourseDripResponse, ModuleDripResponse


logger = get_logger(__name__)

router = APIRouter(prefix="/v1/courses", tags=["drip"])


@router.get(
    "/{course_id}/drip",
    response_model=CourseDripResponse,
    summary="Get module release schedule",
)
async def get_course_drip(
    course_id: UUID,
    directory: CourseDirectoryDep,
    user: CurrentUser,
) -> CourseDripResponse:
    """Get which modules of a course are released for the current user.

    Modules with a drip offset open that many days after enrollment.
    """
    enrolled_at = await directory.get_enrollment_date(user.id, course_id)
    if enrolled_at is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Matricula nao encontrada",
        )

    modules = await directory.list_modules(course_id)
    statuses = check_module_availability(
        modules, enrolled_at, now=datetime.now(UTC)
    )

    items = [
        ModuleDripResponse.from_status(module, statuses[module.module_id])
        for module in modules
    ]
    available_count = sum(1 for item in items if item.is_available)

    logger.debug(
        "drip_status_computed",
        course_id=str(course_id),
        modules=len(items),
        available=available_count,
    )

    return CourseDripResponse(
        course_id=course_id,
        enrolled_at=enrolled_at,
        modules=items,
        available_count=available_count,
    )
