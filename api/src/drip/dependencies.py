"""FastAPI dependencies for drip release."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .directory import CourseDirectory


async def get_course_directory(request: Request) -> CourseDirectory:
    """Get course directory from app state."""
    directory = getattr(request.app.state, "course_directory", None)
    if directory is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Servico de cursos nao disponivel",
        )
    return directory


CourseDirectoryDep = Annotated[CourseDirectory, Depends(get_course_directory)]
