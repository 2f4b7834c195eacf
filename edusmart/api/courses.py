"""Course catalog endpoints.

The catalog is what module completions are resolved against: a module
completion must name a course listed here and one of its modules.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from edusmart.api.dependencies import require_role, require_user
from edusmart.models.course import Course, CourseModule
from edusmart.models.principal import Principal
from edusmart.repos.course_catalog import course_catalog

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/courses", tags=["courses"])


class ModuleOut(BaseModel):
    id: str
    position: int
    title: str


class CourseOut(BaseModel):
    id: str
    slug: str
    title: str
    domain: str
    difficulty: str
    description: str
    modules: list[ModuleOut] = []


class ModuleIn(BaseModel):
    id: str = Field(min_length=1)
    title: str = Field(min_length=1)


class CourseIn(BaseModel):
    id: str = Field(min_length=1)
    slug: str | None = None
    title: str = Field(min_length=1)
    domain: str = Field(min_length=1)
    difficulty: str = "beginner"
    description: str = ""
    modules: list[ModuleIn] = []  # in learning order


def _course_out(course: Course, modules: list[CourseModule]) -> CourseOut:
    return CourseOut(
        id=course.id,
        slug=course.slug,
        title=course.title,
        domain=course.domain,
        difficulty=course.difficulty,
        description=course.description,
        modules=[ModuleOut(id=m.id, position=m.position, title=m.title) for m in modules],
    )


@router.get("", response_model=list[CourseOut])
async def list_courses(
    _principal: Annotated[Principal, Depends(require_user)],
) -> list[CourseOut]:
    courses = await course_catalog.list_courses()
    return [_course_out(c, await course_catalog.list_modules(c.id)) for c in courses]


@router.get("/{course_id}", response_model=CourseOut)
async def get_course(
    course_id: str,
    _principal: Annotated[Principal, Depends(require_user)],
) -> CourseOut:
    course = await course_catalog.get_course(course_id)
    if course is None:
        raise HTTPException(status_code=404, detail="course not found")
    return _course_out(course, await course_catalog.list_modules(course_id))


@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(
    payload: CourseIn,
    principal: Annotated[Principal, Depends(require_role("admin"))],
) -> CourseOut:
    module_ids = [m.id for m in payload.modules]
    if len(set(module_ids)) != len(module_ids):
        raise HTTPException(status_code=422, detail="module ids must be unique")

    course = Course(
        id=payload.id,
        slug=payload.slug or payload.id,
        title=payload.title,
        domain=payload.domain.strip(),
        difficulty=payload.difficulty,
        description=payload.description,
    )
    modules = [
        CourseModule(id=m.id, course_id=course.id, position=i, title=m.title)
        for i, m in enumerate(payload.modules, start=1)
    ]
    try:
        await course_catalog.add_course(course, modules)
    except ValueError:
        raise HTTPException(status_code=409, detail="course already exists") from None

    logger.info(
        "Course created id=%s modules=%d by user=%s",
        course.id,
        len(modules),
        principal.user_id,
    )
    return _course_out(course, modules)
