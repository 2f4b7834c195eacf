"""Course/module catalog collaborator.

The progress engine only needs to resolve a course, its domain, and its
ordered modules.  The catalog is in-memory and seeded with the platform's
starter courses.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from edusmart.models.course import Course, CourseModule


class CourseCatalog(Protocol):
    async def get_course(self, course_id: str) -> Course | None: ...
    async def list_courses(self) -> list[Course]: ...
    async def list_modules(self, course_id: str) -> list[CourseModule]: ...
    async def add_course(self, course: Course, modules: Sequence[CourseModule]) -> None: ...


class InMemoryCourseCatalog:
    def __init__(self) -> None:
        self._courses: dict[str, Course] = {}
        self._modules: dict[str, list[CourseModule]] = {}

    async def get_course(self, course_id: str) -> Course | None:
        return self._courses.get(course_id)

    async def list_courses(self) -> list[Course]:
        return list(self._courses.values())

    async def list_modules(self, course_id: str) -> list[CourseModule]:
        return sorted(self._modules.get(course_id, []), key=lambda m: m.position)

    async def add_course(self, course: Course, modules: Sequence[CourseModule]) -> None:
        if course.id in self._courses:
            raise ValueError(f"course {course.id!r} already exists")
        self._courses[course.id] = course
        self._modules[course.id] = list(modules)

    def reset(self) -> None:
        """Drop everything and re-seed the starter courses."""
        self._courses.clear()
        self._modules.clear()
        _seed(self)


def _course_with_modules(
    course: Course, titles: list[tuple[str, str]]
) -> tuple[Course, list[CourseModule]]:
    modules = [
        CourseModule(id=module_id, course_id=course.id, position=i, title=title)
        for i, (module_id, title) in enumerate(titles, start=1)
    ]
    return course, modules


def _seed(catalog: InMemoryCourseCatalog) -> None:
    starter = [
        _course_with_modules(
            Course(
                id="web-development-fundamentals",
                slug="web-development-fundamentals",
                title="Web Development Fundamentals",
                domain="Web Development",
                difficulty="beginner",
                description=(
                    "Learn the basics of web development including HTML, CSS, "
                    "and JavaScript."
                ),
            ),
            [
                ("html-fundamentals", "HTML Fundamentals"),
                ("css-styling", "CSS Styling"),
                ("javascript-functions", "JavaScript Functions"),
            ],
        ),
        _course_with_modules(
            Course(
                id="introduction-to-ai",
                slug="introduction-to-ai",
                title="Introduction to Artificial Intelligence",
                domain="Artificial Intelligence",
                difficulty="intermediate",
                description=(
                    "Learn the fundamentals of AI, machine learning, and neural "
                    "networks."
                ),
            ),
            [("introduction-to-ai-basics", "Introduction to AI")],
        ),
        _course_with_modules(
            Course(
                id="cybersecurity-essentials",
                slug="cybersecurity-essentials",
                title="Cybersecurity Essentials",
                domain="Cybersecurity",
                difficulty="intermediate",
                description=(
                    "Learn the basics of cybersecurity, network security, and "
                    "ethical hacking."
                ),
            ),
            [],
        ),
    ]
    for course, modules in starter:
        catalog._courses[course.id] = course
        catalog._modules[course.id] = modules


course_catalog = InMemoryCourseCatalog()
_seed(course_catalog)
