from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ModuleOutline:
    module_id: str
    title: str = ""
    lesson_ids: tuple[str, ...] = ()  # in course order


@dataclass(frozen=True, slots=True)
class CourseMetadata:
    """Course shape as published by the content subsystem.

    Read-only here.  total_lessons is authoritative for the completion
    percentage; the module outline, when present, drives module
    completion and the next-module lookup.
    """

    course_id: str
    total_lessons: int = 0
    total_modules: int = 0
    duration_days: int | None = None
    modules: tuple[ModuleOutline, ...] = ()

    @property
    def lesson_ids(self) -> frozenset[str]:
        return frozenset(lid for m in self.modules for lid in m.lesson_ids)

    @staticmethod
    def from_outline(
        course_id: str,
        modules: tuple[ModuleOutline, ...],
        *,
        duration_days: int | None = None,
    ) -> CourseMetadata:
        return CourseMetadata(
            course_id=course_id,
            total_lessons=sum(len(m.lesson_ids) for m in modules),
            total_modules=len(modules),
            duration_days=duration_days,
            modules=modules,
        )
