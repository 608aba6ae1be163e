"""
External collaborators of the assessment engine.

The engine does not own courses, levels, enrollments or content progress.
It asks these two interfaces instead. The in-memory implementations back
local development and the test suite; production wires adapters onto the
course and progress services.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional, Set, Tuple


class CourseDirectory(ABC):
    """Course structure and ownership lookups."""

    @abstractmethod
    async def course_exists(self, course_id: int) -> bool:
        pass

    @abstractmethod
    async def is_course_instructor(self, course_id: int, instructor_id: int) -> bool:
        pass

    @abstractmethod
    async def level_belongs_to_course(self, level_id: int, course_id: int) -> bool:
        pass

    @abstractmethod
    async def is_enrolled(self, course_id: int, user_id: int) -> bool:
        pass


class ProgressTracker(ABC):
    """Answers whether a user has finished the content an exam depends on."""

    @abstractmethod
    async def has_completed_required_content(self, user_id: int, course_id: int,
                                             level_id: Optional[int] = None) -> bool:
        """
        True when the user finished the level (when given) or the whole course.
        """
        pass


class InMemoryCourseDirectory(CourseDirectory):
    """
    Dictionary-backed course directory.

    Args:
        course_owners: course id -> instructor id
        level_courses: level id -> course id
        enrollments: (course id, user id) pairs
    """

    def __init__(
        self,
        course_owners: Optional[Dict[int, int]] = None,
        level_courses: Optional[Dict[int, int]] = None,
        enrollments: Optional[Iterable[Tuple[int, int]]] = None,
    ):
        self.course_owners = dict(course_owners or {})
        self.level_courses = dict(level_courses or {})
        self.enrollments: Set[Tuple[int, int]] = set(enrollments or ())

    def add_course(self, course_id: int, instructor_id: int, level_ids: Iterable[int] = ()) -> None:
        self.course_owners[course_id] = instructor_id
        for level_id in level_ids:
            self.level_courses[level_id] = course_id

    def enroll(self, course_id: int, user_id: int) -> None:
        self.enrollments.add((course_id, user_id))

    async def course_exists(self, course_id: int) -> bool:
        return course_id in self.course_owners

    async def is_course_instructor(self, course_id: int, instructor_id: int) -> bool:
        return self.course_owners.get(course_id) == instructor_id

    async def level_belongs_to_course(self, level_id: int, course_id: int) -> bool:
        return self.level_courses.get(level_id) == course_id

    async def is_enrolled(self, course_id: int, user_id: int) -> bool:
        return (course_id, user_id) in self.enrollments


class InMemoryProgressTracker(ProgressTracker):
    """Records completed levels and courses per user."""

    def __init__(self):
        self._completed_levels: Set[Tuple[int, int]] = set()
        self._completed_courses: Set[Tuple[int, int]] = set()

    def complete_level(self, user_id: int, level_id: int) -> None:
        self._completed_levels.add((user_id, level_id))

    def complete_course(self, user_id: int, course_id: int) -> None:
        self._completed_courses.add((user_id, course_id))

    async def has_completed_required_content(self, user_id: int, course_id: int,
                                             level_id: Optional[int] = None) -> bool:
        if level_id is not None:
            return (user_id, level_id) in self._completed_levels
        return (user_id, course_id) in self._completed_courses
