from datetime import datetime
from typing import Any

import structlog
from pydantic import TypeAdapter, ValidationError

from ...domain.entities import Course
from ...domain.errors import NotFound, ValidationFailed
from ...domain.progress import clone_course, new_id, utcnow
from ...infrastructure.locks import KeyedLocks
from ...infrastructure.repositories import CourseRepository, EnrollmentRepository
from ...infrastructure.storage import Storage

logger = structlog.get_logger()

_course = TypeAdapter(Course)

# fields an administrator may change after creation
EDITABLE_FIELDS = {
    "title", "description", "status", "start_date", "duration", "chapters",
    "certificate_validity", "instructor", "target_users", "image",
}


def _prepare_chapters(chapters: list[dict]) -> list[dict]:
    prepared = []
    for position, chapter in enumerate(chapters):
        milestones = [
            {**m, "id": m.get("id") or new_id(), "completed": False, "completed_at": None}
            for m in chapter.get("milestones", [])
        ]
        prepared.append({**chapter, "id": chapter.get("id") or new_id(),
                         "order": position, "milestones": milestones})
    return prepared


def _check_questions(course: Course) -> None:
    for milestone in course.iter_milestones():
        if milestone.type != "questionary":
            continue
        if not milestone.questions:
            raise ValidationFailed(f'Milestone "{milestone.title}" needs at least one question')
        for question in milestone.questions:
            if not 0 <= question.correct_answer < len(question.answers):
                raise ValidationFailed(
                    f'Question "{question.question}" has no answer at index {question.correct_answer}')


class CourseCatalog:
    """Administrator operations on shared course definitions."""

    def __init__(self, storage: Storage, locks: KeyedLocks):
        self.storage = storage
        self.locks = locks
        self.courses = CourseRepository(storage)
        self.enrollments = EnrollmentRepository(storage)

    def list_all(self) -> list[Course]:
        return self.courses.all()

    def get(self, course_id: str) -> Course:
        course = self.courses.get(course_id)
        if course is None:
            raise NotFound("Course not found")
        return course

    def _build(self, data: dict[str, Any]) -> Course:
        try:
            course = _course.validate_python(data)
        except ValidationError as e:
            raise ValidationFailed(str(e))
        _check_questions(course)
        return course

    def create(self, data: dict[str, Any], now: datetime | None = None) -> Course:
        now = now or utcnow()
        course = self._build({
            **data,
            "id": new_id(),
            "chapters": _prepare_chapters(data.get("chapters", [])),
            "enrolled_count": 0,
            "created_at": now,
            "updated_at": now,
        })
        with self.locks.hold(CourseRepository.KEY):
            self.courses.add(course)
        logger.info("course_created", course_id=course.id, status=course.status)
        return course

    def update(self, course_id: str, changes: dict[str, Any], now: datetime | None = None) -> Course:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationFailed(f"Cannot update fields: {', '.join(sorted(unknown))}")
        with self.locks.hold(CourseRepository.KEY):
            current = self.get(course_id)
            data = _course.dump_python(current)
            data.update(changes)
            if "chapters" in changes:
                data["chapters"] = _prepare_chapters(changes["chapters"])
            data["updated_at"] = now or utcnow()
            course = self._build(data)
            self.courses.update(course)
        logger.info("course_updated", course_id=course_id, fields=sorted(changes))
        return course

    def activate(self, course_id: str, now: datetime | None = None) -> Course:
        return self._set_status(course_id, "active", now)

    def toggle_status(self, course_id: str, now: datetime | None = None) -> Course:
        with self.locks.hold(CourseRepository.KEY):
            course = self.get(course_id)
            course.status = "inactive" if course.status == "active" else "active"
            course.updated_at = now or utcnow()
            self.courses.update(course)
        logger.info("course_status_changed", course_id=course_id, status=course.status)
        return course

    def _set_status(self, course_id: str, status: str, now: datetime | None) -> Course:
        with self.locks.hold(CourseRepository.KEY):
            course = self.get(course_id)
            course.status = status
            course.updated_at = now or utcnow()
            self.courses.update(course)
        logger.info("course_status_changed", course_id=course_id, status=status)
        return course

    def clone(self, course_id: str, now: datetime | None = None) -> Course:
        with self.locks.hold(CourseRepository.KEY):
            clone = clone_course(self.get(course_id), now)
            self.courses.add(clone)
        logger.info("course_cloned", source_id=course_id, course_id=clone.id)
        return clone

    def delete(self, course_id: str) -> None:
        """Remove an inactive course together with any enrollment records for it."""
        user_ids = self.enrollments.user_ids()
        keys = [CourseRepository.KEY] + [self.enrollments.key(uid) for uid in user_ids]
        with self.locks.hold(*keys):
            course = self.get(course_id)
            if course.status != "inactive":
                raise ValidationFailed("Only inactive courses can be deleted")
            with self.storage.transaction(*keys):
                self.courses.remove(course_id)
                for uid in user_ids:
                    if self.enrollments.get(uid, course_id) is not None:
                        self.enrollments.remove(uid, course_id)
        logger.info("course_deleted", course_id=course_id)
