from datetime import datetime, time, timedelta, timezone

import structlog

from .enrollment import ProgressEngine
from ...domain.entities import Notification, User
from ...domain.errors import NotFound
from ...domain.progress import (
    add_months,
    is_chapter_complete,
    is_course_complete,
    new_id,
    utcnow,
)
from ...infrastructure.locks import KeyedLocks
from ...infrastructure.metrics import notifications_generated_total
from ...infrastructure.repositories import NotificationRepository, UserRepository
from ...infrastructure.storage import Storage

logger = structlog.get_logger()

EXPIRY_WARNING_DAYS = 30
UPCOMING_WINDOW_DAYS = 2


class NotificationCenter:
    """Derived alerts, regenerated by rescanning a user's courses.

    Only ``chapter_available`` is deduplicated against what is already in the
    store; ``upcoming_chapter`` and ``incomplete_chapter`` are emitted again on
    every scan that still matches.
    """

    def __init__(self, storage: Storage, locks: KeyedLocks):
        self.storage = storage
        self.locks = locks
        self.repo = NotificationRepository(storage)
        self.engine = ProgressEngine(storage, locks)

    def entries(self, user_id: str) -> list[Notification]:
        return self.repo.for_user(user_id)

    def unread_count(self, user_id: str) -> int:
        return sum(1 for n in self.repo.for_user(user_id) if not n.is_read)

    def derive(self, user: User, existing: list[Notification], now: datetime) -> list[Notification]:
        today = now.date()
        midnight = datetime.combine(today, time.min, tzinfo=timezone.utc)
        upcoming_limit = today + timedelta(days=UPCOMING_WINDOW_DAYS)
        expiry_limit = midnight + timedelta(days=EXPIRY_WARNING_DAYS)
        announced = {(n.course_id, n.chapter_id) for n in existing if n.type == "chapter_available"}
        emitted: list[Notification] = []

        def emit(type_, title, message, course, chapter=None, expires_at=None):
            emitted.append(Notification(
                id=new_id(),
                type=type_,
                title=title,
                message=message,
                timestamp=now,
                course_id=course.id,
                course_name=course.title,
                chapter_id=chapter.id if chapter else None,
                chapter_name=chapter.title if chapter else None,
                expires_at=expires_at,
            ))

        for view in self.engine.course_views(user):
            course = view.course
            if view.completed_at is not None:
                valid_until = add_months(view.completed_at, course.certificate_validity.months)
                if midnight < valid_until <= expiry_limit:
                    emit("expiring_certificate", "Certificate Expiring Soon",
                         f'Your certificate for "{course.title}" will expire on {valid_until:%Y-%m-%d}',
                         course, expires_at=valid_until)

            if view.enrolled_at is None or is_course_complete(course) or course.status != "active":
                continue
            for chapter in course.chapters:
                complete = is_chapter_complete(chapter)
                if chapter.start_date == today and not complete \
                        and (course.id, chapter.id) not in announced:
                    emit("chapter_available", "New Chapter Available",
                         f'Chapter "{chapter.title}" in "{course.title}" is now available!',
                         course, chapter)
                    announced.add((course.id, chapter.id))
                if today < chapter.start_date <= upcoming_limit:
                    emit("upcoming_chapter", "Upcoming Chapter",
                         f'Chapter "{chapter.title}" in "{course.title}" starts on '
                         f'{chapter.start_date:%Y-%m-%d} at {chapter.start_time}',
                         course, chapter,
                         expires_at=datetime.combine(chapter.start_date, time.min, tzinfo=timezone.utc))
                if chapter.start_date < today and not complete:
                    emit("incomplete_chapter", "Incomplete Chapter",
                         f'You have incomplete milestones in "{chapter.title}" ({course.title})',
                         course, chapter)
        return emitted

    def generate(self, user: User, now: datetime | None = None) -> list[Notification]:
        now = now or utcnow()
        with self.locks.hold(self.repo.key(user.id)):
            existing = self.repo.for_user(user.id)
            emitted = self.derive(user, existing, now)
            if emitted:
                # newest first, in the order they were derived
                self.repo.save_all(user.id, emitted + existing)
        for notification in emitted:
            notifications_generated_total.labels(type=notification.type).inc()
        logger.info("notifications_generated", user_id=user.id, count=len(emitted))
        return emitted

    def generate_for_all(self, now: datetime | None = None) -> int:
        now = now or utcnow()
        total = 0
        for user in UserRepository(self.storage).all():
            if user.status == "active":
                total += len(self.generate(user, now))
        return total

    def mark_read(self, user_id: str, notification_id: str) -> Notification:
        with self.locks.hold(self.repo.key(user_id)):
            notifications = self.repo.for_user(user_id)
            target = next((n for n in notifications if n.id == notification_id), None)
            if target is None:
                raise NotFound("Notification not found")
            target.is_read = True
            self.repo.save_all(user_id, notifications)
        return target

    def mark_all_read(self, user_id: str) -> None:
        with self.locks.hold(self.repo.key(user_id)):
            notifications = self.repo.for_user(user_id)
            for notification in notifications:
                notification.is_read = True
            self.repo.save_all(user_id, notifications)

    def clear_all(self, user_id: str) -> None:
        with self.locks.hold(self.repo.key(user_id)):
            self.repo.save_all(user_id, [])
        logger.info("notifications_cleared", user_id=user_id)
