from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ...application.use_cases.activities import ActivityLog
from ...application.use_cases.courses import CourseCatalog
from ...application.use_cases.enrollment import ProgressEngine
from ...application.use_cases.notifications import NotificationCenter
from ...application.use_cases.users import UserDirectory
from ...config import settings
from ...infrastructure.db import get_db
from ...infrastructure.locks import KeyedLocks
from ...infrastructure.security import PasswordHasher
from ...infrastructure.storage import Storage, build_storage


def get_storage(db: Session = Depends(get_db)) -> Storage:
    return build_storage(db)


def get_locks(request: Request) -> KeyedLocks:
    return request.app.state.locks


def get_engine(storage: Storage = Depends(get_storage), locks: KeyedLocks = Depends(get_locks)) -> ProgressEngine:
    return ProgressEngine(storage, locks)


def get_catalog(storage: Storage = Depends(get_storage), locks: KeyedLocks = Depends(get_locks)) -> CourseCatalog:
    return CourseCatalog(storage, locks)


def get_directory(storage: Storage = Depends(get_storage), locks: KeyedLocks = Depends(get_locks)) -> UserDirectory:
    return UserDirectory(storage, locks, PasswordHasher(), settings)


def get_notification_center(storage: Storage = Depends(get_storage),
                            locks: KeyedLocks = Depends(get_locks)) -> NotificationCenter:
    return NotificationCenter(storage, locks)


def get_activity_log(storage: Storage = Depends(get_storage)) -> ActivityLog:
    return ActivityLog(storage)
