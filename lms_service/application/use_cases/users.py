from dataclasses import asdict
from datetime import datetime, timedelta
from urllib.parse import urlencode

import structlog

from ...config import Settings
from ...domain.entities import Invitation, Permissions, User
from ...domain.errors import Conflict, Forbidden, NotFound, Unauthenticated, ValidationFailed
from ...domain.progress import new_id, utcnow
from ...infrastructure.locks import KeyedLocks
from ...infrastructure.repositories import InvitationRepository, UserRepository
from ...infrastructure.security import (
    PasswordHasher,
    generate_invitation_code,
    generate_random_password,
    generate_reset_token,
)
from ...infrastructure.storage import Storage

logger = structlog.get_logger()

PROFILE_FIELDS = {
    "first_name", "last_name", "username", "company", "phone", "title",
    "avatar", "linkedin", "instagram",
}
ADMIN_FIELDS = {"role", "status", "permissions"}


class UserDirectory:
    def __init__(self, storage: Storage, locks: KeyedLocks, hasher: PasswordHasher, settings: Settings):
        self.storage = storage
        self.locks = locks
        self.hasher = hasher
        self.settings = settings
        self.users = UserRepository(storage)
        self.invitations = InvitationRepository(storage)

    def _get(self, user_id: str) -> User:
        user = self.users.get(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def _check_new_password(self, password: str, confirm: str | None) -> None:
        if confirm is not None and password != confirm:
            raise ValidationFailed("Passwords do not match")
        if len(password) < self.settings.MIN_PASSWORD_LENGTH:
            raise ValidationFailed(
                f"Password must be at least {self.settings.MIN_PASSWORD_LENGTH} characters long")

    def list_users(self) -> list[User]:
        return self.users.all()

    def get(self, user_id: str) -> User:
        return self._get(user_id)

    def seed_if_empty(self, now: datetime | None = None) -> User | None:
        """Create the configured administrator when no users exist yet."""
        with self.locks.hold(UserRepository.KEY):
            if self.users.all():
                return None
            now = now or utcnow()
            admin = User(
                id=new_id(),
                email=self.settings.SEED_ADMIN_EMAIL,
                first_name=self.settings.SEED_ADMIN_FIRST_NAME,
                last_name=self.settings.SEED_ADMIN_LAST_NAME,
                role="admin",
                status="active",
                permissions=Permissions(),
                password_hash=self.hasher.hash(self.settings.SEED_ADMIN_PASSWORD),
                created_at=now,
                updated_at=now,
            )
            self.users.add(admin)
        logger.info("admin_seeded", email=admin.email)
        return admin

    def authenticate(self, email: str, password: str) -> User:
        user = self.users.get_by_email(email)
        if not user or user.status != "active" or not self.hasher.verify(password, user.password_hash):
            logger.info("login_rejected", email=email)
            raise Unauthenticated("Invalid credentials")
        return user

    def invite(self, data: dict, now: datetime | None = None) -> tuple[User, Invitation]:
        now = now or utcnow()
        with self.locks.hold(UserRepository.KEY, InvitationRepository.KEY):
            if self.users.get_by_email(data["email"]):
                raise Conflict("User with this email already exists")
            permissions = data.get("permissions") or {}
            user = User(
                id=new_id(),
                email=data["email"],
                first_name=data.get("first_name") or "",
                last_name=data.get("last_name") or "",
                username=data.get("username"),
                company=data.get("company"),
                phone=data.get("phone"),
                role=data.get("role", "user"),
                status="invited",
                permissions=Permissions(**permissions),
                invitation_code=generate_invitation_code(),
                created_at=now,
                updated_at=now,
            )
            invitation = Invitation(
                email=user.email,
                code=user.invitation_code,
                user_id=user.id,
                expires_at=now + timedelta(days=self.settings.INVITATION_TTL_DAYS),
            )
            with self.storage.transaction(UserRepository.KEY, InvitationRepository.KEY):
                self.users.add(user)
                self.invitations.add(invitation)
        logger.info("user_invited", user_id=user.id, role=user.role)
        return user, invitation

    def invitation_link(self, invitation: Invitation) -> str:
        query = urlencode({"email": invitation.email, "code": invitation.code})
        return f"{self.settings.PUBLIC_BASE_URL}/accept-invitation?{query}"

    def accept_invitation(self, email: str, code: str, password: str, confirm_password: str,
                          now: datetime | None = None) -> User:
        now = now or utcnow()
        self._check_new_password(password, confirm_password)
        with self.locks.hold(UserRepository.KEY, InvitationRepository.KEY):
            user = self.users.get_by_email(email)
            if not user or user.invitation_code != code or user.status != "invited":
                raise ValidationFailed("Invalid invitation")
            invitation = self.invitations.find(email, code)
            if invitation is not None and invitation.expires_at < now:
                raise ValidationFailed("Invitation has expired")
            user.status = "active"
            user.invitation_code = None
            user.password_hash = self.hasher.hash(password)
            user.updated_at = now
            with self.storage.transaction(UserRepository.KEY, InvitationRepository.KEY):
                self.users.update(user)
                self.invitations.remove(email, code)
        logger.info("invitation_accepted", user_id=user.id)
        return user

    def update_user(self, actor: User, user_id: str, changes: dict, now: datetime | None = None) -> User:
        if actor.id != user_id and not actor.is_admin:
            raise Forbidden("Forbidden")
        allowed = PROFILE_FIELDS | (ADMIN_FIELDS if actor.is_admin else set())
        rejected = set(changes) - allowed
        if rejected:
            raise Forbidden(f"Cannot update fields: {', '.join(sorted(rejected))}")
        with self.locks.hold(UserRepository.KEY):
            user = self._get(user_id)
            for name, value in changes.items():
                if name == "permissions":
                    value = Permissions(**{**asdict(user.permissions), **value})
                setattr(user, name, value)
            user.updated_at = now or utcnow()
            self.users.update(user)
        logger.info("user_updated", user_id=user_id, actor_id=actor.id, fields=sorted(changes))
        return user

    def update_permissions(self, user_id: str, permissions: dict) -> User:
        with self.locks.hold(UserRepository.KEY):
            user = self._get(user_id)
            user.permissions = Permissions(**{**asdict(user.permissions), **permissions})
            user.updated_at = utcnow()
            self.users.update(user)
        logger.info("user_permissions_updated", user_id=user_id)
        return user

    def toggle_status(self, user_id: str) -> User:
        with self.locks.hold(UserRepository.KEY):
            user = self._get(user_id)
            user.status = "inactive" if user.status == "active" else "active"
            user.updated_at = utcnow()
            self.users.update(user)
        logger.info("user_status_changed", user_id=user_id, status=user.status)
        return user

    def change_password(self, actor: User, user_id: str, current_password: str | None,
                        new_password: str, confirm_password: str | None = None) -> None:
        if actor.id != user_id and not actor.is_admin:
            raise Forbidden("Forbidden")
        self._check_new_password(new_password, confirm_password)
        with self.locks.hold(UserRepository.KEY):
            user = self._get(user_id)
            if not actor.is_admin and not self.hasher.verify(current_password or "", user.password_hash):
                raise ValidationFailed("Current password is incorrect")
            user.password_hash = self.hasher.hash(new_password)
            user.updated_at = utcnow()
            self.users.update(user)
        logger.info("password_changed", user_id=user_id, actor_id=actor.id)

    def reset_user_password(self, actor: User, user_id: str) -> str:
        if not actor.is_admin:
            raise Forbidden("Only administrators can reset passwords")
        with self.locks.hold(UserRepository.KEY):
            user = self._get(user_id)
            if user.is_admin:
                raise Forbidden("Cannot reset password for admin users")
            if user.status != "active":
                raise ValidationFailed("Can only reset passwords for active users")
            password = generate_random_password()
            user.password_hash = self.hasher.hash(password)
            user.updated_at = utcnow()
            self.users.update(user)
        logger.info("password_reset_by_admin", user_id=user_id, actor_id=actor.id)
        return password

    def request_password_reset(self, email: str, now: datetime | None = None) -> str:
        now = now or utcnow()
        with self.locks.hold(UserRepository.KEY):
            user = self.users.get_by_email(email)
            if user is None:
                raise NotFound("No account found with this email address")
            user.reset_token = generate_reset_token()
            user.reset_token_expires_at = now + timedelta(minutes=self.settings.PASSWORD_RESET_TTL_MINUTES)
            self.users.update(user)
        logger.info("password_reset_requested", user_id=user.id)
        return user.reset_token

    def reset_password(self, token: str, password: str, confirm_password: str,
                       now: datetime | None = None) -> None:
        now = now or utcnow()
        self._check_new_password(password, confirm_password)
        with self.locks.hold(UserRepository.KEY):
            user = next((u for u in self.users.all() if u.reset_token and u.reset_token == token), None)
            if user is None:
                raise ValidationFailed("Invalid or expired reset token")
            if user.reset_token_expires_at is None or user.reset_token_expires_at < now:
                raise ValidationFailed("Reset token has expired")
            user.password_hash = self.hasher.hash(password)
            user.reset_token = None
            user.reset_token_expires_at = None
            user.updated_at = now
            self.users.update(user)
        logger.info("password_reset", user_id=user.id)
