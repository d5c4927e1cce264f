import pytest
import string
from datetime import timedelta

from conftest import NOW, PASSWORD, build_user

from lms_service.application.use_cases.users import UserDirectory
from lms_service.config import settings
from lms_service.domain.errors import Conflict, Forbidden, Unauthenticated, ValidationFailed
from lms_service.infrastructure.repositories import InvitationRepository, UserRepository
from lms_service.infrastructure.security import PasswordHasher, generate_random_password


@pytest.fixture
def directory(memory_storage, locks):
    return UserDirectory(memory_storage, locks, PasswordHasher(), settings)


@pytest.fixture
def admin(memory_storage):
    admin = build_user(role="admin")
    UserRepository(memory_storage).add(admin)
    return admin


def test_seed_only_when_empty(directory):
    seeded = directory.seed_if_empty()
    assert seeded.is_admin
    assert seeded.status == "active"
    assert directory.seed_if_empty() is None
    assert len(directory.list_users()) == 1
    assert directory.authenticate(settings.SEED_ADMIN_EMAIL, settings.SEED_ADMIN_PASSWORD).id == seeded.id


def test_authenticate_rejects_bad_password_and_inactive(directory, memory_storage):
    user = build_user(email="ann@example.com")
    UserRepository(memory_storage).add(user)
    assert directory.authenticate("ANN@example.com", PASSWORD).id == user.id
    with pytest.raises(Unauthenticated):
        directory.authenticate("ann@example.com", "wrong-password")
    directory.toggle_status(user.id)
    with pytest.raises(Unauthenticated):
        directory.authenticate("ann@example.com", PASSWORD)


def test_invite_then_accept(directory, memory_storage):
    user, invitation = directory.invite({"email": "new@example.com", "first_name": "New"}, now=NOW)
    assert user.status == "invited"
    assert len(invitation.code) == 8
    assert invitation.expires_at == NOW + timedelta(days=settings.INVITATION_TTL_DAYS)
    assert "code=" + invitation.code in directory.invitation_link(invitation)

    with pytest.raises(Conflict):
        directory.invite({"email": "NEW@example.com"})

    active = directory.accept_invitation("new@example.com", invitation.code, "longenough", "longenough", now=NOW)
    assert active.status == "active"
    assert active.invitation_code is None
    assert InvitationRepository(memory_storage).all() == []
    assert directory.authenticate("new@example.com", "longenough").id == user.id

    # single use
    with pytest.raises(ValidationFailed):
        directory.accept_invitation("new@example.com", invitation.code, "longenough", "longenough", now=NOW)


def test_accept_invitation_validation(directory):
    _, invitation = directory.invite({"email": "new@example.com"}, now=NOW)
    with pytest.raises(ValidationFailed):
        directory.accept_invitation("new@example.com", invitation.code, "longenough", "different", now=NOW)
    with pytest.raises(ValidationFailed):
        directory.accept_invitation("new@example.com", invitation.code, "short", "short", now=NOW)
    with pytest.raises(ValidationFailed):
        directory.accept_invitation("new@example.com", "deadbeef", "longenough", "longenough", now=NOW)
    expired = NOW + timedelta(days=settings.INVITATION_TTL_DAYS + 1)
    with pytest.raises(ValidationFailed):
        directory.accept_invitation("new@example.com", invitation.code, "longenough", "longenough", now=expired)


def test_profile_update_rules(directory, memory_storage, admin):
    user = build_user()
    UserRepository(memory_storage).add(user)

    updated = directory.update_user(user, user.id, {"company": "Acme", "phone": "123"})
    assert updated.company == "Acme"

    with pytest.raises(Forbidden):
        directory.update_user(user, user.id, {"role": "admin"})
    with pytest.raises(Forbidden):
        directory.update_user(user, admin.id, {"company": "Evil"})

    promoted = directory.update_user(admin, user.id, {"role": "admin", "permissions": {"can_take_exams": False}})
    assert promoted.is_admin
    assert promoted.permissions.can_take_exams is False
    assert promoted.permissions.can_access_courses is True


def test_update_permissions_merges(directory, memory_storage):
    user = build_user()
    UserRepository(memory_storage).add(user)
    result = directory.update_permissions(user.id, {"can_download_certificates": False})
    assert result.permissions.can_download_certificates is False
    assert result.permissions.can_access_courses is True


def test_change_password(directory, memory_storage, admin):
    user = build_user(email="bob@example.com")
    UserRepository(memory_storage).add(user)
    with pytest.raises(ValidationFailed):
        directory.change_password(user, user.id, "wrong-password", "new-password-1", "new-password-1")
    directory.change_password(user, user.id, PASSWORD, "new-password-1", "new-password-1")
    assert directory.authenticate("bob@example.com", "new-password-1")
    # admins skip the current password check
    directory.change_password(admin, user.id, None, "admin-chosen-1")
    assert directory.authenticate("bob@example.com", "admin-chosen-1")


def test_admin_reset_password(directory, memory_storage, admin):
    user = build_user(email="carl@example.com")
    UserRepository(memory_storage).add(user)
    password = directory.reset_user_password(admin, user.id)
    assert len(password) == 12
    assert directory.authenticate("carl@example.com", password)

    with pytest.raises(Forbidden):
        directory.reset_user_password(user, admin.id)
    with pytest.raises(Forbidden):
        directory.reset_user_password(admin, admin.id)
    directory.toggle_status(user.id)
    with pytest.raises(ValidationFailed):
        directory.reset_user_password(admin, user.id)


def test_forgot_and_reset_password(directory, memory_storage):
    user = build_user(email="dana@example.com")
    UserRepository(memory_storage).add(user)
    token = directory.request_password_reset("dana@example.com", now=NOW)

    late = NOW + timedelta(minutes=settings.PASSWORD_RESET_TTL_MINUTES + 1)
    with pytest.raises(ValidationFailed):
        directory.reset_password(token, "brand-new-pass", "brand-new-pass", now=late)

    directory.reset_password(token, "brand-new-pass", "brand-new-pass", now=NOW)
    assert directory.authenticate("dana@example.com", "brand-new-pass")
    with pytest.raises(ValidationFailed):
        directory.reset_password(token, "another-pass-1", "another-pass-1", now=NOW)


def test_generated_password_character_classes():
    for _ in range(20):
        password = generate_random_password()
        assert len(password) == 12
        assert any(c in string.ascii_uppercase for c in password)
        assert any(c in string.ascii_lowercase for c in password)
        assert any(c in string.digits for c in password)
        assert any(c in "!@#$%^&*" for c in password)
