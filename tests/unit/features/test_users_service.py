"""Administrative user operations and their rank rules."""

from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from intranet_access.core.errors import (
    EmailInUseError,
    InvalidIdentityError,
    OwnerProtectedError,
    PermissionDeniedError,
)
from intranet_access.core.rbac.types import Role, UserStatus
from intranet_access.features.audit import AuditEventType
from intranet_access.features.users import (
    InMemoryUserDirectory,
    UserCreate,
    UserInvite,
    UserProfileUpdate,
)
from intranet_access.features.users.service import UsersService

pytestmark = pytest.mark.asyncio


async def _add(directory: InMemoryUserDirectory, user_id: str, role: Role):
    return await directory.create(
        user_id,
        UserCreate(email=f"{user_id}@example.test", display_name=user_id.title(), role=role),
    )


async def test_owner_creates_admin(users_service: UsersService, owner, credentials) -> None:
    record = await users_service.create_user(
        owner.id,
        UserInvite(
            email="newadmin@example.test",
            password="long enough",
            display_name="New Admin",
            role=Role.ADMIN,
        ),
    )

    assert record.role is Role.ADMIN
    assert record.department == "Sales"
    assert "newadmin@example.test" in credentials


async def test_create_user_rejects_owner_role_and_equal_rank(
    users_service: UsersService,
    owner,
    directory,
) -> None:
    await _add(directory, "adm", Role.ADMIN)
    invite = UserInvite(email="x@example.test", password="long enough", display_name="X")

    with pytest.raises(PermissionDeniedError) as excinfo:
        await users_service.create_user(owner.id, invite.model_copy(update={"role": Role.OWNER}))
    assert excinfo.value.reason == "owner_role"

    with pytest.raises(PermissionDeniedError) as excinfo:
        await users_service.create_user("adm", invite.model_copy(update={"role": Role.ADMIN}))
    assert excinfo.value.reason == "insufficient_rank"


async def test_create_user_requires_permission(users_service: UsersService, directory) -> None:
    await _add(directory, "mgr", Role.MANAGER)

    with pytest.raises(PermissionDeniedError) as excinfo:
        await users_service.create_user(
            "mgr", UserInvite(email="y@example.test", password="long enough", display_name="Y")
        )
    assert excinfo.value.reason == "missing_permission"


async def test_create_user_rejects_taken_email(users_service: UsersService, owner) -> None:
    with pytest.raises(EmailInUseError):
        await users_service.create_user(
            owner.id,
            UserInvite(email="OWNER@example.test", password="long enough", display_name="Dup"),
        )


async def test_change_role_rules(
    users_service: UsersService,
    owner,
    directory,
    audit,
    audit_sink,
) -> None:
    await _add(directory, "adm", Role.ADMIN)
    await _add(directory, "bob", Role.AGENT)

    updated = await users_service.change_role("adm", "bob", Role.MANAGER)
    await audit.drain()

    assert updated.role is Role.MANAGER
    events = audit_sink.of_type(AuditEventType.ROLE_CHANGED)
    assert events[-1].details == {
        "target_role": "manager",
        "old_role": "agent",
        "new_role": "manager",
    }

    with pytest.raises(PermissionDeniedError):
        await users_service.change_role("adm", "bob", Role.ADMIN)
    with pytest.raises(PermissionDeniedError):
        await users_service.change_role(owner.id, "bob", Role.OWNER)
    with pytest.raises(OwnerProtectedError):
        await users_service.change_role("adm", owner.id, Role.AGENT)


async def test_change_role_unknown_target(users_service: UsersService, owner) -> None:
    with pytest.raises(InvalidIdentityError):
        await users_service.change_role(owner.id, "ghost", Role.AGENT)


async def test_deactivate_and_reactivate(users_service: UsersService, owner, directory) -> None:
    await _add(directory, "bob", Role.AGENT)

    inactive = await users_service.deactivate_user(owner.id, "bob")
    active = await users_service.set_status(owner.id, "bob", UserStatus.ACTIVE)

    assert inactive.status is UserStatus.INACTIVE
    assert active.is_active


async def test_owner_and_self_cannot_be_deactivated(
    users_service: UsersService,
    owner,
    directory,
) -> None:
    await _add(directory, "adm", Role.ADMIN)

    with pytest.raises(OwnerProtectedError):
        await users_service.deactivate_user("adm", owner.id)
    with pytest.raises(PermissionDeniedError) as excinfo:
        await users_service.deactivate_user("adm", "adm")
    assert excinfo.value.reason == "self_deactivate"


async def test_deactivated_admin_loses_access(
    users_service: UsersService,
    owner,
    directory,
) -> None:
    await _add(directory, "adm", Role.ADMIN)
    await _add(directory, "bob", Role.AGENT)
    await users_service.deactivate_user(owner.id, "adm")

    with pytest.raises(PermissionDeniedError) as excinfo:
        await users_service.list_users("adm")
    assert excinfo.value.reason == "inactive"


async def test_list_users_filters(users_service: UsersService, owner, directory) -> None:
    await _add(directory, "mgr", Role.MANAGER)
    await _add(directory, "bob", Role.AGENT)
    await users_service.deactivate_user(owner.id, "bob")

    everyone = await users_service.list_users("mgr")
    active = await users_service.list_users("mgr", active_only=True)
    agents = await users_service.list_users("mgr", role=Role.AGENT)

    assert {record.id for record in everyone} == {owner.id, "mgr", "bob"}
    assert "bob" not in {record.id for record in active}
    assert [record.id for record in agents] == ["bob"]

    with pytest.raises(PermissionDeniedError):
        await users_service.list_users("bob")


async def test_get_user_allows_self_lookup(users_service: UsersService, directory) -> None:
    await _add(directory, "bob", Role.AGENT)
    await _add(directory, "cat", Role.AGENT)

    assert (await users_service.get_user("bob", "bob")).id == "bob"
    with pytest.raises(PermissionDeniedError):
        await users_service.get_user("bob", "cat")


async def test_stats(users_service: UsersService, owner, directory) -> None:
    await _add(directory, "bob", Role.AGENT)
    await users_service.deactivate_user(owner.id, "bob")

    stats = await users_service.get_stats()

    assert stats.total == 2
    assert stats.active == 1
    assert stats.inactive == 1
    assert stats.by_role[Role.AGENT] == 1


async def test_update_profile_self_and_by_manager(
    users_service: UsersService,
    directory,
) -> None:
    await _add(directory, "mgr", Role.MANAGER)
    await _add(directory, "bob", Role.AGENT)

    own = await users_service.update_profile("bob", "bob", UserProfileUpdate(phone_number=" 555 "))
    edited = await users_service.update_profile(
        "mgr", "bob", UserProfileUpdate(department="Support")
    )

    assert own.phone_number == "555"
    assert edited.department == "Support"
    assert edited.phone_number == "555"
    assert edited.role is Role.AGENT
    with pytest.raises(PermissionDeniedError):
        await users_service.update_profile("bob", "mgr", UserProfileUpdate(department="X"))


async def test_record_login_stamps_and_audits(
    users_service: UsersService,
    owner,
    audit,
    audit_sink,
) -> None:
    updated = await users_service.record_login(owner.id)
    await audit.drain()

    assert updated.last_login_at is not None
    assert len(audit_sink.of_type(AuditEventType.LOGIN_SUCCESS)) == 1


async def test_create_user_keeps_directory_error_when_cleanup_fails(
    users_service: UsersService,
    owner,
    directory: InMemoryUserDirectory,
    credentials,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    async def _email_taken(user_id: str, fields: UserCreate):
        raise EmailInUseError()

    async def _store_offline(identity_id: str) -> None:
        raise OSError("credential store offline")

    monkeypatch.setattr(directory, "create", _email_taken)
    monkeypatch.setattr(credentials, "remove", _store_offline)

    with caplog.at_level(logging.ERROR, logger="intranet_access.features.users.service"):
        with pytest.raises(EmailInUseError):
            await users_service.create_user(
                owner.id,
                UserInvite(email="late@example.test", password="long enough", display_name="L"),
            )

    assert any(r.getMessage() == "users.credential.cleanup_failed" for r in caplog.records)


async def test_phone_number_longer_than_column_is_rejected() -> None:
    too_long = "+1 555 " + "9" * 40

    with pytest.raises(ValidationError):
        UserInvite(
            email="p@example.test",
            password="long enough",
            display_name="P",
            phone_number=too_long,
        )
    with pytest.raises(ValidationError):
        UserCreate(email="p@example.test", display_name="P", phone_number=too_long)
    assert UserCreate(email="p@example.test", display_name="P", phone_number="5" * 40).phone_number
