"""User administration on top of the directory and the evaluator.

Every mutation is authorized against the acting identity's *current* record,
and an actor may only act on roles strictly below their own. The owner role
is granted through setup only and the owner can never be demoted or
deactivated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from intranet_access.common.logging import log_context
from intranet_access.core.errors import (
    AccessCoreError,
    EmailInUseError,
    InvalidIdentityError,
    OwnerProtectedError,
    PermissionDeniedError,
)
from intranet_access.core.identity import validate_email
from intranet_access.core.rbac import policy
from intranet_access.core.rbac.types import Permission, Role, UserStatus
from intranet_access.db.base import utc_now
from intranet_access.features.audit import (
    AuditEvent,
    AuditEventType,
    AuditReporter,
    AuditSeverity,
)
from intranet_access.features.authz import AccessRequirement, AuthorizationEvaluator
from intranet_access.features.setup.credentials import (
    CredentialProvider,
    check_password_strength,
)
from intranet_access.settings import Settings

from .directory import UserDirectory
from .schemas import (
    UserCreate,
    UserInvite,
    UserProfileUpdate,
    UserRecord,
    UserStats,
    UserUpdate,
)

logger = logging.getLogger(__name__)

MSG_OWNER_ROLE = "The owner role can only be assigned through initial setup."
MSG_OUTRANK = "You can only manage users with a lower role than your own."
MSG_SELF_DEACTIVATE = "You cannot deactivate your own account."


@dataclass(slots=True)
class UsersService:
    """Administrative operations over user records."""

    directory: UserDirectory
    evaluator: AuthorizationEvaluator
    settings: Settings
    credentials: CredentialProvider | None = None
    audit: AuditReporter | None = None

    # ---- Queries -------------------------------------------------------

    async def list_users(
        self,
        actor_id: str,
        *,
        role: Role | None = None,
        active_only: bool = False,
    ) -> list[UserRecord]:
        await self._require(actor_id, Permission.USERS_VIEW, action="users.list")
        if role is not None:
            return await self.directory.list_by_role(role, active_only=active_only)
        users = await self.directory.list_all()
        if active_only:
            return [record for record in users if record.is_active]
        return users

    async def get_user(self, actor_id: str, user_id: str) -> UserRecord:
        if actor_id != user_id:
            await self._require(actor_id, Permission.USERS_VIEW, action="users.read")
        else:
            await self.evaluator.require(actor_id, AccessRequirement(), action="users.read")
        return await self._target(user_id)

    async def get_stats(self) -> UserStats:
        users = await self.directory.list_all()
        by_role = {role: 0 for role in Role}
        active = 0
        for record in users:
            by_role[record.role] += 1
            if record.is_active:
                active += 1
        return UserStats(
            total=len(users),
            active=active,
            inactive=len(users) - active,
            by_role=by_role,
        )

    # ---- Mutations -----------------------------------------------------

    async def create_user(self, actor_id: str, invite: UserInvite) -> UserRecord:
        actor = await self._require(actor_id, Permission.USERS_CREATE, action="users.create")
        if invite.role is Role.OWNER:
            raise PermissionDeniedError(MSG_OWNER_ROLE, reason="owner_role", actor_id=actor_id)
        self._ensure_outranks(actor, invite.role)

        email = validate_email(invite.email)
        password = check_password_strength(
            invite.password, min_length=self.settings.password_min_length
        )
        if await self.directory.exists_by_email(email):
            raise EmailInUseError()
        if self.credentials is None:
            raise RuntimeError("UsersService requires a CredentialProvider to create users")

        identity_id = await self.credentials.register(email, password, invite.display_name)
        try:
            record = await self.directory.create(
                identity_id,
                UserCreate(
                    email=email,
                    display_name=invite.display_name,
                    role=invite.role,
                    department=invite.department or self.settings.member_department,
                    phone_number=invite.phone_number,
                ),
            )
        except AccessCoreError as exc:
            await self._discard_credential(identity_id, exc)
            raise

        logger.info(
            "users.create.success",
            extra=log_context(user_id=record.id, role=record.role, actor_id=actor.id),
        )
        self._report(AuditEventType.USER_CREATED, actor, record, action="users.create")
        return record

    async def change_role(self, actor_id: str, user_id: str, role: Role) -> UserRecord:
        actor = await self._require(actor_id, Permission.USERS_PERMISSIONS, action="users.role")
        target = await self._target(user_id)
        if role is Role.OWNER:
            raise PermissionDeniedError(MSG_OWNER_ROLE, reason="owner_role", actor_id=actor_id)
        if target.is_owner:
            raise OwnerProtectedError()
        self._ensure_outranks(actor, target.role)
        self._ensure_outranks(actor, role)
        if target.role is role:
            return target

        updated = await self.directory.update(user_id, UserUpdate(role=role))
        logger.info(
            "users.role.change.success",
            extra=log_context(
                user_id=user_id,
                role=role,
                previous_role=target.role,
                actor_id=actor.id,
            ),
        )
        self._report(
            AuditEventType.ROLE_CHANGED,
            actor,
            updated,
            action="users.role",
            severity=AuditSeverity.MEDIUM,
            details={"old_role": target.role.value, "new_role": role.value},
        )
        return updated

    async def set_status(self, actor_id: str, user_id: str, status: UserStatus) -> UserRecord:
        deactivating = status is UserStatus.INACTIVE
        permission = Permission.USERS_DELETE if deactivating else Permission.USERS_EDIT
        actor = await self._require(actor_id, permission, action="users.status")
        target = await self._target(user_id)
        if deactivating and target.is_owner:
            raise OwnerProtectedError()
        if deactivating and actor.id == target.id:
            raise PermissionDeniedError(
                MSG_SELF_DEACTIVATE, reason="self_deactivate", actor_id=actor_id
            )
        self._ensure_outranks(actor, target.role)
        if target.status is status:
            return target

        updated = await self.directory.update(user_id, UserUpdate(status=status))
        logger.info(
            "users.status.change.success",
            extra=log_context(user_id=user_id, status=status, actor_id=actor.id),
        )
        self._report(
            AuditEventType.USER_DEACTIVATED if deactivating else AuditEventType.USER_ACTIVATED,
            actor,
            updated,
            action="users.status",
            severity=AuditSeverity.MEDIUM,
        )
        return updated

    async def deactivate_user(self, actor_id: str, user_id: str) -> UserRecord:
        return await self.set_status(actor_id, user_id, UserStatus.INACTIVE)

    async def update_profile(
        self,
        actor_id: str,
        user_id: str,
        changes: UserProfileUpdate,
    ) -> UserRecord:
        """Self-service edits, or edits by a ``users.edit`` holder who outranks the target."""

        if actor_id == user_id:
            await self.evaluator.require(actor_id, AccessRequirement(), action="users.profile")
            await self._target(user_id)
        else:
            actor = await self._require(actor_id, Permission.USERS_EDIT, action="users.profile")
            target = await self._target(user_id)
            self._ensure_outranks(actor, target.role)

        fields = changes.model_dump(exclude_unset=True, exclude_none=False, by_alias=False)
        updated = await self.directory.update(user_id, UserUpdate(**fields))
        logger.info(
            "users.profile.update.success",
            extra=log_context(user_id=user_id, actor_id=actor_id, fields=",".join(sorted(fields))),
        )
        return updated

    async def record_login(self, user_id: str) -> UserRecord:
        """Stamp ``last_login_at``; called on every successful sign-in."""

        updated = await self.directory.update(user_id, UserUpdate(last_login_at=utc_now()))
        if self.audit is not None:
            self.audit.report(
                AuditEvent(
                    event_type=AuditEventType.LOGIN_SUCCESS,
                    severity=AuditSeverity.LOW,
                    action="login",
                    success=True,
                    user_id=updated.id,
                    user_email=updated.email,
                    user_role=updated.role,
                )
            )
        return updated

    # ---- Internals -----------------------------------------------------

    async def _require(self, actor_id: str, permission: Permission, *, action: str) -> UserRecord:
        return await self.evaluator.require(
            actor_id, AccessRequirement(permission=permission), action=action
        )

    async def _target(self, user_id: str) -> UserRecord:
        record = await self.directory.get(user_id)
        if record is None:
            raise InvalidIdentityError(f"No user record exists for {user_id!r}.")
        return record

    async def _discard_credential(self, identity_id: str, cause: AccessCoreError) -> None:
        if self.credentials is None:
            return
        try:
            await self.credentials.remove(identity_id)
        except Exception:
            # Orphaned credential; the directory error still propagates.
            logger.exception(
                "users.credential.cleanup_failed",
                extra=log_context(user_id=identity_id, error=cause.code),
            )

    @staticmethod
    def _ensure_outranks(actor: UserRecord, role: Role) -> None:
        if not policy.can_manage_user(actor.role, role):
            raise PermissionDeniedError(MSG_OUTRANK, reason="insufficient_rank", actor_id=actor.id)

    def _report(
        self,
        event_type: AuditEventType,
        actor: UserRecord,
        target: UserRecord,
        *,
        action: str,
        severity: AuditSeverity = AuditSeverity.LOW,
        details: dict[str, object] | None = None,
    ) -> None:
        if self.audit is None:
            return
        self.audit.report(
            AuditEvent(
                event_type=event_type,
                severity=severity,
                action=action,
                success=True,
                user_id=actor.id,
                user_email=actor.email,
                user_role=actor.role,
                resource="users",
                resource_id=target.id,
                details={"target_role": target.role.value, **(details or {})},
            )
        )


__all__ = ["UsersService"]
