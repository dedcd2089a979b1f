"""First-owner bootstrap and initial account setup.

Exactly one owner may ever exist. Every owner-creating path goes through the
directory's conditional primitives, so concurrent first sign-ins or setup
submissions resolve to a single owner and typed errors for the rest.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from intranet_access.common.logging import log_context
from intranet_access.core.errors import (
    AccessCoreError,
    AlreadyInitializedError,
    DuplicateIdentityError,
    EmailInUseError,
    PermissionDeniedError,
    StoreUnavailableError,
)
from intranet_access.core.identity import (
    DEFAULT_DISPLAY_NAME,
    IdentityDescriptor,
    validate_email,
    validate_identity_id,
)
from intranet_access.core.rbac.types import Role
from intranet_access.features.audit import (
    AuditEvent,
    AuditEventType,
    AuditReporter,
    AuditSeverity,
)
from intranet_access.features.users.directory import UserDirectory
from intranet_access.features.users.schemas import UserCreate, UserRecord
from intranet_access.settings import Settings

from .credentials import CredentialProvider, check_password_strength
from .schemas import (
    BootstrapResult,
    BulkCreateItem,
    BulkCreateResult,
    OwnerSetupRequest,
    SetupResult,
    SetupStatus,
    SetupUserEntry,
)

logger = logging.getLogger(__name__)

MSG_AUTO_OWNER = "You have been automatically set as the system owner."
MSG_PROFILE_CREATED = "User profile created successfully."
MSG_PROFILE_EXISTS = "User profile already exists."
MSG_OWNER_CREATED = (
    "Owner account created successfully! You can now sign in with the new credentials."
)
MSG_OWNER_VIA_SETUP_ONLY = "Owner accounts can only be created through initial setup."


@dataclass(slots=True)
class SetupService:
    """System bootstrap operations over a ``UserDirectory``."""

    directory: UserDirectory
    settings: Settings
    credentials: CredentialProvider | None = None
    audit: AuditReporter | None = None

    # ---- Status --------------------------------------------------------

    async def get_setup_status(self) -> SetupStatus:
        users = await self.directory.list_all()
        by_role = {role: 0 for role in Role}
        for record in users:
            by_role[record.role] += 1
        has_owner = by_role[Role.OWNER] > 0
        return SetupStatus(
            needs_setup=not has_owner,
            total_users=len(users),
            users_by_role=by_role,
            has_owner=has_owner,
        )

    async def needs_initial_setup(self) -> bool:
        return not await self.directory.has_owner()

    # ---- First sign-in -------------------------------------------------

    async def auto_promote_first_user(self, identity: IdentityDescriptor) -> BootstrapResult:
        """Create the record for a first sign-in; the very first one becomes owner.

        Idempotent per identity: a repeated or concurrent call for an identity
        that already has a record returns it with ``was_promoted=False``.
        """

        identity = identity.validated()
        existing = await self.directory.get(identity.id)
        if existing is not None:
            return self._existing(existing)

        owner_fields = UserCreate(
            email=identity.email,
            display_name=identity.display_name or DEFAULT_DISPLAY_NAME,
            role=Role.OWNER,
            department=self.settings.owner_department,
        )
        try:
            record = await self.directory.create_owner_if_absent(
                identity.id,
                owner_fields,
                require_empty=self.settings.bootstrap_require_empty_directory,
            )
        except AlreadyInitializedError:
            pass
        except DuplicateIdentityError:
            return await self._reload_existing(identity.id)
        else:
            logger.info(
                "setup.owner.bootstrapped",
                extra=log_context(user_id=record.id, role=record.role),
            )
            self._report(
                AuditEventType.OWNER_BOOTSTRAPPED,
                record,
                action="auto_promote_first_user",
                severity=AuditSeverity.MEDIUM,
            )
            return BootstrapResult(
                success=True,
                was_promoted=True,
                message=MSG_AUTO_OWNER,
                role=record.role,
                user=record,
            )

        member_fields = owner_fields.model_copy(
            update={"role": Role.AGENT, "department": self.settings.member_department}
        )
        try:
            record = await self.directory.create(identity.id, member_fields)
        except DuplicateIdentityError:
            return await self._reload_existing(identity.id)

        logger.info(
            "setup.member.created",
            extra=log_context(user_id=record.id, role=record.role),
        )
        self._report(AuditEventType.USER_CREATED, record, action="auto_promote_first_user")
        return BootstrapResult(
            success=True,
            was_promoted=False,
            message=MSG_PROFILE_CREATED,
            role=record.role,
            user=record,
        )

    # ---- Interactive setup ---------------------------------------------

    async def create_initial_owner(self, request: OwnerSetupRequest) -> SetupResult:
        """Register credentials for the first owner and create the owner record.

        If another owner appears between the checks and the conditional write,
        the new credential is removed and ``AlreadyInitializedError`` is raised
        without any directory write.
        """

        email = validate_email(request.email)
        password = check_password_strength(
            request.password, min_length=self.settings.password_min_length
        )
        display_name = request.display_name.strip() or DEFAULT_DISPLAY_NAME

        if await self.directory.has_owner():
            raise AlreadyInitializedError()
        if await self.directory.exists_by_email(email):
            raise EmailInUseError()

        credentials = self._require_credentials()
        identity_id = await credentials.register(email, password, display_name)
        try:
            record = await self.directory.create_owner_if_absent(
                identity_id,
                UserCreate(
                    email=email,
                    display_name=display_name,
                    role=Role.OWNER,
                    department=self.settings.owner_department,
                ),
                require_empty=False,
            )
        except AccessCoreError as exc:
            await self._discard_credential(identity_id, exc)
            raise

        logger.info(
            "setup.owner.created",
            extra=log_context(user_id=record.id, role=record.role),
        )
        self._report(
            AuditEventType.OWNER_BOOTSTRAPPED,
            record,
            action="create_initial_owner",
            severity=AuditSeverity.MEDIUM,
        )
        return SetupResult(success=True, message=MSG_OWNER_CREATED, user_id=record.id)

    async def promote_to_owner(self, identity_id: str) -> SetupResult:
        """Promote an existing record while the system has no owner."""

        identity_id = validate_identity_id(identity_id)
        record = await self.directory.promote_to_owner_if_absent(
            identity_id, department=self.settings.owner_department
        )
        logger.info(
            "setup.owner.promoted",
            extra=log_context(user_id=record.id, role=record.role),
        )
        self._report(
            AuditEventType.ROLE_CHANGED,
            record,
            action="promote_to_owner",
            severity=AuditSeverity.MEDIUM,
            details={"new_role": Role.OWNER.value},
        )
        return SetupResult(
            success=True,
            message=f"User {record.display_name} has been promoted to owner.",
            user_id=record.id,
        )

    async def create_users(self, entries: list[SetupUserEntry]) -> BulkCreateResult:
        """Seed several accounts, reporting the outcome of each entry."""

        results: list[BulkCreateItem] = []
        for entry in entries:
            try:
                record = await self._create_one(entry)
            except AccessCoreError as exc:
                logger.warning(
                    "setup.bulk.entry_failed",
                    extra=log_context(email=entry.email, error=exc.code),
                )
                results.append(BulkCreateItem(email=entry.email, success=False, error=exc.message))
            else:
                results.append(BulkCreateItem(email=entry.email, success=True, user_id=record.id))

        created = sum(1 for item in results if item.success)
        total = len(results)
        logger.info("setup.bulk.complete", extra=log_context(created_count=created, total=total))
        if self.audit is not None:
            self.audit.report(
                AuditEvent(
                    event_type=AuditEventType.BULK_OPERATION,
                    severity=AuditSeverity.LOW,
                    action="create_users",
                    success=created > 0,
                    details={"created": created, "total": total},
                )
            )
        return BulkCreateResult(
            success=created > 0,
            message=f"Created {created} out of {total} users successfully.",
            results=results,
        )

    # ---- Internals -----------------------------------------------------

    async def _create_one(self, entry: SetupUserEntry) -> UserRecord:
        if entry.role is Role.OWNER:
            raise PermissionDeniedError(MSG_OWNER_VIA_SETUP_ONLY)
        email = validate_email(entry.email)
        password = check_password_strength(
            entry.password, min_length=self.settings.password_min_length
        )
        if await self.directory.exists_by_email(email):
            raise EmailInUseError("User already exists")

        credentials = self._require_credentials()
        identity_id = await credentials.register(email, password, entry.display_name)
        try:
            record = await self.directory.create(
                identity_id,
                UserCreate(
                    email=email,
                    display_name=entry.display_name,
                    role=entry.role,
                    department=entry.department or self.settings.member_department,
                ),
            )
        except AccessCoreError as exc:
            await self._discard_credential(identity_id, exc)
            raise
        self._report(AuditEventType.USER_CREATED, record, action="create_users")
        return record

    def _require_credentials(self) -> CredentialProvider:
        if self.credentials is None:
            raise RuntimeError("SetupService requires a CredentialProvider for account creation")
        return self.credentials

    async def _discard_credential(self, identity_id: str, cause: AccessCoreError) -> None:
        credentials = self._require_credentials()
        try:
            await credentials.remove(identity_id)
        except Exception:
            # Orphaned credential; the directory error still propagates.
            logger.exception(
                "setup.credential.cleanup_failed",
                extra=log_context(user_id=identity_id, error=cause.code),
            )
        else:
            logger.info(
                "setup.credential.removed",
                extra=log_context(user_id=identity_id, error=cause.code),
            )

    def _existing(self, record: UserRecord) -> BootstrapResult:
        return BootstrapResult(
            success=True,
            was_promoted=False,
            message=MSG_PROFILE_EXISTS,
            role=record.role,
            user=record,
        )

    async def _reload_existing(self, identity_id: str) -> BootstrapResult:
        record = await self.directory.get(identity_id)
        if record is None:
            raise StoreUnavailableError()
        return self._existing(record)

    def _report(
        self,
        event_type: AuditEventType,
        record: UserRecord,
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
                user_id=record.id,
                user_email=record.email,
                user_role=record.role,
                resource="users",
                resource_id=record.id,
                details=details or {},
            )
        )


__all__ = ["SetupService"]
