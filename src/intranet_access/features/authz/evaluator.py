"""Authorization evaluator: identity id + requirement -> decision.

The evaluator reads the directory on every call, so a decision issued after
a completed role or status change always reflects that change. Denials are
returned, never raised, and each one is reported to the audit trail.
"""

from __future__ import annotations

import logging

from intranet_access.common.logging import log_context
from intranet_access.core.errors import PermissionDeniedError, StoreUnavailableError
from intranet_access.core.rbac import policy
from intranet_access.features.audit import (
    AuditEvent,
    AuditEventType,
    AuditReporter,
    AuditSeverity,
)
from intranet_access.features.users.directory import UserDirectory
from intranet_access.features.users.schemas import UserRecord

from .schemas import (
    EMPTY_PERMISSIONS,
    AccessRequirement,
    AuthorizationDecision,
    DenialReason,
    PermissionSet,
)

logger = logging.getLogger(__name__)


def evaluate(record: UserRecord | None, requirement: AccessRequirement) -> AuthorizationDecision:
    """Decide ``requirement`` against an already-loaded record."""

    if record is None:
        return AuthorizationDecision.denied(DenialReason.UNKNOWN_IDENTITY)
    role = record.role
    if not record.is_active:
        return AuthorizationDecision.denied(DenialReason.INACTIVE, role=role)

    if requirement.permission is not None and not policy.has_permission(
        role, requirement.permission
    ):
        return AuthorizationDecision.denied(
            DenialReason.MISSING_PERMISSION,
            role=role,
            detail=_plain(requirement.permission),
        )

    if requirement.role is not None and not policy.role_at_least(role, requirement.role):
        return AuthorizationDecision.denied(
            DenialReason.ROLE_REQUIRED,
            role=role,
            detail=_plain(requirement.role),
        )

    if requirement.allowed_roles:
        allowed = {policy.coerce_role(item) for item in requirement.allowed_roles}
        if role not in allowed:
            return AuthorizationDecision.denied(DenialReason.ROLE_NOT_ALLOWED, role=role)

    if requirement.permissions and not policy.validate_access(role, requirement.permissions):
        return AuthorizationDecision.denied(
            DenialReason.MISSING_PERMISSION,
            role=role,
            detail=",".join(_plain(item) for item in requirement.permissions),
        )

    return AuthorizationDecision.authorized(role)


def _plain(value: object) -> str:
    return str(getattr(value, "value", value))


class AuthorizationEvaluator:
    """Evaluate access for identities held in a ``UserDirectory``."""

    def __init__(self, directory: UserDirectory, *, audit: AuditReporter | None = None) -> None:
        self._directory = directory
        self._audit = audit

    async def get_permissions(self, identity_id: str) -> PermissionSet:
        """Effective permissions; empty for unknown, inactive or unreachable records."""

        try:
            record = await self._directory.get(identity_id)
        except (StoreUnavailableError, TimeoutError):
            logger.warning("authz.permissions.unavailable", extra=log_context(user_id=identity_id))
            return EMPTY_PERMISSIONS
        except Exception:
            logger.exception(
                "authz.permissions.unavailable", extra=log_context(user_id=identity_id)
            )
            return EMPTY_PERMISSIONS
        if record is None:
            return EMPTY_PERMISSIONS
        if not record.is_active:
            return PermissionSet(role=record.role)
        return PermissionSet(role=record.role, permissions=policy.permissions_for(record.role))

    async def authorize(
        self,
        identity_id: str,
        requirement: AccessRequirement,
        *,
        action: str | None = None,
    ) -> AuthorizationDecision:
        decision, _ = await self._decide(identity_id, requirement, action=action)
        return decision

    async def require(
        self,
        identity_id: str,
        requirement: AccessRequirement,
        *,
        action: str | None = None,
    ) -> UserRecord:
        """Return the acting record or raise when access is not granted.

        An unreachable directory raises ``StoreUnavailableError`` so callers can
        retry; every other denial raises ``PermissionDeniedError``.
        """

        decision, record = await self._decide(identity_id, requirement, action=action)
        if decision.reason is DenialReason.UNAVAILABLE:
            raise StoreUnavailableError()
        if not decision or record is None:
            raise PermissionDeniedError(
                reason=decision.reason.value if decision.reason else None,
                actor_id=identity_id,
                required=requirement.describe(),
            )
        return record

    async def _decide(
        self,
        identity_id: str,
        requirement: AccessRequirement,
        *,
        action: str | None,
    ) -> tuple[AuthorizationDecision, UserRecord | None]:
        try:
            record = await self._directory.get(identity_id)
        except (StoreUnavailableError, TimeoutError):
            return self._unavailable(identity_id, requirement, action), None
        except Exception:
            # Untranslated directory failures still fail closed.
            logger.exception(
                "authz.unavailable", extra=log_context(user_id=identity_id, action=action)
            )
            return self._unavailable(identity_id, requirement, action), None

        decision = evaluate(record, requirement)
        if decision:
            logger.debug(
                "authz.granted",
                extra=log_context(user_id=identity_id, role=decision.role, action=action),
            )
        else:
            self._report_denial(identity_id, record, requirement, decision, action)
        return decision, record

    def _unavailable(
        self,
        identity_id: str,
        requirement: AccessRequirement,
        action: str | None,
    ) -> AuthorizationDecision:
        decision = AuthorizationDecision.denied(DenialReason.UNAVAILABLE)
        self._report_denial(identity_id, None, requirement, decision, action)
        return decision

    def _report_denial(
        self,
        identity_id: str,
        record: UserRecord | None,
        requirement: AccessRequirement,
        decision: AuthorizationDecision,
        action: str | None,
    ) -> None:
        reason = decision.reason.value if decision.reason else None
        logger.warning(
            "authz.denied",
            extra=log_context(
                user_id=identity_id,
                role=decision.role,
                action=action,
                reason=reason,
            ),
        )
        if self._audit is None:
            return
        self._audit.report(
            AuditEvent(
                event_type=AuditEventType.UNAUTHORIZED_ACCESS_ATTEMPT,
                severity=AuditSeverity.HIGH,
                action=action or "access",
                success=False,
                user_id=identity_id,
                user_email=record.email if record is not None else None,
                user_role=record.role if record is not None else None,
                resource=action,
                details={"reason": reason, **requirement.describe()},
            )
        )


__all__ = ["AuthorizationEvaluator", "evaluate"]
