"""Per-session glue between the identity provider and the access core.

A ``SessionBinding`` is created per signed-in session (never shared
process-wide). It reacts to identity changes, runs the first sign-in
bootstrap, and keeps an ``AuthorizationContext`` that is rebuilt whenever
the identity or its record changes.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field

from intranet_access.common.logging import (
    bind_session_context,
    clear_session_context,
    log_context,
)
from intranet_access.core.errors import StoreUnavailableError
from intranet_access.core.identity import IdentityDescriptor
from intranet_access.core.rbac import policy
from intranet_access.core.rbac.types import Permission, Role
from intranet_access.db.base import utc_now
from intranet_access.features.authz import (
    AccessRequirement,
    AuthorizationDecision,
    AuthorizationEvaluator,
    DenialReason,
)
from intranet_access.features.setup import BootstrapResult, SetupService
from intranet_access.features.users.directory import UserDirectory
from intranet_access.features.users.schemas import UserRecord, UserUpdate
from intranet_access.features.users.service import UsersService

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AuthorizationContext:
    """Ephemeral view of the signed-in identity; never persisted."""

    identity: IdentityDescriptor | None = None
    record: UserRecord | None = None
    role: Role | None = None
    permissions: frozenset[Permission] = field(default_factory=frozenset)

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    @property
    def is_active(self) -> bool:
        return self.record is not None and self.record.is_active

    def has_permission(self, permission: Permission | str) -> bool:
        if not self.is_active:
            return False
        resolved = policy.coerce_permission(permission)
        return resolved is not None and resolved in self.permissions

    def is_role(self, role: Role | str) -> bool:
        if not self.is_active:
            return False
        return self.role is not None and self.role is policy.coerce_role(role)


ANONYMOUS = AuthorizationContext()


def build_context(
    identity: IdentityDescriptor | None,
    record: UserRecord | None,
) -> AuthorizationContext:
    if identity is None:
        return ANONYMOUS
    if record is None:
        return AuthorizationContext(identity=identity)
    permissions = policy.permissions_for(record.role) if record.is_active else frozenset()
    return AuthorizationContext(
        identity=identity,
        record=record,
        role=record.role,
        permissions=permissions,
    )


class SessionBinding:
    """Invalidate-and-recompute holder for one session's authorization context."""

    def __init__(
        self,
        directory: UserDirectory,
        evaluator: AuthorizationEvaluator,
        setup: SetupService,
        *,
        users: UsersService | None = None,
        session_id: str | None = None,
    ) -> None:
        self._directory = directory
        self._evaluator = evaluator
        self._setup = setup
        self._users = users
        self._session_id = session_id or uuid.uuid4().hex[:12]
        self._identity: IdentityDescriptor | None = None
        self._context: AuthorizationContext = ANONYMOUS
        self._last_bootstrap: BootstrapResult | None = None
        self._generation = 0
        self._lock = asyncio.Lock()

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def context(self) -> AuthorizationContext:
        return self._context

    @property
    def last_bootstrap(self) -> BootstrapResult | None:
        return self._last_bootstrap

    # ---- Identity lifecycle --------------------------------------------

    async def on_identity_changed(
        self,
        identity: IdentityDescriptor | None,
    ) -> AuthorizationContext:
        """Rebuild the context for ``identity``; ``None`` means signed out."""

        if identity is None:
            self.invalidate()
            return self._context

        self._generation += 1
        generation = self._generation
        bind_session_context(self._session_id)
        async with self._lock:
            bootstrap: BootstrapResult | None = None
            try:
                record = await self._directory.get(identity.id)
                if record is None:
                    bootstrap = await self._setup.auto_promote_first_user(identity)
                    record = bootstrap.user
                if record is not None and record.is_active:
                    record = await self._stamp_login(record)
            except Exception:
                if generation == self._generation:
                    self._identity = identity
                    self._context = build_context(identity, None)
                raise

            if generation != self._generation:
                # Superseded by a later identity change or sign-out.
                return self._context
            self._identity = identity
            self._last_bootstrap = bootstrap
            self._context = build_context(identity, record)

        logger.info(
            "session.identity.bound",
            extra=log_context(
                user_id=identity.id,
                role=self._context.role,
                was_promoted=bool(bootstrap and bootstrap.was_promoted),
            ),
        )
        return self._context

    async def refresh(self) -> AuthorizationContext:
        """Reload the current identity's record without running bootstrap."""

        identity = self._identity
        if identity is None:
            return ANONYMOUS
        generation = self._generation
        record = await self._directory.get(identity.id)
        if generation == self._generation and self._identity is identity:
            self._context = build_context(identity, record)
        return self._context

    def invalidate(self) -> None:
        self._generation += 1
        if self._identity is not None:
            logger.info(
                "session.identity.cleared",
                extra=log_context(user_id=self._identity.id),
            )
        self._identity = None
        self._context = ANONYMOUS
        self._last_bootstrap = None
        clear_session_context()

    # ---- Queries -------------------------------------------------------

    async def authorize(
        self,
        requirement: AccessRequirement,
        action: str | None = None,
    ) -> AuthorizationDecision:
        """Evaluate against the directory and refresh the cached context."""

        identity = self._identity
        if identity is None:
            return AuthorizationDecision.denied(DenialReason.UNKNOWN_IDENTITY)
        decision = await self._evaluator.authorize(identity.id, requirement, action=action)
        if decision.reason is not DenialReason.UNAVAILABLE:
            try:
                await self.refresh()
            except StoreUnavailableError:
                logger.warning(
                    "session.refresh.unavailable",
                    extra=log_context(user_id=identity.id, action=action),
                )
        return decision

    def has_permission(self, permission: Permission | str) -> bool:
        return self._context.has_permission(permission)

    def is_role(self, role: Role | str) -> bool:
        return self._context.is_role(role)

    # ---- Internals -----------------------------------------------------

    async def _stamp_login(self, record: UserRecord) -> UserRecord:
        if self._users is not None:
            return await self._users.record_login(record.id)
        return await self._directory.update(record.id, UserUpdate(last_login_at=utc_now()))


__all__ = ["ANONYMOUS", "AuthorizationContext", "SessionBinding", "build_context"]
