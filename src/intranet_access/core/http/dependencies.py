"""FastAPI dependencies that bridge HTTP requests to the authorization evaluator.

The identity provider's transport is out of scope: upstream middleware (or a
dependency override) places an ``IdentityDescriptor`` on
``request.state.identity``. Services are read from ``app.state``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from intranet_access.core.identity import IdentityDescriptor
from intranet_access.core.rbac.types import Permission, Role
from intranet_access.features.authz import AccessRequirement, AuthorizationEvaluator
from intranet_access.features.users.schemas import UserRecord

AccessDependency = Callable[..., Awaitable[UserRecord]]


def get_evaluator(request: Request) -> AuthorizationEvaluator:
    evaluator = getattr(request.app.state, "evaluator", None)
    if evaluator is None:
        raise RuntimeError("app.state.evaluator is not configured")
    return evaluator


def get_current_identity(request: Request) -> IdentityDescriptor | None:
    identity = getattr(request.state, "identity", None)
    if identity is None or isinstance(identity, IdentityDescriptor):
        return identity
    raise RuntimeError("request.state.identity must be an IdentityDescriptor")


EvaluatorDep = Annotated[AuthorizationEvaluator, Depends(get_evaluator)]
IdentityDep = Annotated[IdentityDescriptor | None, Depends(get_current_identity)]


def require_access(
    *,
    permission: Permission | str | None = None,
    permissions: Iterable[Permission | str] = (),
    role: Role | str | None = None,
    allowed_roles: Iterable[Role | str] = (),
    action: str | None = None,
) -> AccessDependency:
    """Return a dependency that yields the acting record or rejects the request.

    401 without an identity, 403 on denial and 503 when the directory is
    unreachable (the latter two via the registered exception handlers).
    """

    requirement = AccessRequirement.of(
        permission=permission,
        permissions=permissions,
        role=role,
        allowed_roles=allowed_roles,
    )

    async def dependency(
        request: Request,
        identity: IdentityDep,
        evaluator: EvaluatorDep,
    ) -> UserRecord:
        if identity is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
            )
        return await evaluator.require(
            identity.id,
            requirement,
            action=action or request.url.path,
        )

    return dependency


__all__ = [
    "AccessDependency",
    "EvaluatorDep",
    "IdentityDep",
    "get_current_identity",
    "get_evaluator",
    "require_access",
]
