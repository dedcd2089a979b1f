"""FastAPI dependencies and exception handlers for access checks."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

import pytest_asyncio
from fastapi import Depends, FastAPI, Request
from httpx import ASGITransport, AsyncClient

from intranet_access.core.errors import (
    AlreadyInitializedError,
    OwnerProtectedError,
    StoreUnavailableError,
    WeakCredentialError,
)
from intranet_access.core.http import require_access
from intranet_access.core.http.errors import status_for
from intranet_access.core.identity import IdentityDescriptor
from intranet_access.core.rbac.types import Permission, Role
from intranet_access.features.audit import MemoryAuditSink
from intranet_access.features.users import UserCreate, UserUpdate
from intranet_access.features.users.schemas import UserRecord
from intranet_access.services import AccessServices, build_services


def _build_app(services: AccessServices) -> FastAPI:
    app = FastAPI()
    services.install(app)

    @app.middleware("http")
    async def identity_from_header(request: Request, call_next):
        user_id = request.headers.get("X-Test-User")
        if user_id:
            request.state.identity = IdentityDescriptor(
                id=user_id, email=f"{user_id}@example.test"
            )
        return await call_next(request)

    @app.get("/crm")
    async def crm(
        actor: Annotated[UserRecord, Depends(require_access(permission=Permission.CRM_ACCESS))],
    ) -> dict[str, str]:
        return {"user": actor.id, "role": actor.role.value}

    @app.get("/admin/users")
    async def admin_users(
        actor: Annotated[
            UserRecord,
            Depends(require_access(permissions=["users.view", "users.edit"], role=Role.MANAGER)),
        ],
    ) -> dict[str, str]:
        return {"user": actor.id}

    @app.post("/setup")
    async def setup() -> None:
        raise AlreadyInitializedError()

    @app.get("/flaky")
    async def flaky() -> None:
        raise StoreUnavailableError()

    return app


@pytest_asyncio.fixture()
async def services(settings) -> AccessServices:
    services = build_services(settings, sink=MemoryAuditSink())
    for user_id, role in (("agent", Role.AGENT), ("mgr", Role.MANAGER)):
        await services.directory.create(
            user_id, UserCreate(email=f"{user_id}@example.test", display_name=user_id, role=role)
        )
    return services


@pytest_asyncio.fixture()
async def client(services: AccessServices) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=_build_app(services))
    async with AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http
    await services.close()


async def test_missing_identity_is_unauthorized(client: AsyncClient) -> None:
    response = await client.get("/crm")

    assert response.status_code == 401


async def test_granted_request_receives_actor(client: AsyncClient) -> None:
    response = await client.get("/crm", headers={"X-Test-User": "agent"})

    assert response.status_code == 200
    assert response.json() == {"user": "agent", "role": "agent"}


async def test_denied_request_is_forbidden_with_requirement(client: AsyncClient) -> None:
    response = await client.get("/admin/users", headers={"X-Test-User": "agent"})

    assert response.status_code == 403
    detail = response.json()["detail"]
    assert detail["error"] == "forbidden"
    assert detail["reason"] == "role_required"
    assert detail["required_permissions"] == ["users.view", "users.edit"]
    assert detail["required_role"] == "manager"


async def test_unknown_identity_is_forbidden(client: AsyncClient) -> None:
    response = await client.get("/crm", headers={"X-Test-User": "stranger"})

    assert response.status_code == 403
    assert response.json()["detail"]["reason"] == "unknown_identity"


async def test_role_change_applies_to_next_request(
    client: AsyncClient,
    services: AccessServices,
) -> None:
    headers = {"X-Test-User": "agent"}
    assert (await client.get("/admin/users", headers=headers)).status_code == 403

    await services.directory.update("agent", UserUpdate(role=Role.MANAGER))

    assert (await client.get("/admin/users", headers=headers)).status_code == 200


async def test_access_errors_map_to_status_codes(client: AsyncClient) -> None:
    conflict = await client.post("/setup")
    unavailable = await client.get("/flaky")

    assert conflict.status_code == 409
    assert conflict.json()["detail"]["error"] == "already_initialized"
    assert unavailable.status_code == 503
    assert unavailable.headers["Retry-After"] == "1"
    assert unavailable.json()["detail"]["retryable"] is True


def test_status_for_known_errors() -> None:
    assert status_for(OwnerProtectedError()) == 409
    assert status_for(WeakCredentialError()) == 422
