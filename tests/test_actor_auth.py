import pytest
from fastapi import HTTPException

from apps.helpdesk.core.config import Settings
from apps.helpdesk.dependencies.auth import (
    ANONYMOUS_ACTOR_ID,
    parse_actor_spec,
    resolve_actor_from_token,
    role_required,
)
from apps.helpdesk.lifecycle import Actor, Role


def test_missing_token_resolves_to_anonymous_client():
    actor = resolve_actor_from_token(None)

    assert actor.id == ANONYMOUS_ACTOR_ID
    assert actor.role is Role.CLIENT


def test_token_map_from_settings():
    tokens = Settings().actor_tokens

    actor = resolve_actor_from_token("technician-token", tokens)

    assert actor == Actor(id="technician", role=Role.TECHNICIAN)


def test_unknown_token_raises_401():
    with pytest.raises(HTTPException) as exc:
        resolve_actor_from_token("nope", {"admin-token": "admin:root"})

    assert exc.value.status_code == 401


def test_actor_spec_parsing():
    assert parse_actor_spec("admin:root") == Actor(id="root", role=Role.ADMIN)
    assert parse_actor_spec("Technician") == Actor(id="technician", role=Role.TECHNICIAN)
    with pytest.raises(ValueError):
        parse_actor_spec("superuser:root")


@pytest.mark.asyncio
async def test_role_required_allows_matching_role():
    dependency = role_required(Role.ADMIN)
    actor = Actor(id="root", role=Role.ADMIN)

    assert await dependency(actor) is actor  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_role_required_rejects_other_roles():
    dependency = role_required(Role.ADMIN)

    with pytest.raises(HTTPException) as exc:
        await dependency(Actor(id="tech", role=Role.TECHNICIAN))  # type: ignore[arg-type]

    assert exc.value.status_code == 403
    assert exc.value.detail == "Insufficient permissions"
