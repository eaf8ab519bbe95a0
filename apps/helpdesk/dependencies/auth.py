from collections.abc import Callable, Mapping
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from apps.helpdesk.core.config import get_settings
from apps.helpdesk.lifecycle.errors import PersistenceError
from apps.helpdesk.lifecycle.models import Actor, Role

ANONYMOUS_ACTOR_ID = "anonymous"

bearer_scheme = HTTPBearer(auto_error=False)


def parse_actor_spec(spec: str) -> Actor:
    """Turn a ``role:user_id`` token mapping into an actor."""

    role_name, _, user_id = spec.partition(":")
    try:
        role = Role(role_name.strip().lower())
    except ValueError as exc:
        raise ValueError(f"Unknown role in actor token mapping: {spec!r}") from exc
    return Actor(id=user_id.strip() or role.value, role=role)


def resolve_actor_from_token(token: str | None, tokens: Mapping[str, str] | None = None) -> Actor:
    """Return the actor associated with the provided bearer token.

    Requests without a token act as an anonymous client, which the lifecycle
    rejects for every mutation. Unknown tokens are refused outright.
    """

    if token is None:
        return Actor(id=ANONYMOUS_ACTOR_ID, role=Role.CLIENT)

    mapping = tokens if tokens is not None else get_settings().actor_tokens
    if token not in mapping:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")
    return parse_actor_spec(mapping[token])


async def _load_account(request: Request, actor: Actor) -> Actor:
    """Replace the token actor with the stored account when one exists."""

    users = getattr(request.app.state, "user_repository", None)
    if users is None or actor.id == ANONYMOUS_ACTOR_ID:
        return actor
    try:
        account = await users.get_actor(actor.id)
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=exc.to_dict()) from exc
    return account or actor


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    request: Request,
) -> Actor:
    cached = getattr(request.state, "actor", None)
    if isinstance(cached, Actor):
        return cached

    if credentials is None and request.headers.get("Authorization"):
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")
    token = credentials.credentials if credentials is not None else None
    actor = await _load_account(request, resolve_actor_from_token(token))
    request.state.actor = actor
    return actor


def role_required(role: Role) -> Callable[[Actor], Actor]:
    """Dependency factory ensuring the current actor holds the requested role."""

    async def dependency(actor: Annotated[Actor, Depends(get_current_actor)]) -> Actor:
        if actor.role is not role or not actor.active:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return actor

    return dependency


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
