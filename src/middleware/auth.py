"""Actor resolution for protected endpoints.

Authentication happens upstream: the identity gateway forwards the
caller as ``X-Actor-Id`` / ``X-Actor-Role`` / ``X-Actor-Name`` headers
and proves it is the gateway with ``X-Gateway-Key``, compared against
``SHIKAYAT_GATEWAY_API_KEY`` in constant time.
"""

from __future__ import annotations

import hmac

import structlog
from fastapi import Depends, Header, HTTPException, Request, Security
from fastapi.security import APIKeyHeader

from config.settings import settings
from src.models.complaint import Actor
from src.models.enums import ActorRole

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_gateway_key_header = APIKeyHeader(name="X-Gateway-Key", auto_error=False)

_KNOWN_ROLES = frozenset(r.value for r in ActorRole)


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _check_gateway_key(request: Request, gateway_key: str | None) -> None:
    configured_key = settings.gateway_api_key

    if not configured_key:
        if not settings.is_production:
            logger.debug("auth.gateway_key_not_configured", path=request.url.path)
            return
        logger.error("auth.gateway_key_not_configured_production")
        raise HTTPException(status_code=503, detail="Gateway authentication is not configured.")

    if not gateway_key:
        logger.warning("auth.missing_gateway_key", path=request.url.path, client_ip=_client_ip(request))
        raise HTTPException(
            status_code=401,
            detail="Missing X-Gateway-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if not hmac.compare_digest(gateway_key.encode(), configured_key.encode()):
        logger.warning("auth.invalid_gateway_key", path=request.url.path, client_ip=_client_ip(request))
        raise HTTPException(status_code=403, detail="Invalid gateway key.")


async def get_optional_actor(
    request: Request,
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
    x_actor_name: str | None = Header(default=None),
    gateway_key: str | None = Security(_gateway_key_header),
) -> Actor | None:
    """Actor forwarded by the gateway, or ``None`` for anonymous callers."""
    if not x_actor_id:
        return None

    _check_gateway_key(request, gateway_key)

    role = (x_actor_role or ActorRole.CITIZEN).strip().lower()
    if role not in _KNOWN_ROLES:
        logger.warning("auth.unknown_role", role=role, actor=x_actor_id)
        raise HTTPException(status_code=403, detail=f"Unknown actor role '{role}'.")

    return Actor(id=x_actor_id.strip(), role=role, name=x_actor_name or None)


async def get_actor(actor: Actor | None = Depends(get_optional_actor)) -> Actor:
    if actor is None:
        raise HTTPException(
            status_code=401,
            detail="Missing X-Actor-Id header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )
    return actor


async def require_staff(request: Request, actor: Actor = Depends(get_actor)) -> Actor:
    """FastAPI dependency admitting only department and admin roles.

    Usage::

        @router.get("/complaints")
        async def list_complaints(actor: Actor = Depends(require_staff)): ...
    """
    if not actor.is_staff:
        logger.warning("auth.staff_required", actor=actor.id, role=actor.role, path=request.url.path)
        raise HTTPException(status_code=403, detail="Staff access required.")
    return actor
