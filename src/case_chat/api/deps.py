"""FastAPI dependency injection helpers."""
from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Annotated, AsyncIterator, Callable

from fastapi import Depends, HTTPException, status
from fastapi.requests import HTTPConnection
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from case_chat.application.dto.principal import Principal
from case_chat.application.exceptions import UnauthenticatedError
from case_chat.application.ports.auth import TokenVerifier
from case_chat.application.uow import UnitOfWork
from case_chat.config import settings
from case_chat.infrastructure.auth.hs256_verifier import HS256Verifier
from case_chat.infrastructure.auth.jwks_verifier import JWKSVerifier
from case_chat.infrastructure.db.uow import SqlAlchemyUoW, open_uow
from case_chat.services.chat_facade import ChatFacade
from case_chat.services.presence_gateway import PresenceGateway

_bearer_scheme = HTTPBearer()

UoWFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]


async def get_uow() -> AsyncIterator[SqlAlchemyUoW]:
    async with open_uow() as uow:
        yield uow


def get_uow_factory() -> UoWFactory:
    """Per-frame units of work for long-lived WebSocket connections."""
    return open_uow


UoWDep = Annotated[UnitOfWork, Depends(get_uow)]
UoWFactoryDep = Annotated[UoWFactory, Depends(get_uow_factory)]


def _get_verifier() -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        assert settings.JWKS_URL, "JWKS_URL must be set when JWT_VERIFY_MODE=jwks"
        return JWKSVerifier(settings.JWKS_URL)
    return HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = _get_verifier()
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
) -> Principal:
    verifier = get_verifier()
    try:
        return await verifier.verify(credentials.credentials)
    except UnauthenticatedError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.detail,
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


async def get_current_admin(principal: CurrentPrincipal) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return principal


CurrentAdmin = Annotated[Principal, Depends(get_current_admin)]


def get_facade(conn: HTTPConnection) -> ChatFacade:
    return conn.app.state.facade


def get_gateway(conn: HTTPConnection) -> PresenceGateway:
    return conn.app.state.gateway


FacadeDep = Annotated[ChatFacade, Depends(get_facade)]
GatewayDep = Annotated[PresenceGateway, Depends(get_gateway)]
