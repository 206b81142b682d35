from dataclasses import dataclass

from fastapi import Request
from starlette_context import context

from app.config import USE_ASYNC_ENGINE
from app.database import SessionLocal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session


async def get_session() -> Session | AsyncSession:
    """
    Database dependency: allows a single Session per request.
    """
    if USE_ASYNC_ENGINE:
        async with SessionLocal() as session:
            yield session
    else:
        with SessionLocal() as session:
            yield session


@dataclass(frozen=True)
class RequestOrigin:
    ip_address: str | None
    user_agent: str | None


async def get_request_origin(request: Request) -> RequestOrigin:
    """
    Client address (honouring X-Forwarded-For when the proxy
    sets it) and user agent, stored alongside a vote history entry.
    """
    forwarded_for = context.get("X-Forwarded-For") if context.exists() else None
    ip_address = forwarded_for or (request.client.host if request.client else None)
    user_agent = request.headers.get("user-agent")
    return RequestOrigin(ip_address=ip_address, user_agent=user_agent[:500] if user_agent else None)
