import logging

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import settings
from storefront.database import get_db
from storefront.models.user import User
from storefront.services.orchestrator import PaymentOrchestrator

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


def get_orchestrator(request: Request) -> PaymentOrchestrator:
    return request.app.state.orchestrator


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    db: AsyncSession = Depends(get_db),
) -> User:
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise unauthorized

    try:
        claims = jwt.decode(credentials.credentials, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.InvalidTokenError as exc:
        logger.info("Rejected bearer token", extra={"error": str(exc)})
        raise unauthorized from exc

    user_id = claims.get("sub")
    user = await db.get(User, user_id) if user_id else None
    if user is None:
        raise unauthorized
    return user
