#!/usr/bin/env python3

import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select

from ..clients.database_client import DatabaseClient
from ..models.tables import User
from .dependencies import get_database_client

logger = logging.getLogger(__name__)
security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: DatabaseClient = Depends(get_database_client),
) -> User:
    """Resolve the bearer token to the user owning that API key."""
    token = credentials.credentials
    if not token or not token.strip():
        raise HTTPException(status_code=401, detail="Invalid authentication token")

    with db.session() as session:
        user = session.scalars(select(User).filter_by(apikey=token).limit(1)).first()

    if user is None:
        logger.warning("Rejected request with unknown API key")
        raise HTTPException(status_code=401, detail="Invalid authentication token")

    return user
