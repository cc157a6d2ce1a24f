"""Tracionar — Shared route dependencies."""

from fastapi import Depends
from sqlmodel import Session

from app.database import get_session
from app.storage.gateway import PersistenceGateway


def get_gateway(session: Session = Depends(get_session)) -> PersistenceGateway:
    """Dependency: a gateway over the request's DB session."""
    return PersistenceGateway(session)
