from fastapi import Depends, HTTPException, status, Request
from fastapi.requests import HTTPConnection
from sqlalchemy.orm import Session
from datetime import datetime
import random

from ..core.concurrency import RecordLocks
from ..core.config import settings
from ..core.database import get_db, get_redis
from ..services.dispatch_notifier import ConnectionRegistry, DispatchNotifier
from ..services.location_simulator import JitterSource
from ..services.transport_service import TransportService
from ..services.transport_store import TransportStore

# Shared application state
def get_connection_registry(connection: HTTPConnection) -> ConnectionRegistry:
    """Live notification connections for this application."""
    return connection.app.state.connections

def get_record_locks(connection: HTTPConnection) -> RecordLocks:
    return connection.app.state.record_locks

def get_dispatch_notifier(
    registry: ConnectionRegistry = Depends(get_connection_registry)
) -> DispatchNotifier:
    return DispatchNotifier(registry)

# Services
def get_transport_store(db: Session = Depends(get_db)) -> TransportStore:
    return TransportStore(db)

def get_transport_service(
    db: Session = Depends(get_db),
    locks: RecordLocks = Depends(get_record_locks)
) -> TransportService:
    return TransportService(db, locks)

# Clock and randomness, overridable in tests
def get_current_time() -> datetime:
    return datetime.utcnow()

def get_jitter_source() -> JitterSource:
    return random.Random()

# Rate limiting dependency
async def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis)
) -> None:
    """Per-client rate limit on creating transport requests."""
    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:transport:{client_ip}"

    current_requests = redis_client.get(key)
    if current_requests is None:
        redis_client.setex(key, settings.RATE_LIMIT_WINDOW_SECONDS, 1)
    else:
        if int(current_requests) >= settings.TRANSPORT_RATE_LIMIT:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later."
            )
        redis_client.incr(key)
