"""Request-scoped access to the process-wide realtime components.

Learn: main.py's lifespan builds the Redis client, store, gateway and
publisher once and parks them on app.state. Routes pull them through
these dependencies, and tests swap in fakes by setting app.state directly.
"""

from fastapi import HTTPException, Request

from clinicpush.realtime.connection_store import ConnectionStore
from clinicpush.realtime.publisher import Publisher


def get_store(request: Request) -> ConnectionStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Connection store not initialized")
    return store


def get_publisher(request: Request) -> Publisher:
    publisher = getattr(request.app.state, "publisher", None)
    if publisher is None:
        raise HTTPException(status_code=503, detail="Publisher not initialized")
    return publisher
