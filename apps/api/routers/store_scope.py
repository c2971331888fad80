"""Dependency exposing the process store context to routes."""

from fastapi import HTTPException, Request

from services.store_context import StoreContext


def get_store_context(request: Request) -> StoreContext:
    stores = getattr(request.app.state, "stores", None)
    if stores is None:
        raise HTTPException(status_code=503, detail="Stores are not initialized yet.")
    return stores
