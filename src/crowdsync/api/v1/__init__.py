"""API v1 module."""

from fastapi import APIRouter

from crowdsync.api.v1.endpoints import projects, sync, transactions

api_router = APIRouter()

# Include routers
api_router.include_router(sync.router)
api_router.include_router(transactions.router)
api_router.include_router(projects.router)
