"""
Main API router configuration.
"""

from fastapi import APIRouter
from app.api.endpoints import (
    audit,
    auth,
    environments,
    projects,
    public_secrets,
    secrets,
    tokens,
    transfer,
)

# Session-authenticated API, mounted under /api/v1
api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
api_router.include_router(environments.router, prefix="/projects", tags=["environments"])
api_router.include_router(secrets.router, prefix="/projects", tags=["secrets"])
api_router.include_router(transfer.router, prefix="/projects", tags=["import-export"])
api_router.include_router(audit.router, prefix="/projects", tags=["audit"])
api_router.include_router(tokens.router, prefix="/projects", tags=["tokens"])

# Token-authenticated API, mounted at the root
public_router = APIRouter()

public_router.include_router(public_secrets.router, prefix="/v1", tags=["programmatic"])
