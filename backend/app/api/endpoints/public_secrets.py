"""
Programmatic secrets API, authenticated with project API tokens.

Mounted outside /api/v1 at /v1/secrets. Permissions are checked against the
environment named in each request before it is resolved, so a token without
access learns nothing about which environments exist.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from app.core.database import get_db
from app.schemas.public_api import (
    PublicSecretsResponse,
    PublicSecretsWrite,
    PublicSecretsWriteResponse,
)
from app.services.api_token_service import AuthorizedContext, api_token_service, authorize
from app.services.project_service import project_service
from app.services.secret_service import secret_service
from app.utils.exceptions import AuthenticationError, PermissionDeniedError, ValidationError

router = APIRouter()


async def get_token_context(
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> AuthorizedContext:
    """Dependency resolving the bearer token of a /v1 request."""
    context = await api_token_service.validate(db, authorization)
    if context is None:
        raise AuthenticationError("Invalid or expired token")
    return context


def require(context: AuthorizedContext, action: str, environment: str) -> None:
    if not authorize(context.permissions, action, environment):
        logger.info(
            f"Token {context.token.token_prefix}... denied {action} on environment '{environment}'"
        )
        raise PermissionDeniedError()


@router.get("/secrets")
async def read_secrets(
    environment: str = Query(..., min_length=1),
    config: Optional[str] = Query(None, min_length=1),
    format: str = Query("json"),
    context: AuthorizedContext = Depends(get_token_context),
    db: AsyncSession = Depends(get_db),
):
    """
    Read a config's secrets.

    `config` defaults to the environment's default config. `format=env`
    returns `KEY=value` lines instead of JSON.
    """
    if format not in ("env", "json"):
        raise ValidationError("Format must be 'env' or 'json'", field="format")

    require(context, "read", environment)

    secret_config, env = await project_service.find_config_by_name(
        db, context.project.id, environment, config
    )
    rows = await secret_service.list_values(db, secret_config.id)

    logger.info(f"Token {context.token.token_prefix}... read {len(rows)} secrets from {env.name}/{secret_config.name}")

    if format == "env":
        return PlainTextResponse("\n".join(f"{key}={value}" for key, value, _ in rows))

    return PublicSecretsResponse(
        project=context.project.name,
        environment=env.name,
        config=secret_config.name,
        secrets={key: value for key, value, _ in rows},
    )


@router.post("/secrets", response_model=PublicSecretsWriteResponse)
async def write_secrets(
    payload: PublicSecretsWrite,
    context: AuthorizedContext = Depends(get_token_context),
    db: AsyncSession = Depends(get_db),
):
    """Create or update string secrets; other values are reported as rejected."""
    require(context, "write", payload.environment)

    secret_config, env = await project_service.find_config_by_name(
        db, context.project.id, payload.environment, payload.config
    )
    outcome = await secret_service.upsert_secrets(
        db,
        user_id=context.token.user_id,
        project_id=context.project.id,
        config=secret_config,
        environment=env,
        values=payload.secrets,
    )

    logger.info(
        f"Token {context.token.token_prefix}... wrote {env.name}/{secret_config.name}: "
        f"{outcome.created} created, {outcome.updated} updated, {len(outcome.rejected)} rejected"
    )
    return PublicSecretsWriteResponse(
        message="Secrets updated successfully",
        created=outcome.created,
        updated=outcome.updated,
        rejected=outcome.rejected,
    )
