"""
Import and export of secret configs as env, json, yaml or csv files.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Request, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from app.core.config import settings
from app.core.database import get_db
from app.core.rate_limit import limiter, IMPORT_LIMIT
from app.models.user import User
from app.schemas.secret import ImportResult
from app.services.auth_service import get_current_user
from app.services.import_service import import_service
from app.services.project_service import project_service
from app.services.secret_format_service import secret_format_service
from app.services.secret_service import secret_service
from app.utils.exceptions import ValidationError

router = APIRouter()


@router.get("/{project_id}/export")
async def export_secrets(
    project_id: UUID,
    environment_id: UUID = Query(...),
    secret_config_id: UUID = Query(...),
    format: str = Query("env"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Download a config as a file named after the config."""
    secret_format_service.check_format(format)

    project = await project_service.get_owned_project(db, current_user.id, project_id)
    config, _ = await project_service.get_config(
        db, project.id, secret_config_id, environment_id=environment_id
    )

    rows = await secret_service.list_values(db, config.id)
    content = secret_format_service.render(rows, format)
    filename = secret_format_service.filename(config.name, format)

    logger.info(f"Exported {len(rows)} secrets from config {config.id} as {format}")
    return Response(
        content=content,
        media_type=secret_format_service.content_type(format),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/{project_id}/import", response_model=ImportResult)
@limiter.limit(IMPORT_LIMIT)
async def import_secrets(
    request: Request,
    project_id: UUID,
    file: UploadFile = File(...),
    environment_id: UUID = Form(...),
    secret_config_id: UUID = Form(...),
    format: str = Form("env"),
    overwrite: bool = Form(False),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Merge an uploaded file into a config.

    Existing keys are skipped unless `overwrite` is set, in which case the
    config is emptied first.
    """
    secret_format_service.check_format(format)
    project = await project_service.get_owned_project(db, current_user.id, project_id)

    # Reads at most one byte past the limit
    raw = await file.read(settings.MAX_IMPORT_FILE_SIZE + 1)
    if len(raw) > settings.MAX_IMPORT_FILE_SIZE:
        raise ValidationError(
            f"File exceeds the maximum size of {settings.MAX_IMPORT_FILE_SIZE} bytes", field="file"
        )
    try:
        content = raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ValidationError("File must be UTF-8 encoded", field="file")

    entries = secret_format_service.parse(content, format)

    outcome = await import_service.import_into(
        db,
        user_id=current_user.id,
        project_id=project.id,
        environment_id=environment_id,
        secret_config_id=secret_config_id,
        entries=entries,
        overwrite=overwrite,
        import_format=format,
    )
    return ImportResult(
        message="Import completed",
        imported=outcome.imported,
        skipped=outcome.skipped,
        failed=outcome.failed,
        total=outcome.total,
    )
