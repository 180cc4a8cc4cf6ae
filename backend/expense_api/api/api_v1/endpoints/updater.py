"""
Desktop updater proxy for private GitHub releases
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import StreamingResponse
import logging

from expense_api.core.config import settings
from expense_api.core.errors import ExternalServiceError, ValidationError
from expense_api.services.updater_service import UpdaterService, is_newer, parse_version

logger = logging.getLogger(__name__)

router = APIRouter()

IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000"


def get_updater_service() -> UpdaterService:
    return UpdaterService()


@router.get("/manifest/{target}/{arch}")
async def get_manifest(
    target: str,
    arch: str,
    request: Request,
    current_version: Optional[str] = Query(None),
    updater: UpdaterService = Depends(get_updater_service),
):
    """
    Latest update manifest for a platform, or 204 when the client is current
    """
    base_url = str(request.base_url)
    manifest = await updater.get_manifest(target, arch, base_url)

    if current_version:
        latest = str(manifest.get("version", ""))
        try:
            parse_version(latest)
        except ValueError:
            raise ExternalServiceError(f"Release manifest for {target}-{arch} has an invalid version: {latest!r}")
        try:
            newer = is_newer(latest, current_version)
        except ValueError as e:
            raise ValidationError(str(e), field="current_version", value=current_version, constraint="semver")
        if not newer:
            logger.info(f"{target}-{arch} client on {current_version} is up to date")
            return Response(status_code=status.HTTP_204_NO_CONTENT)

    return manifest


@router.get("/download/{version}/{filename}")
async def download(
    version: str,
    filename: str,
    updater: UpdaterService = Depends(get_updater_service),
):
    asset = await updater.stream_asset(version, filename)

    headers = {
        "Content-Disposition": f'attachment; filename="{asset.filename}"',
        "Cache-Control": IMMUTABLE_CACHE_CONTROL,
    }
    if asset.content_length is not None:
        headers["Content-Length"] = str(asset.content_length)
    return StreamingResponse(asset.chunks, media_type=asset.content_type, headers=headers)


@router.get("/health")
async def updater_health():
    return {
        "status": "ok",
        "service": "updater",
        "configured": bool(settings.GITHUB_TOKEN),
    }
