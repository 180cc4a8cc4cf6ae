"""
Desktop update delivery through GitHub releases

The release repository is private, so the desktop client never talks to
GitHub directly: manifests are fetched here and their download URLs are
rewritten to point back at this API, which streams the installers.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional, Tuple

import httpx

from expense_api.core.config import settings
from expense_api.core.errors import ErrorCode, ExternalServiceError, NotFoundError

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
USER_AGENT = "Expense-Tracker-Updater"
DOWNLOAD_CHUNK_SIZE = 64 * 1024

_SEMVER = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)(?:-([0-9A-Za-z.-]+))?(?:\+[0-9A-Za-z.-]+)?$")


def parse_version(version: str) -> Tuple[Tuple[int, int, int], Optional[Tuple]]:
    match = _SEMVER.match(version.strip())
    if not match:
        raise ValueError(f"Invalid version: {version}")
    core = (int(match.group(1)), int(match.group(2)), int(match.group(3)))
    pre = None
    if match.group(4):
        # numeric identifiers sort before alphanumeric ones
        pre = tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in match.group(4).split("."))
    return core, pre


def is_newer(latest: str, current: str) -> bool:
    """True when `latest` is a higher semantic version than `current`"""
    latest_core, latest_pre = parse_version(latest)
    current_core, current_pre = parse_version(current)
    if latest_core != current_core:
        return latest_core > current_core
    if latest_pre == current_pre:
        return False
    # a release outranks any of its pre-releases
    if latest_pre is None:
        return True
    if current_pre is None:
        return False
    return latest_pre > current_pre


@dataclass
class AssetStream:
    filename: str
    content_type: str
    content_length: Optional[int]
    chunks: AsyncIterator[bytes]


class UpdaterService:
    def __init__(
        self,
        github_token: Optional[str] = None,
        owner: Optional[str] = None,
        repo: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.github_token = github_token or settings.GITHUB_TOKEN
        self.owner = owner or settings.UPDATER_REPO_OWNER
        self.repo = repo or settings.UPDATER_REPO_NAME
        self._transport = transport

        if not self.github_token:
            logger.error("GITHUB_TOKEN is not configured")
            raise ExternalServiceError(
                "Server configuration error",
                code=ErrorCode.INTERNAL_SERVER_ERROR,
            )

    @property
    def repo_url(self) -> str:
        return f"{GITHUB_API_URL}/repos/{self.owner}/{self.repo}"

    def _headers(self, accept: str = "application/vnd.github+json") -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.github_token}",
            "Accept": accept,
            "User-Agent": USER_AGENT,
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=30.0, follow_redirects=True, transport=self._transport)

    @staticmethod
    def _check(response: httpx.Response, what: str) -> None:
        if response.status_code == 404:
            raise NotFoundError(f"{what} not found on GitHub")
        if response.status_code >= 400:
            logger.error(f"GitHub {what} request failed: {response.status_code} {response.text[:200]}")
            raise ExternalServiceError(
                f"Failed to fetch {what} from GitHub",
                details={"status": response.status_code},
            )

    async def get_manifest(self, target: str, arch: str, base_url: str) -> Dict[str, Any]:
        """
        Latest `<target>-<arch>.json` manifest with download URLs rewritten
        to `<base_url>/api/updater/download/<version>/<filename>`
        """
        manifest_name = f"{target}-{arch}.json"

        async with self._client() as client:
            try:
                response = await client.get(f"{self.repo_url}/releases", headers=self._headers())
                self._check(response, "releases")

                asset = None
                for release in response.json():
                    asset = next((a for a in release.get("assets", []) if a.get("name") == manifest_name), None)
                    if asset is not None:
                        logger.info(f"Found {manifest_name} in release {release.get('tag_name')}")
                        break

                if asset is None:
                    raise NotFoundError(f"Manifest {manifest_name} not found in any release")

                response = await client.get(
                    f"{self.repo_url}/releases/assets/{asset['id']}",
                    headers=self._headers("application/octet-stream"),
                )
                self._check(response, "manifest")
                manifest = response.json()
            except httpx.HTTPError as e:
                logger.error(f"GitHub manifest request error: {e}")
                raise ExternalServiceError(f"GitHub request failed: {e}")

        return self.rewrite_manifest_urls(manifest, base_url)

    @staticmethod
    def rewrite_manifest_urls(manifest: Dict[str, Any], base_url: str) -> Dict[str, Any]:
        base_url = base_url.rstrip("/")
        platforms = {}
        for platform, data in (manifest.get("platforms") or {}).items():
            data = dict(data)
            url = data.get("url")
            if url:
                parts = url.rstrip("/").split("/")
                version, filename = parts[-2], parts[-1]
                data["url"] = f"{base_url}/api/updater/download/{version}/{filename}"
            platforms[platform] = data
        return {**manifest, "platforms": platforms}

    async def stream_asset(self, version: str, filename: str) -> AssetStream:
        """
        Look up an installer in the release tagged `version` and return a
        byte stream for it
        """
        async with self._client() as client:
            try:
                response = await client.get(f"{self.repo_url}/releases/tags/{version}", headers=self._headers())
            except httpx.HTTPError as e:
                raise ExternalServiceError(f"GitHub request failed: {e}")
            self._check(response, "release")

        asset = next((a for a in response.json().get("assets", []) if a.get("name") == filename), None)
        if asset is None:
            raise NotFoundError(f"Asset {filename} not found in release {version}")

        asset_url = f"{self.repo_url}/releases/assets/{asset['id']}"

        async def chunks() -> AsyncIterator[bytes]:
            async with self._client() as client:
                async with client.stream("GET", asset_url, headers=self._headers("application/octet-stream")) as stream:
                    if stream.status_code >= 400:
                        logger.error(f"GitHub asset download failed: {stream.status_code}")
                        raise ExternalServiceError("Failed to download asset from GitHub")
                    async for chunk in stream.aiter_bytes(DOWNLOAD_CHUNK_SIZE):
                        yield chunk

        logger.info(f"Streaming {filename} ({asset.get('size')} bytes) from release {version}")
        return AssetStream(
            filename=filename,
            content_type=asset.get("content_type") or "application/octet-stream",
            content_length=asset.get("size"),
            chunks=chunks(),
        )
