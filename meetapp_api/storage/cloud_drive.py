"""Cloud drive storage provider over its REST API."""

import logging
from pathlib import Path
from typing import Optional

import httpx

from meetapp_api.storage.base import (
    DeleteResult,
    StorageError,
    StorageNotFoundError,
    StorageProvider,
)

logger = logging.getLogger(__name__)


class CloudDriveProvider(StorageProvider):
    """Per-owner cloud drive authorized with an OAuth token.

    Downloads and uploads go through a short-lived ``href`` returned by the
    resources API.
    """

    name = "cloud_drive"

    def __init__(
        self,
        token: str,
        api_url: str = "https://cloud-api.yandex.net/v1/disk",
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=self.timeout,
            headers={"Authorization": f"OAuth {self.token}"},
            transport=self.transport,
            follow_redirects=True,
        )

    def _resource_url(self, suffix: str = "") -> str:
        return f"{self.api_url}/resources{suffix}"

    def _get_href(self, client: httpx.Client, suffix: str, params: dict) -> str:
        response = client.get(self._resource_url(suffix), params=params)
        if response.status_code == 404:
            raise StorageNotFoundError(f"Resource not found: {params.get('path')}")
        if response.status_code >= 400:
            raise StorageError(f"Cloud drive returned {response.status_code}: {response.text}")
        href = response.json().get("href")
        if not href:
            raise StorageError("Cloud drive response has no href")
        return href

    def download(self, remote_path: str, local_path: Path) -> Path:
        local_path = Path(local_path)
        local_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with self._client() as client:
                href = self._get_href(client, "/download", {"path": remote_path})
                with client.stream("GET", href) as response:
                    if response.status_code >= 400:
                        raise StorageError(f"Download of {remote_path} failed with {response.status_code}")
                    with open(local_path, "wb") as fh:
                        for chunk in response.iter_bytes():
                            fh.write(chunk)
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to download {remote_path}: {e}") from e
        return local_path

    def upload(self, local_path: Path, remote_path: str) -> dict:
        local_path = Path(local_path)
        try:
            with self._client() as client:
                self.ensure_directory(client, remote_path.rsplit("/", 1)[0])
                href = self._get_href(client, "/upload", {"path": remote_path, "overwrite": "true"})
                with open(local_path, "rb") as fh:
                    response = client.put(href, content=fh.read())
                if response.status_code >= 400:
                    raise StorageError(f"Upload of {remote_path} failed with {response.status_code}")
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to upload {remote_path}: {e}") from e
        return {"path": remote_path}

    def ensure_directory(self, client: httpx.Client, directory: str):
        """Create every folder of ``directory``; existing ones are fine."""
        current = ""
        for part in [p for p in directory.split("/") if p]:
            current = f"{current}/{part}"
            response = client.put(self._resource_url(), params={"path": current})
            if response.status_code in (201, 409):
                continue
            if "already exists" in response.text.lower():
                continue
            raise StorageError(f"Failed to create folder {current}: {response.status_code}")

    def delete(self, remote_path: str) -> DeleteResult:
        try:
            with self._client() as client:
                response = client.delete(
                    self._resource_url(), params={"path": remote_path, "permanently": "true"}
                )
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to delete {remote_path}: {e}") from e

        if response.status_code == 404 or "not found" in response.text.lower():
            return DeleteResult(deleted=False, not_found=True)
        if response.status_code >= 400:
            raise StorageError(f"Delete of {remote_path} failed with {response.status_code}")
        return DeleteResult(deleted=True)
