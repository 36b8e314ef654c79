"""
Remote file storage accessed through an object storage HTTP API.
"""

from __future__ import annotations

from logging import Logger
from urllib.parse import quote

import requests

from ..core.store import BlobStore
from .http import HttpClient

__all__ = [
    "RestBlobStore",
]


class RestBlobStore(HttpClient, BlobStore):
    """
    Implements {obj}`BlobStore` on top of object storage: files are stored
    in a single bucket under `/storage/v1/object`.
    """

    bucket: str

    def __init__(
        self,
        url: str,
        api_key: str,
        *,
        bucket: str = "documents",
        access_token: str | None = None,
        session: requests.Session | None = None,
        timeout: float = 60.0,
        logger: Logger | None = None,
    ):
        super().__init__(
            url,
            api_key,
            access_token=access_token,
            session=session,
            timeout=timeout,
            logger=logger,
        )
        self.bucket = bucket

    def remove(self, paths: list[str]):
        if not paths:
            return

        self.request(
            "DELETE",
            f"/storage/v1/object/{self.bucket}",
            json={"prefixes": paths},
        )

    def upload(self, path: str, data: bytes, *, overwrite: bool = False):
        self.request(
            "POST",
            self._object_path(path),
            data=data,
            headers={
                "Content-Type": "application/octet-stream",
                "Cache-Control": "max-age=3600",
                "x-upsert": "true" if overwrite else "false",
            },
        )

    def download(self, path: str) -> bytes:
        return self.request("GET", self._object_path(path)).content

    def _object_path(self, path: str) -> str:
        return f"/storage/v1/object/{self.bucket}/{quote(path.lstrip('/'))}"
