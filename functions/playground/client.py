"""
Minimal HTTP client for invoking the playground functions.

Mirrors what the browser front-end does: call a function by name with the
project key and an optional user token, and upload a file in two steps
(ask `generate-upload-url` for a signed URL, then PUT the bytes to it).
"""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
DEFAULT_BUCKET = "test-uploads"


class FunctionsError(Exception):
    pass


class FunctionsHttpError(FunctionsError):
    """The function answered with a non-2xx status."""

    def __init__(self, status_code: int, payload: Any):
        message = payload.get("error") if isinstance(payload, dict) else payload
        super().__init__(f"Function returned {status_code}: {message}")
        self.status_code = status_code
        self.payload = payload


class FunctionsFetchError(FunctionsError):
    """The request never got a response."""


class UploadError(FunctionsError):
    pass


@dataclass
class UploadResult:
    path: str
    bucket_name: str
    signed_url: str
    status_code: int


def _parse_body(response: requests.Response) -> Any:
    content_type = response.headers.get("Content-Type", "")
    if "application/json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    return response.text


class FunctionsClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self.session = session or requests.Session()
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        token = self.access_token or self.api_key
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {token}",
            "x-client-info": "playground-python/0.1.0",
        }

    def invoke(
        self,
        name: str,
        method: str = "POST",
        body: Optional[dict] = None,
        params: Optional[dict] = None,
    ) -> Any:
        url = f"{self.base_url}/{name}"
        try:
            response = self.session.request(
                method.upper(),
                url,
                json=body,
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise FunctionsFetchError(f"Failed to send a request to {name}: {exc}") from exc

        payload = _parse_body(response)
        if not response.ok:
            logger.error("Function %s returned an error: %s", name, payload)
            raise FunctionsHttpError(response.status_code, payload)
        return payload

    def upload_file(self, path: str | Path, bucket: str = DEFAULT_BUCKET) -> UploadResult:
        file_path = Path(path)
        body: dict[str, Any] = {"fileName": file_path.name, "bucketName": bucket}
        signed = self.invoke("generate-upload-url", body=body)

        content_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
        try:
            with file_path.open("rb") as handle:
                response = self.session.put(
                    signed["signedUrl"],
                    data=handle,
                    headers={"Content-Type": content_type},
                    timeout=self.timeout,
                )
        except requests.RequestException as exc:
            raise UploadError(f"Upload to signed URL failed: {exc}") from exc
        if not response.ok:
            raise UploadError(
                f"Upload to signed URL failed with {response.status_code}: {response.text}"
            )

        logger.info("Uploaded %s to %s/%s", file_path, signed["bucketName"], signed["path"])
        return UploadResult(
            path=signed["path"],
            bucket_name=signed["bucketName"],
            signed_url=signed["signedUrl"],
            status_code=response.status_code,
        )
