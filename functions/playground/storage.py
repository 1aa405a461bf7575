"""
Signed upload URLs from the hosted storage service, any S3-compatible
bucket, or an in-memory test double.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol
from urllib.parse import parse_qs, urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from supabase import Client

UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


class StorageError(Exception):
    """The storage service refused to issue an upload URL."""


@dataclass
class SignedUploadUrl:
    signed_url: str
    path: str
    token: Optional[str] = None


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def create_signed_upload_url(self, bucket: str, path: str) -> SignedUploadUrl:
        ...


def sanitize_file_name(file_name: str) -> str:
    """Replace spaces and special characters so the name is a safe object key."""
    return UNSAFE_FILENAME_CHARS.sub("_", file_name)


def build_upload_path(file_name: str) -> str:
    return f"{uuid.uuid4()}-{sanitize_file_name(file_name)}"


def rewrite_internal_url(url: str, internal_base: str, public_base: str) -> str:
    """Point URLs minted inside the local stack at the publicly reachable host."""
    if internal_base and internal_base in url:
        return url.replace(internal_base, public_base)
    return url


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage/v1"
    issued: list[SignedUploadUrl] = field(default_factory=list)
    missing_buckets: set[str] = field(default_factory=set)

    def create_signed_upload_url(self, bucket: str, path: str) -> SignedUploadUrl:
        if bucket in self.missing_buckets:
            raise StorageError("Bucket not found")
        token = uuid.uuid4().hex
        signed = SignedUploadUrl(
            signed_url=f"{self.base_url}/object/upload/sign/{bucket}/{path}?token={token}",
            path=path,
            token=token,
        )
        self.issued.append(signed)
        return signed

    def reset(self) -> None:
        self.issued.clear()
        self.missing_buckets.clear()


class SupabaseStorageClient:
    """Hosted storage, called with a service-role client."""

    def __init__(self, client: Client):
        self._client = client

    def create_signed_upload_url(self, bucket: str, path: str) -> SignedUploadUrl:
        try:
            data = self._client.storage.from_(bucket).create_signed_upload_url(path)
        except Exception as exc:
            raise StorageError(str(exc)) from exc
        signed_url = data.get("signed_url") or data.get("signedUrl")
        if not signed_url:
            raise StorageError("Storage service returned no signed URL")
        return SignedUploadUrl(
            signed_url=signed_url,
            path=data.get("path") or path,
            token=data.get("token"),
        )


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client issuing presigned PUT URLs.
    """

    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    expires_in: int = 7200

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def create_signed_upload_url(self, bucket: str, path: str) -> SignedUploadUrl:
        try:
            url = self._client.generate_presigned_url(
                ClientMethod="put_object",
                Params={"Bucket": bucket, "Key": path},
                ExpiresIn=self.expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc
        signature = parse_qs(urlparse(url).query).get("X-Amz-Signature", [None])[0]
        return SignedUploadUrl(signed_url=url, path=path, token=signature)
