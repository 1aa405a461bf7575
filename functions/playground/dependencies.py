"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from typing import Callable

from supabase import Client, ClientOptions, create_client

from playground.auth import ClaimsVerifier, InMemoryClaimsVerifier, SupabaseClaimsVerifier
from playground.config import Settings, get_settings
from playground.db import InMemoryTableClient, SqlTableClient, SupabaseTableClient, TableClient
from playground.storage import InMemoryStorageClient, S3StorageClient, StorageClient, SupabaseStorageClient

TableClientFactory = Callable[[str], TableClient]

_memory_tables: InMemoryTableClient | None = None
_sql_tables: SqlTableClient | None = None
_storage_client: StorageClient | None = None
_claims_verifier: ClaimsVerifier | None = None


def _use_memory(settings: Settings) -> bool:
    return settings.use_in_memory_backends or not (
        settings.supabase_url or settings.database_url
    )


def create_user_client(settings: Settings, authorization: str) -> Client:
    """A platform client acting as the caller, so row level security applies."""
    return create_client(
        settings.supabase_url or "",
        settings.supabase_anon_key or "",
        options=ClientOptions(headers={"Authorization": authorization}),
    )


def create_public_client(settings: Settings) -> Client:
    return create_client(settings.supabase_url or "", settings.client_key or "")


def create_service_client(settings: Settings) -> Client:
    return create_client(
        settings.supabase_url or "", settings.supabase_service_role_key or ""
    )


def get_memory_tables() -> InMemoryTableClient:
    """
    Return a singleton in-memory store so rows persist across requests.
    """
    global _memory_tables
    if _memory_tables is None:
        _memory_tables = InMemoryTableClient()
    return _memory_tables


def get_table_client_factory() -> TableClientFactory:
    """
    Return a callable building the data handle for one request from its
    Authorization header.
    """
    global _sql_tables
    settings = get_settings()
    if _use_memory(settings):
        memory = get_memory_tables()
        return lambda authorization: memory
    if settings.supabase_url:
        return lambda authorization: SupabaseTableClient(
            create_user_client(settings, authorization)
        )
    if _sql_tables is None:
        _sql_tables = SqlTableClient(settings.database_url)
    sql_tables = _sql_tables
    return lambda authorization: sql_tables


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends:
        _storage_client = InMemoryStorageClient()
    elif settings.supabase_url and settings.supabase_service_role_key:
        _storage_client = SupabaseStorageClient(create_service_client(settings))
    elif settings.aws_access_key_id and settings.aws_secret_access_key:
        _storage_client = S3StorageClient(
            region=settings.storage_region or "",
            endpoint=settings.storage_endpoint or "",
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
        )
    else:
        _storage_client = InMemoryStorageClient()
    return _storage_client


def get_claims_verifier() -> ClaimsVerifier:
    global _claims_verifier
    if _claims_verifier:
        return _claims_verifier

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.supabase_url:
        _claims_verifier = InMemoryClaimsVerifier()
    else:
        _claims_verifier = SupabaseClaimsVerifier(create_public_client(settings))
    return _claims_verifier


def reset_clients() -> None:
    """Drop cached clients so the next request rebuilds them from settings."""
    global _memory_tables, _sql_tables, _storage_client, _claims_verifier
    _memory_tables = None
    _sql_tables = None
    _storage_client = None
    _claims_verifier = None

