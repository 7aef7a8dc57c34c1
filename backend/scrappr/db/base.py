from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

from supabase import Client, acreate_client, create_client
from supabase.lib.client_options import AsyncClientOptions, ClientOptions

from scrappr.config import settings
from scrappr.core.repositories.implementations.memory.document_store import MemoryDocumentStore
from scrappr.core.repositories.implementations.supabase.document_store import SupabaseDocumentStore
from scrappr.utils.logging import get_logger

if TYPE_CHECKING:
    from supabase import AsyncClient

    from scrappr.core.repositories.document_store import DocumentStore

logger = get_logger(__name__)


def create_request_supabase_client(bearer_token: str | None = None) -> Client:
    """Create a request-scoped Supabase client using the anon key.

    If a JWT is provided, set it as the PostgREST bearer so that RLS policies
    are enforced for all table/rpc operations in this request.
    """
    logger.debug("Creating request-scoped Supabase client")
    anon_key = settings.supabase_anon_key
    if not settings.supabase_url or not anon_key:
        raise RuntimeError("supabase_url and supabase_anon_key are required for request client")

    client = create_client(
        settings.supabase_url,
        anon_key,
        options=ClientOptions(auto_refresh_token=False, persist_session=False),
    )
    if bearer_token:
        client.postgrest.auth(bearer_token)
    return client


async def create_realtime_supabase_client(bearer_token: str | None = None) -> AsyncClient:
    """Create an async Supabase client for Realtime subscriptions.

    With a JWT, change feeds are filtered by the same RLS policies as reads.
    """
    logger.debug("Creating Supabase realtime client")
    client = await acreate_client(
        settings.supabase_url,
        settings.supabase_anon_key,
        options=AsyncClientOptions(auto_refresh_token=False, persist_session=False),
    )
    if bearer_token:
        await client.realtime.set_auth(bearer_token)
    return client


@lru_cache(maxsize=1)
def get_memory_document_store() -> MemoryDocumentStore:
    """Process-wide in-memory store used when ``store_backend`` is ``memory``."""
    logger.info("Using in-memory document store")
    return MemoryDocumentStore()


def create_document_store(bearer_token: str | None = None) -> DocumentStore:
    """Document store for one request, according to ``settings.store_backend``."""
    if settings.store_backend == "memory":
        return get_memory_document_store()
    return SupabaseDocumentStore(
        create_request_supabase_client(bearer_token),
        table=settings.supabase_documents_table,
    )


async def create_session_document_store(bearer_token: str | None = None) -> DocumentStore:
    """Document store able to serve live subscriptions for a long-lived session."""
    if settings.store_backend == "memory":
        return get_memory_document_store()
    return SupabaseDocumentStore(
        create_request_supabase_client(bearer_token),
        realtime=await create_realtime_supabase_client(bearer_token),
        table=settings.supabase_documents_table,
    )
