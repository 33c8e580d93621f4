"""
Supabase client for database access
Tenant lookup, query quota rows and the query history audit table
"""
from supabase import create_client, Client
from config import settings
from utils.logger import get_logger

logger = get_logger(__name__)

_client: Client | None = None


def get_supabase_client() -> Client:
    """Get or create Supabase client singleton"""
    global _client
    if _client is None:
        if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
            raise ValueError("Supabase URL and Key must be configured")
        _client = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
    return _client


def get_tenant(tenant_id: str) -> dict | None:
    """Get a tenant row with its subscription plan embedded"""
    client = get_supabase_client()
    response = (
        client.table("tenants")
        .select("*, subscription_plans(*)")
        .eq("id", tenant_id)
        .limit(1)
        .execute()
    )
    rows = response.data or []
    logger.info(f"get_tenant {tenant_id}: {'found' if rows else 'not found'}")
    return rows[0] if rows else None


def get_query_quota(tenant_id: str, period_type: str, period_start: str) -> dict | None:
    client = get_supabase_client()
    response = (
        client.table("query_quotas")
        .select("*")
        .eq("tenant_id", tenant_id)
        .eq("period_type", period_type)
        .eq("period_start", period_start)
        .limit(1)
        .execute()
    )
    rows = response.data or []
    return rows[0] if rows else None


def create_query_quota(row: dict) -> dict:
    """
    Insert a quota row if none exists for (tenant, period_type, period_start).
    Concurrent creators race harmlessly; the existing row wins.
    """
    client = get_supabase_client()
    client.table("query_quotas").upsert(
        row,
        on_conflict="tenant_id,period_type,period_start",
        ignore_duplicates=True,
    ).execute()
    existing = get_query_quota(row["tenant_id"], row["period_type"], row["period_start"])
    return existing or row


def consume_query_quota(tenant_id: str, period_type: str, period_start: str) -> bool:
    """
    Atomically increment used_count if it is still below total_limit.
    Backed by the consume_query_quota Postgres function; returns False when the ceiling was hit.
    """
    client = get_supabase_client()
    response = client.rpc("consume_query_quota", {
        "p_tenant_id": tenant_id,
        "p_period_type": period_type,
        "p_period_start": period_start,
    }).execute()
    return bool(response.data)


def insert_query_history(row: dict) -> None:
    client = get_supabase_client()
    client.table("query_history").insert(row).execute()
    logger.info(f"insert_query_history for tenant {row.get('tenant_id')}: success={row.get('success')}")


def list_query_history(tenant_id: str, user_id: str | None = None, limit: int = 20) -> list[dict]:
    """Get recent history rows, newest first"""
    client = get_supabase_client()
    query = client.table("query_history").select("*").eq("tenant_id", tenant_id)
    if user_id:
        query = query.eq("user_id", user_id)
    response = query.order("created_at", desc=True).limit(limit).execute()
    return response.data or []
