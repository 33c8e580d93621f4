"""
Services module - data access and external API integrations
"""
from .retail_data_service import (
    RetailDataSource,
    SimulatedRetailDataSource,
    DataSourceError,
    SIMULATION_TAG,
)
from .gateway_data_service import NebimGatewayDataSource
from .data_source_factory import RetailDataSourceFactory, get_data_source_factory
from .llm_client import (
    GeminiReasoningClient,
    ReasoningResponse,
    ReasoningServiceError,
    ReasoningServiceBusyError,
    get_reasoning_client,
)
from .storage import (
    TenantStore,
    InMemoryTenantStore,
    SupabaseTenantStore,
    QuotaStore,
    InMemoryQuotaStore,
    SupabaseQuotaStore,
    HistoryStore,
    InMemoryHistoryStore,
    SupabaseHistoryStore,
    demo_tenants,
)

__all__ = [
    "RetailDataSource",
    "SimulatedRetailDataSource",
    "DataSourceError",
    "SIMULATION_TAG",
    "NebimGatewayDataSource",
    "RetailDataSourceFactory",
    "get_data_source_factory",
    "GeminiReasoningClient",
    "ReasoningResponse",
    "ReasoningServiceError",
    "ReasoningServiceBusyError",
    "get_reasoning_client",
    "TenantStore",
    "InMemoryTenantStore",
    "SupabaseTenantStore",
    "QuotaStore",
    "InMemoryQuotaStore",
    "SupabaseQuotaStore",
    "HistoryStore",
    "InMemoryHistoryStore",
    "SupabaseHistoryStore",
    "demo_tenants",
]
