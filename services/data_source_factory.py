"""
Retail Data Source Factory
Picks the data source a capability should read from for a given tenant.
"""
from models import Tenant, ConnectionStatus
from utils import get_logger
from .retail_data_service import RetailDataSource, SimulatedRetailDataSource, SIMULATION_TAG
from .gateway_data_service import NebimGatewayDataSource

logger = get_logger(__name__)


class RetailDataSourceFactory:
    """
    Resolves a tenant to a RetailDataSource.

    - Simulation tenants read the simulated catalogue
    - Real tenants whose connection is not ready fall back to the simulated
      catalogue, tagged so the fallback shows up in results and audit records
    - Connected tenants read from their gateway
    """

    def __init__(self, simulated: SimulatedRetailDataSource | None = None):
        self._simulated = simulated

    def _simulated_source(self, tag: str) -> SimulatedRetailDataSource:
        today = self._simulated.today if self._simulated else None
        if self._simulated and tag == SIMULATION_TAG:
            return self._simulated
        return SimulatedRetailDataSource(today=today, data_source=tag)

    def create(self, tenant: Tenant) -> RetailDataSource:
        if tenant.is_simulation:
            return self._simulated_source(SIMULATION_TAG)

        if tenant.connection_status != ConnectionStatus.CONNECTED or not tenant.gateway_url:
            logger.warning(f"Tenant {tenant.id} connection not ready, using simulated data")
            return self._simulated_source(f"{SIMULATION_TAG} (fallback: Connection not ready)")

        return NebimGatewayDataSource(tenant.gateway_url, tenant.gateway_api_key)


# Singleton instance
_factory: RetailDataSourceFactory | None = None


def get_data_source_factory() -> RetailDataSourceFactory:
    """Get or create data source factory singleton"""
    global _factory
    if _factory is None:
        _factory = RetailDataSourceFactory()
    return _factory
