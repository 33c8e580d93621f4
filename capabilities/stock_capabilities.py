"""
Stock Capabilities
- GetStock: paged stock positions with warehouse/product/quantity filters
- GetLowStockAlerts: items running low, graded critical or warning
"""
from models import SubscriptionTier
from .base import Capability
from .types import CapabilityParameter, ParameterType
from .sales_capabilities import validate_paging, paging

DEFAULT_LOW_STOCK_THRESHOLD = 10


class GetStockCapability(Capability):
    name = "GetStock"
    description = "Shows current stock levels by warehouse and product, with an overall stock summary."
    category = "Stock"
    required_tier = SubscriptionTier.FREE
    error_code = "STOCK_FETCH_ERROR"
    parameters = (
        CapabilityParameter("warehouseCode", ParameterType.STRING, "Warehouse code filter", examples=("WH001",)),
        CapabilityParameter("productCode", ParameterType.STRING, "Product code filter", examples=("PRD00001",)),
        CapabilityParameter("minQuantity", ParameterType.INT, "Only rows with at least this quantity"),
        CapabilityParameter("inStockOnly", ParameterType.BOOL, "Only rows with quantity > 0", default=False),
        CapabilityParameter("page", ParameterType.INT, "Page number", default=1),
        CapabilityParameter("pageSize", ParameterType.INT, "Records per page (max 100)", default=20),
    )
    example_queries = (
        "How much stock do we have?",
        "Show stock in the central warehouse",
        "What is the stock of product PRD00001?",
    )

    def _validate(self, params, result):
        min_quantity = self.get_int(params, "minQuantity")
        if min_quantity is not None and min_quantity < 0:
            result.add_error("INVALID_PARAMETER", "minQuantity cannot be negative")
        validate_paging(self, params, result)

    def _run(self, source, params, cancel):
        warehouse_code = self.get_str(params, "warehouseCode")
        product_code = self.get_str(params, "productCode")
        min_quantity = self.get_int(params, "minQuantity")
        in_stock_only = bool(self.get_bool(params, "inStockOnly"))
        page, page_size = paging(self, params)

        result = source.get_stocks(warehouse_code, product_code, min_quantity, in_stock_only, page, page_size)
        cancel.raise_if_cancelled()
        summary = source.get_stock_summary()

        data = {
            "stocks": [stock.to_dict() for stock in result.items],
            "summary": summary.to_dict(),
            "pagination": result.pagination(),
            "filters": {
                "warehouse_code": warehouse_code,
                "product_code": product_code,
                "min_quantity": min_quantity,
                "in_stock_only": in_stock_only,
            },
        }
        return data, len(result.items)


class GetLowStockAlertsCapability(Capability):
    name = "GetLowStockAlerts"
    description = (
        "Lists items whose stock is above zero but below a threshold. "
        "Items at or below half the threshold are critical, the rest are warnings."
    )
    category = "Stock"
    required_tier = SubscriptionTier.FREE
    error_code = "LOW_STOCK_ERROR"
    parameters = (
        CapabilityParameter("threshold", ParameterType.INT, "Alert when quantity is below this value",
                            default=DEFAULT_LOW_STOCK_THRESHOLD, examples=(5, 10, 20)),
    )
    example_queries = (
        "Which products are running low?",
        "Show low stock alerts",
        "Items with less than 5 units left",
    )

    def _validate(self, params, result):
        threshold = self.get_int(params, "threshold")
        if threshold is not None and threshold < 1:
            result.add_error("INVALID_PARAMETER", "threshold must be 1 or greater")

    def _run(self, source, params, cancel):
        threshold = max(1, self.get_int(params, "threshold") or DEFAULT_LOW_STOCK_THRESHOLD)

        items = source.get_low_stock_items(threshold)
        alerts = []
        for item in items:
            severity = "critical" if item.quantity <= threshold / 2 else "warning"
            alerts.append({**item.to_dict(), "severity": severity})

        critical_count = sum(1 for a in alerts if a["severity"] == "critical")
        data = {
            "alerts": alerts,
            "summary": {
                "total_alerts": len(alerts),
                "critical_count": critical_count,
                "warning_count": len(alerts) - critical_count,
                "threshold": threshold,
            },
        }
        return data, len(alerts)
