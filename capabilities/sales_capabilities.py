"""
Sales Capabilities
- GetSales: paged sales lines for a date range with store/product filters
- GetTopProducts: best-selling products ranked by revenue
"""
from datetime import date, timedelta

from models import SubscriptionTier
from .base import Capability
from .types import CapabilityParameter, ParameterType, ValidationResult

DEFAULT_RANGE_DAYS = 30
MAX_RANGE_DAYS = 365
MAX_PAGE_SIZE = 100

START_DATE = CapabilityParameter(
    "startDate", ParameterType.DATE,
    "Start of the date range (YYYY-MM-DD). Defaults to 30 days before endDate.",
    examples=("2024-01-01",),
)
END_DATE = CapabilityParameter(
    "endDate", ParameterType.DATE,
    "End of the date range (YYYY-MM-DD). Defaults to today.",
    examples=("2024-01-31",),
)


class DateRangeMixin:
    """Shared startDate/endDate handling for sales capabilities"""

    def date_range(self, params: dict) -> tuple[date, date]:
        end = self.get_date(params, "endDate") or self.today()
        start = self.get_date(params, "startDate") or end - timedelta(days=DEFAULT_RANGE_DAYS)
        return start, end

    def validate_date_range(self, params: dict, result: ValidationResult) -> tuple[date, date]:
        start, end = self.date_range(params)
        if start > end:
            result.add_error("INVALID_DATE_RANGE", "Start date cannot be after end date")
        elif (end - start).days > MAX_RANGE_DAYS:
            result.add_warning("Date ranges longer than one year may be slow")
        return start, end


def validate_paging(capability: Capability, params: dict, result: ValidationResult) -> None:
    page = capability.get_int(params, "page")
    page_size = capability.get_int(params, "pageSize")
    if page is not None and page < 1:
        result.add_error("INVALID_PARAMETER", "page must be 1 or greater")
    if page_size is not None and not 1 <= page_size <= MAX_PAGE_SIZE:
        result.add_error("INVALID_PARAMETER", f"pageSize must be between 1 and {MAX_PAGE_SIZE}")


def paging(capability: Capability, params: dict) -> tuple[int, int]:
    page = max(1, capability.get_int(params, "page") or 1)
    page_size = min(MAX_PAGE_SIZE, max(1, capability.get_int(params, "pageSize") or 20))
    return page, page_size


class GetSalesCapability(DateRangeMixin, Capability):
    name = "GetSales"
    description = "Lists sales transactions for a date range, optionally filtered by store or product."
    category = "Sales"
    required_tier = SubscriptionTier.FREE
    error_code = "SALES_FETCH_ERROR"
    parameters = (
        START_DATE,
        END_DATE,
        CapabilityParameter("storeCode", ParameterType.STRING, "Store code filter", examples=("STR001",)),
        CapabilityParameter("productCode", ParameterType.STRING, "Product code filter", examples=("PRD00001",)),
        CapabilityParameter("page", ParameterType.INT, "Page number", default=1),
        CapabilityParameter("pageSize", ParameterType.INT, "Records per page (max 100)", default=20),
    )
    example_queries = (
        "Show me sales from the last week",
        "What did the Kadikoy store sell in January?",
        "List sales for product PRD00001 this month",
    )

    def _validate(self, params, result):
        self.validate_date_range(params, result)
        validate_paging(self, params, result)

    def _run(self, source, params, cancel):
        start, end = self.date_range(params)
        store_code = self.get_str(params, "storeCode")
        product_code = self.get_str(params, "productCode")
        page, page_size = paging(self, params)

        result = source.get_sales(start, end, store_code, product_code, page, page_size)
        data = {
            "sales": [sale.to_dict() for sale in result.items],
            "pagination": result.pagination(),
            "date_range": {"start_date": start.isoformat(), "end_date": end.isoformat()},
            "filters": {"store_code": store_code, "product_code": product_code},
        }
        return data, len(result.items)


class GetTopProductsCapability(DateRangeMixin, Capability):
    name = "GetTopProducts"
    description = "Ranks the best-selling products by revenue for a date range."
    category = "Sales"
    required_tier = SubscriptionTier.FREE
    error_code = "TOP_PRODUCTS_ERROR"
    parameters = (
        START_DATE,
        END_DATE,
        CapabilityParameter("limit", ParameterType.INT, "Number of products to return (1-100)", default=10,
                            examples=(5, 10)),
    )
    example_queries = (
        "What are my top 10 selling products?",
        "Best sellers this month",
        "Which 5 products made the most revenue last week?",
    )

    def _validate(self, params, result):
        self.validate_date_range(params, result)
        limit = self.get_int(params, "limit")
        if limit is not None and not 1 <= limit <= 100:
            result.add_error("INVALID_PARAMETER", "limit must be between 1 and 100")

    def _run(self, source, params, cancel):
        start, end = self.date_range(params)
        limit = min(100, max(1, self.get_int(params, "limit") or 10))

        products = source.get_top_products(start, end, limit)
        data = {
            "products": [{"rank": rank, **product.to_dict()} for rank, product in enumerate(products, start=1)],
            "date_range": {"start_date": start.isoformat(), "end_date": end.isoformat()},
            "limit": limit,
        }
        return data, len(products)
