"""
Nebim Gateway Data Service
Reads retail data for connected tenants from their ERP integration gateway over HTTP.

The gateway exposes a small JSON API:
- GET /sales, /sales/top-products, /sales/total, /sales/daily
- GET /stocks, /stocks/summary, /stocks/low
- GET /products/{code}, /products/{code}/stocks
"""
from datetime import date, datetime

import requests

from config import settings
from models import Product, StockItem, SaleLine, TopProduct, Page, StockSummary
from utils import get_logger
from .retail_data_service import RetailDataSource, DataSourceError

logger = get_logger(__name__)

GATEWAY_TAG = "nebim"


def _parse_datetime(value) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _stock_from_dict(data: dict) -> StockItem:
    return StockItem(
        product_code=data.get("product_code", ""),
        product_name=data.get("product_name", ""),
        warehouse_code=data.get("warehouse_code", ""),
        warehouse_name=data.get("warehouse_name", ""),
        quantity=int(data.get("quantity", 0)),
        reserved_quantity=int(data.get("reserved_quantity", 0)),
        color=data.get("color", ""),
        size=data.get("size", ""),
        unit_code=data.get("unit_code", "PCS"),
        last_updated_at=_parse_datetime(data.get("last_updated_at")),
    )


def _sale_from_dict(data: dict) -> SaleLine:
    return SaleLine(
        receipt_number=data.get("receipt_number", ""),
        sale_date=_parse_datetime(data.get("sale_date")) or datetime.min,
        store_code=data.get("store_code", ""),
        store_name=data.get("store_name", ""),
        product_code=data.get("product_code", ""),
        product_name=data.get("product_name", ""),
        quantity=int(data.get("quantity", 0)),
        unit_price=float(data.get("unit_price", 0)),
        discount_amount=float(data.get("discount_amount", 0)),
        total_amount=float(data.get("total_amount", 0)),
        payment_method=data.get("payment_method", ""),
    )


def _product_from_dict(data: dict) -> Product:
    return Product(
        code=data.get("code", ""),
        name=data.get("name", ""),
        category=data.get("category", ""),
        sub_category=data.get("sub_category", ""),
        brand=data.get("brand", ""),
        color=data.get("color", ""),
        size=data.get("size", ""),
        sale_price=float(data.get("sale_price", 0)),
        cost_price=float(data.get("cost_price", 0)),
        barcode=data.get("barcode", ""),
        is_active=bool(data.get("is_active", True)),
    )


def _page_from_dict(data: dict, item_parser) -> Page:
    return Page(
        items=[item_parser(item) for item in data.get("items", [])],
        page=int(data.get("page", 1)),
        page_size=int(data.get("page_size", 20)),
        total_count=int(data.get("total_count", 0)),
    )


class NebimGatewayDataSource(RetailDataSource):
    """
    HTTP client for a tenant's Nebim integration gateway.

    Every request failure is raised as DataSourceError so the calling
    capability can turn it into a failure result.
    """

    def __init__(self, base_url: str, api_key: str | None = None, timeout: int | None = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout or settings.GATEWAY_TIMEOUT_SECONDS
        self.data_source = GATEWAY_TAG

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["X-Api-Key"] = self.api_key
        return headers

    def _get(self, path: str, params: dict | None = None, allow_not_found: bool = False) -> dict | None:
        url = f"{self.base_url}{path}"
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        try:
            response = requests.get(url, headers=self._headers(), params=clean_params, timeout=self.timeout)
            if allow_not_found and response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Gateway request failed: GET {url}: {e}")
            raise DataSourceError(f"Gateway request failed: {e}") from e
        except ValueError as e:
            raise DataSourceError(f"Gateway returned invalid JSON for {path}") from e

    def get_sales(self, start, end, store_code=None, product_code=None, page=1, page_size=20) -> Page:
        data = self._get("/sales", {
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "store_code": store_code,
            "product_code": product_code,
            "page": page,
            "page_size": page_size,
        })
        return _page_from_dict(data, _sale_from_dict)

    def get_top_products(self, start, end, limit=10) -> list[TopProduct]:
        data = self._get("/sales/top-products", {
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "limit": limit,
        })
        return [
            TopProduct(
                product_code=item.get("product_code", ""),
                product_name=item.get("product_name", ""),
                total_quantity=int(item.get("total_quantity", 0)),
                total_amount=float(item.get("total_amount", 0)),
            )
            for item in data.get("items", [])
        ]

    def get_total_sales(self, start, end, metric="sales") -> float:
        data = self._get("/sales/total", {
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "metric": metric,
        })
        return float(data.get("total", 0))

    def get_daily_sales(self, start, end, metric="sales") -> dict[date, float]:
        data = self._get("/sales/daily", {
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "metric": metric,
        })
        return {date.fromisoformat(item["date"]): float(item.get("total", 0)) for item in data.get("items", [])}

    def get_stocks(self, warehouse_code=None, product_code=None, min_quantity=None,
                   in_stock_only=False, page=1, page_size=20) -> Page:
        data = self._get("/stocks", {
            "warehouse_code": warehouse_code,
            "product_code": product_code,
            "min_quantity": min_quantity,
            "in_stock_only": str(in_stock_only).lower(),
            "page": page,
            "page_size": page_size,
        })
        return _page_from_dict(data, _stock_from_dict)

    def get_stock_summary(self) -> StockSummary:
        data = self._get("/stocks/summary")
        return StockSummary(
            total_value=float(data.get("total_value", 0)),
            total_items=int(data.get("total_items", 0)),
            total_quantity=int(data.get("total_quantity", 0)),
        )

    def get_low_stock_items(self, threshold=10) -> list[StockItem]:
        data = self._get("/stocks/low", {"threshold": threshold})
        items = [_stock_from_dict(item) for item in data.get("items", [])]
        return sorted(items, key=lambda s: s.quantity)

    def get_product(self, product_code) -> Product | None:
        data = self._get(f"/products/{product_code}", allow_not_found=True)
        return _product_from_dict(data) if data else None

    def get_stock_by_product(self, product_code) -> list[StockItem]:
        data = self._get(f"/products/{product_code}/stocks")
        return [_stock_from_dict(item) for item in data.get("items", [])]
