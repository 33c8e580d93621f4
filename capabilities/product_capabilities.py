"""
Product Capabilities
- GetProductDetails: one product with optional stock breakdown and last-30-day sales
"""
from datetime import timedelta

from models import SubscriptionTier
from .base import Capability, CapabilityError
from .types import CapabilityParameter, ParameterType

SALES_LOOKBACK_DAYS = 30
SALES_PAGE_SIZE = 100


class GetProductDetailsCapability(Capability):
    name = "GetProductDetails"
    description = "Shows details for one product, including stock per warehouse and sales over the last 30 days."
    category = "Product"
    required_tier = SubscriptionTier.FREE
    error_code = "PRODUCT_DETAILS_ERROR"
    parameters = (
        CapabilityParameter("productCode", ParameterType.STRING, "Product code", required=True,
                            examples=("PRD00001",)),
        CapabilityParameter("includeStock", ParameterType.BOOL, "Include stock per warehouse", default=True),
        CapabilityParameter("includeSales", ParameterType.BOOL, "Include last 30 days of sales", default=True),
    )
    example_queries = (
        "Tell me about product PRD00001",
        "Details and stock for PRD00042",
    )

    def _run(self, source, params, cancel):
        product_code = self.get_str(params, "productCode")
        if not product_code:
            raise CapabilityError("MISSING_PRODUCT_CODE", "Product code is required")

        product = source.get_product(product_code)
        if product is None:
            raise CapabilityError("PRODUCT_NOT_FOUND", f"Product not found: {product_code}")

        stock_info = None
        if self.get_bool(params, "includeStock"):
            cancel.raise_if_cancelled()
            stocks = source.get_stock_by_product(product.code)
            stock_info = {
                "warehouses": [
                    {
                        "warehouse_code": s.warehouse_code,
                        "warehouse_name": s.warehouse_name,
                        "quantity": s.quantity,
                        "available": s.available_quantity,
                    }
                    for s in stocks
                ],
                "total_quantity": sum(s.quantity for s in stocks),
                "total_available": sum(s.available_quantity for s in stocks),
            }

        sales_info = None
        if self.get_bool(params, "includeSales"):
            end = self.today()
            start = end - timedelta(days=SALES_LOOKBACK_DAYS)
            total_quantity = 0
            total_amount = 0.0
            transactions = 0
            page_number = 1
            while True:
                cancel.raise_if_cancelled()
                page = source.get_sales(start, end, product_code=product.code, page=page_number,
                                        page_size=SALES_PAGE_SIZE)
                for sale in page.items:
                    total_quantity += sale.quantity
                    total_amount += sale.total_amount
                transactions += len(page.items)
                if page_number >= page.total_pages or not page.items:
                    break
                page_number += 1
            sales_info = {
                "last_30_days": {
                    "total_quantity": total_quantity,
                    "total_amount": round(total_amount, 2),
                    "transaction_count": transactions,
                },
            }

        data = {
            "product": {
                "code": product.code,
                "name": product.name,
                "category": product.category,
                "brand": product.brand,
                "color": product.color,
                "size": product.size,
                "price": product.sale_price,
                "barcode": product.barcode,
                "is_active": product.is_active,
            },
            "stock": stock_info,
            "sales": sales_info,
        }
        return data, 1
