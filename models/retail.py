"""
Retail Models
Products, stock positions and sale lines as returned by a retail data source.
"""
from dataclasses import dataclass, asdict, field
from datetime import datetime
from math import ceil


@dataclass
class Product:
    code: str
    name: str
    category: str
    sub_category: str
    brand: str
    color: str
    size: str
    sale_price: float
    cost_price: float
    barcode: str
    is_active: bool = True

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class StockItem:
    product_code: str
    product_name: str
    warehouse_code: str
    warehouse_name: str
    quantity: int
    reserved_quantity: int = 0
    color: str = ""
    size: str = ""
    unit_code: str = "PCS"
    last_updated_at: datetime | None = None

    @property
    def available_quantity(self) -> int:
        return max(0, self.quantity - self.reserved_quantity)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["available_quantity"] = self.available_quantity
        data["last_updated_at"] = self.last_updated_at.isoformat() if self.last_updated_at else None
        return data


@dataclass
class SaleLine:
    receipt_number: str
    sale_date: datetime
    store_code: str
    store_name: str
    product_code: str
    product_name: str
    quantity: int
    unit_price: float
    discount_amount: float
    total_amount: float
    payment_method: str = ""

    def to_dict(self) -> dict:
        data = asdict(self)
        data["sale_date"] = self.sale_date.isoformat()
        return data


@dataclass
class TopProduct:
    """Aggregated sales for one product over a date range"""
    product_code: str
    product_name: str
    total_quantity: int
    total_amount: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Page:
    """One page of a paged query"""
    items: list = field(default_factory=list)
    page: int = 1
    page_size: int = 20
    total_count: int = 0

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return ceil(self.total_count / self.page_size)

    def pagination(self) -> dict:
        return {
            "current_page": self.page,
            "page_size": self.page_size,
            "total_count": self.total_count,
            "total_pages": self.total_pages,
        }


@dataclass
class StockSummary:
    total_value: float
    total_items: int
    total_quantity: int

    def to_dict(self) -> dict:
        return asdict(self)
