"""
Retail Data Service
Read-only access to a tenant's sales, stock and product data.

Two implementations share the RetailDataSource interface:
- SimulatedRetailDataSource: deterministic in-process catalogue (seeded), used for
  simulation tenants and as the fallback when a real connection is not ready
- NebimGatewayDataSource (gateway_data_service): HTTP client for tenants connected to an ERP gateway
"""
import random
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from functools import lru_cache

from models import Product, StockItem, SaleLine, TopProduct, Page, StockSummary
from utils import get_logger

logger = get_logger(__name__)

SIMULATION_TAG = "simulation"

# Mock stock is valued at a flat unit price
STOCK_UNIT_VALUE = 100.0


class DataSourceError(Exception):
    """Raised when a data source cannot serve a request"""
    pass


class RetailDataSource:
    """
    Interface for retail data access.

    Dates are inclusive calendar days. Implementations raise DataSourceError
    for infrastructure failures and return None/empty results for misses.
    """

    data_source: str = "unknown"

    def get_sales(
        self,
        start: date,
        end: date,
        store_code: str | None = None,
        product_code: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Page:
        raise NotImplementedError

    def get_top_products(self, start: date, end: date, limit: int = 10) -> list[TopProduct]:
        raise NotImplementedError

    def get_total_sales(self, start: date, end: date, metric: str = "sales") -> float:
        raise NotImplementedError

    def get_daily_sales(self, start: date, end: date, metric: str = "sales") -> dict[date, float]:
        raise NotImplementedError

    def get_stocks(
        self,
        warehouse_code: str | None = None,
        product_code: str | None = None,
        min_quantity: int | None = None,
        in_stock_only: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> Page:
        raise NotImplementedError

    def get_stock_summary(self) -> StockSummary:
        raise NotImplementedError

    def get_low_stock_items(self, threshold: int = 10) -> list[StockItem]:
        raise NotImplementedError

    def get_product(self, product_code: str) -> Product | None:
        raise NotImplementedError

    def get_stock_by_product(self, product_code: str) -> list[StockItem]:
        raise NotImplementedError


# =============================================================================
# Simulated catalogue
# =============================================================================

BRANDS = ["Zara", "H&M", "Mango", "Bershka", "Pull&Bear", "Stradivarius", "Massimo Dutti", "Koton", "LC Waikiki", "Colin's"]
CATEGORIES = {
    "Shirt": ["Classic Shirt", "Slim Fit Shirt", "Oversize Shirt"],
    "Trousers": ["Jeans", "Chinos", "Cargo Trousers"],
    "Jacket": ["Blazer", "Leather Jacket", "Denim Jacket"],
    "Coat": ["Overcoat", "Parka", "Puffer Coat", "Trench Coat"],
    "Dress": ["Day Dress", "Evening Dress", "Office Dress"],
    "Skirt": ["Mini Skirt", "Midi Skirt", "Maxi Skirt"],
    "Sweater": ["V-Neck Sweater", "Turtleneck", "Cardigan"],
    "T-Shirt": ["Basic T-Shirt", "Printed T-Shirt", "Polo"],
    "Shoes": ["Sneaker", "Boot", "Heels", "Loafer"],
    "Bag": ["Handbag", "Backpack", "Shoulder Bag"],
}
COLORS = ["Black", "White", "Navy", "Brown", "Grey", "Beige", "Red", "Blue", "Green", "Burgundy"]
SIZES = ["XS", "S", "M", "L", "XL", "XXL"]
WAREHOUSES = [
    ("WH001", "Central Warehouse - Istanbul"),
    ("WH002", "Istanbul Kadikoy Store"),
    ("WH003", "Ankara Kizilay Store"),
    ("WH004", "Izmir Alsancak Store"),
    ("WH005", "Bursa Nilufer Store"),
    ("WH006", "Antalya Konyaalti Store"),
]
STORES = [
    ("STR001", "Istanbul Kadikoy Store"),
    ("STR002", "Ankara Kizilay Store"),
    ("STR003", "Izmir Alsancak Store"),
    ("STR004", "Bursa Nilufer Store"),
    ("STR005", "Antalya Konyaalti Store"),
]
PAYMENT_METHODS = ["Cash", "Credit Card", "Debit Card", "Bank Transfer"]
SALES_HISTORY_DAYS = 60
SEED = 42


@dataclass(frozen=True)
class SimulatedCatalog:
    products: tuple
    stocks: tuple
    sales: tuple


def _generate_products() -> list[Product]:
    rng = random.Random(SEED)
    products = []
    product_id = 1
    for brand in BRANDS:
        for category, subs in CATEGORIES.items():
            sub = subs[rng.randrange(len(subs))]
            color = COLORS[rng.randrange(len(COLORS))]
            size = SIZES[rng.randrange(len(SIZES))]
            base_price = float(rng.randrange(100, 2500))
            products.append(Product(
                code=f"PRD{product_id:05d}",
                name=f"{brand} {sub} - {color}",
                category=category,
                sub_category=sub,
                brand=brand,
                color=color,
                size=size,
                sale_price=base_price,
                cost_price=base_price * 0.5,
                barcode=f"86900{product_id:08d}",
                is_active=rng.random() > 0.05,
            ))
            product_id += 1
    return products


def _generate_stocks(products: list[Product], today: date) -> list[StockItem]:
    rng = random.Random(SEED)
    now = datetime.combine(today, datetime.min.time())
    stocks = []
    for product in products:
        warehouse_count = rng.randrange(2, 5)
        for code, name in rng.sample(WAREHOUSES, warehouse_count):
            roll = rng.random()
            if roll < 0.10:
                qty = 0
            elif roll < 0.30:
                qty = rng.randrange(1, 10)
            else:
                qty = rng.randrange(10, 150)
            stocks.append(StockItem(
                product_code=product.code,
                product_name=product.name,
                warehouse_code=code,
                warehouse_name=name,
                quantity=qty,
                reserved_quantity=rng.randrange(0, min(qty // 4, 10)) if qty > 5 and qty // 4 > 0 else 0,
                color=product.color,
                size=product.size,
                last_updated_at=now - timedelta(hours=rng.randrange(0, 168)),
            ))
    return stocks


def _generate_sales(products: list[Product], today: date) -> list[SaleLine]:
    rng = random.Random(SEED)
    sales = []
    for day_offset in range(SALES_HISTORY_DAYS):
        day = today - timedelta(days=day_offset)
        is_weekend = day.weekday() >= 5
        daily_receipts = rng.randrange(40, 80) if is_weekend else rng.randrange(25, 50)
        for i in range(daily_receipts):
            store_code, store_name = STORES[rng.randrange(len(STORES))]
            receipt_no = f"RCP{day:%Y%m%d}{store_code}{i:04d}"
            for _ in range(rng.randrange(1, 6)):
                product = products[rng.randrange(len(products))]
                qty = rng.randrange(1, 4)
                discount_rate = rng.randrange(5, 30) / 100 if rng.random() > 0.70 else 0.0
                discount = product.sale_price * discount_rate
                sales.append(SaleLine(
                    receipt_number=receipt_no,
                    sale_date=datetime.combine(day, datetime.min.time())
                    + timedelta(hours=rng.randrange(10, 22), minutes=rng.randrange(0, 60)),
                    store_code=store_code,
                    store_name=store_name,
                    product_code=product.code,
                    product_name=product.name,
                    quantity=qty,
                    unit_price=product.sale_price,
                    discount_amount=round(discount * qty, 2),
                    total_amount=round((product.sale_price - discount) * qty, 2),
                    payment_method=PAYMENT_METHODS[rng.randrange(len(PAYMENT_METHODS))],
                ))
    return sales


@lru_cache(maxsize=4)
def build_simulated_catalog(today: date) -> SimulatedCatalog:
    """Generate (and cache) the deterministic catalogue anchored at `today`"""
    products = _generate_products()
    stocks = _generate_stocks(products, today)
    sales = _generate_sales(products, today)
    logger.info(
        f"Simulated catalogue built for {today}: {len(products)} products, "
        f"{len(stocks)} stock rows, {len(sales)} sale lines"
    )
    return SimulatedCatalog(products=tuple(products), stocks=tuple(stocks), sales=tuple(sales))


def _paginate(items: list, page: int, page_size: int) -> Page:
    offset = (page - 1) * page_size
    return Page(items=items[offset:offset + page_size], page=page, page_size=page_size, total_count=len(items))


def _metric_value(sale: SaleLine, metric: str) -> float:
    return float(sale.quantity) if metric == "quantity" else sale.total_amount


class SimulatedRetailDataSource(RetailDataSource):
    """
    Deterministic retail data for simulation tenants.

    The same `today` always yields the same catalogue, which keeps demo
    tenants and tests reproducible.
    """

    def __init__(self, today: date | None = None, data_source: str = SIMULATION_TAG):
        self.today = today or datetime.now(timezone.utc).date()
        self.data_source = data_source

    @property
    def catalog(self) -> SimulatedCatalog:
        return build_simulated_catalog(self.today)

    def _sales_between(self, start: date, end: date) -> list[SaleLine]:
        return [s for s in self.catalog.sales if start <= s.sale_date.date() <= end]

    def get_sales(self, start, end, store_code=None, product_code=None, page=1, page_size=20) -> Page:
        sales = self._sales_between(start, end)
        if store_code:
            sales = [s for s in sales if s.store_code == store_code]
        if product_code:
            needle = product_code.lower()
            sales = [s for s in sales if needle in s.product_code.lower()]
        sales.sort(key=lambda s: s.sale_date, reverse=True)
        return _paginate(sales, page, page_size)

    def get_top_products(self, start, end, limit=10) -> list[TopProduct]:
        totals: dict[str, TopProduct] = {}
        for sale in self._sales_between(start, end):
            entry = totals.get(sale.product_code)
            if entry is None:
                entry = totals[sale.product_code] = TopProduct(sale.product_code, sale.product_name, 0, 0.0)
            entry.total_quantity += sale.quantity
            entry.total_amount += sale.total_amount
        ranked = sorted(totals.values(), key=lambda p: (-p.total_amount, p.product_code))
        for entry in ranked:
            entry.total_amount = round(entry.total_amount, 2)
        return ranked[:limit]

    def get_total_sales(self, start, end, metric="sales") -> float:
        return round(sum(_metric_value(s, metric) for s in self._sales_between(start, end)), 2)

    def get_daily_sales(self, start, end, metric="sales") -> dict[date, float]:
        daily: dict[date, float] = {}
        for sale in self._sales_between(start, end):
            day = sale.sale_date.date()
            daily[day] = daily.get(day, 0.0) + _metric_value(sale, metric)
        return {day: round(total, 2) for day, total in sorted(daily.items())}

    def get_stocks(self, warehouse_code=None, product_code=None, min_quantity=None,
                   in_stock_only=False, page=1, page_size=20) -> Page:
        stocks = list(self.catalog.stocks)
        if product_code:
            needle = product_code.lower()
            stocks = [s for s in stocks if needle in s.product_code.lower()]
        if warehouse_code:
            stocks = [s for s in stocks if s.warehouse_code == warehouse_code]
        if min_quantity is not None:
            stocks = [s for s in stocks if s.quantity >= min_quantity]
        if in_stock_only:
            stocks = [s for s in stocks if s.quantity > 0]
        return _paginate(stocks, page, page_size)

    def get_stock_summary(self) -> StockSummary:
        stocks = self.catalog.stocks
        total_quantity = sum(s.quantity for s in stocks)
        return StockSummary(
            total_value=total_quantity * STOCK_UNIT_VALUE,
            total_items=len(stocks),
            total_quantity=total_quantity,
        )

    def get_low_stock_items(self, threshold=10) -> list[StockItem]:
        low = [s for s in self.catalog.stocks if 0 < s.quantity < threshold]
        return sorted(low, key=lambda s: s.quantity)

    def get_product(self, product_code) -> Product | None:
        code = product_code.upper()
        return next((p for p in self.catalog.products if p.code.upper() == code), None)

    def get_stock_by_product(self, product_code) -> list[StockItem]:
        code = product_code.upper()
        return [s for s in self.catalog.stocks if s.product_code.upper() == code]
