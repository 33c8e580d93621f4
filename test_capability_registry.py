"""
Tests for the capability registry: lookup, tier filtering and the prompt catalog.
"""
from capabilities import Capability, GetSalesCapability, SubscriptionTier
from registry import CapabilityRegistry, build_registry, version_key
from conftest import fixed_clock


class GetSalesV2(GetSalesCapability):
    version = "v2"
    description = "Second revision of GetSales"


def test_registers_all_capabilities(registry):
    names = {c.name for c in registry.list()}
    assert names == {
        "GetSales",
        "GetTopProducts",
        "GetStock",
        "GetLowStockAlerts",
        "GetProductDetails",
        "ComparePeriod",
    }
    assert len(registry) == 6


def test_get_exact_version_and_unknown(registry):
    assert registry.get("GetSales", "v1").name == "GetSales"
    assert registry.get("GetSales", "v9") is None
    assert registry.get("NoSuchCapability") is None


def test_get_without_version_returns_highest(data_sources):
    registry = build_registry([GetSalesCapability, GetSalesV2], data_sources=data_sources, clock=fixed_clock)
    assert registry.get("GetSales").version == "v2"
    assert registry.get("GetSales", "v1").version == "v1"
    # list() shows only the latest version per name
    assert [c.version for c in registry.list()] == ["v2"]
    assert len(registry) == 2


def test_version_key_orders_numerically():
    assert sorted(["v10", "v2", "v1"], key=version_key) == ["v1", "v2", "v10"]


def test_register_same_key_twice_is_noop(data_sources):
    first = GetSalesCapability(data_sources=data_sources)
    second = GetSalesCapability(data_sources=data_sources)
    registry = CapabilityRegistry([first])
    registry.register(second)
    assert len(registry) == 1
    assert registry.get("GetSales") is first


def test_list_is_sorted_by_category_then_name(registry):
    keys = [(c.category, c.name) for c in registry.list()]
    assert keys == sorted(keys)


def test_list_for_tier_hides_professional_capabilities_from_free(registry):
    free_names = {c.name for c in registry.list_for_tier(SubscriptionTier.FREE)}
    pro_names = {c.name for c in registry.list_for_tier(SubscriptionTier.PROFESSIONAL)}
    enterprise_names = {c.name for c in registry.list_for_tier(SubscriptionTier.ENTERPRISE)}

    assert "ComparePeriod" not in free_names
    assert "ComparePeriod" in pro_names
    assert free_names < pro_names <= enterprise_names


def test_list_by_category_is_case_insensitive(registry):
    assert {c.name for c in registry.list_by_category("stock")} == {"GetStock", "GetLowStockAlerts"}
    assert registry.list_by_category("Nonexistent") == []


def test_capability_infos_are_serializable(registry):
    infos = registry.capability_infos(SubscriptionTier.FREE)
    sales = next(info for info in infos if info["name"] == "GetSales")
    assert sales["required_tier"] == "free"
    assert sales["category"] == "Sales"
    assert any(p["name"] == "startDate" and p["type"] == "date" for p in sales["parameters"])
    assert sales["example_queries"]


def test_describe_for_prompt_groups_by_category(registry):
    text = registry.describe_for_prompt()
    assert text.startswith("Available Capabilities:")
    assert "## Analytics" in text
    assert "### ComparePeriod (v1)" in text
    assert "Required tier: professional" in text
    assert "  - productCode: string (required)" in text
    assert "  - limit: int (optional), default: 10" in text
    assert '"What are my top 10 selling products?"' in text
    # Categories appear in sorted order
    assert text.index("## Analytics") < text.index("## Product") < text.index("## Sales") < text.index("## Stock")


def test_describe_for_prompt_is_deterministic(data_sources):
    first = build_registry(data_sources=data_sources, clock=fixed_clock).describe_for_prompt()
    second = build_registry(data_sources=data_sources, clock=fixed_clock).describe_for_prompt()
    assert first == second


def test_capability_metadata_is_class_level():
    assert GetSalesCapability.name == "GetSales"
    assert issubclass(GetSalesCapability, Capability)
