"""Tests for deterministic bundle matching."""

from giftly.domain.bundles import BUNDLES, Bundle, SuggestedBundle, suggest_bundles
from giftly.domain.state import ChatState


def _names(bundles):
    return [b.name for b in bundles]


class TestSuggestBundles:
    def test_simple_bulk_order(self):
        state = ChatState(quantity=40, budget_per_unit_usd=45.0, shipping_type="bulk", branding="none")
        bundles = suggest_bundles(state)

        assert _names(bundles) == ["Coffee Kit", "Snack Box", "Wellness / Tea Kit"]
        assert all(b.why == "Fast turnaround" for b in bundles)

    def test_requires_quantity_and_budget(self):
        assert suggest_bundles(ChatState(quantity=40)) == []
        assert suggest_bundles(ChatState(budget_per_unit_usd=45.0)) == []

    def test_budget_margin(self):
        # 24 * 0.75 = 18: only the Snack Box fits
        state = ChatState(quantity=40, budget_per_unit_usd=24.0)
        assert _names(suggest_bundles(state)) == ["Snack Box"]

    def test_quantity_bounds(self):
        state = ChatState(quantity=1000, budget_per_unit_usd=100.0)
        bundles = suggest_bundles(state)

        assert _names(bundles) == ["Notebook + Pen"]
        assert bundles[0].why is None

    def test_branding_eligibility(self):
        laser = ChatState(quantity=100, budget_per_unit_usd=40.0, branding="laser")
        assert _names(suggest_bundles(laser)) == ["Notebook + Pen"]

        embroidery = ChatState(quantity=100, budget_per_unit_usd=40.0, branding="embroidery")
        assert suggest_bundles(embroidery) == []

    def test_sorted_by_lead_time_then_price_and_capped(self):
        state = ChatState(quantity=60, budget_per_unit_usd=70.0)
        bundles = suggest_bundles(state)

        assert len(bundles) == 3
        assert _names(bundles) == ["Coffee Kit", "Snack Box", "Wellness / Tea Kit"]
        lead_times = [b.lead_time_days for b in bundles]
        assert lead_times == sorted(lead_times)

    def test_custom_catalog(self):
        catalog = (
            Bundle(
                id="socks",
                name="Socks",
                unit_price=8,
                lead_time_days=12,
                min_qty=10,
                max_qty=100,
                eligible_shipping=frozenset({"bulk", "individual", "unknown"}),
                eligible_branding=frozenset({"none", "unknown"}),
            ),
        )
        bundles = suggest_bundles(ChatState(quantity=20, budget_per_unit_usd=20.0), catalog)

        assert bundles == [SuggestedBundle(name="Socks", unit_price=8, lead_time_days=12)]

    def test_catalog_has_five_bundles(self):
        assert len(BUNDLES) == 5


class TestSuggestedBundleWire:
    def test_to_dict(self):
        bundle = SuggestedBundle(name="Snack Box", unit_price=18, lead_time_days=5, why="Fast turnaround")
        assert bundle.to_dict() == {
            "name": "Snack Box",
            "unitPrice": 18,
            "leadTimeDays": 5,
            "why": "Fast turnaround",
        }

    def test_to_dict_omits_missing_why(self):
        assert "why" not in SuggestedBundle(name="Socks", unit_price=8, lead_time_days=12).to_dict()
