from __future__ import annotations

import pytest

from funnel_builder.funnel_model import Funnel, Step, Tier
from funnel_builder.plan_mapper import (
    PlanLaunchError,
    PlanMappingError,
    PlanTierMap,
    extract_pricing_plans,
    map_plans_to_tiers,
    match_tier,
    pricing_plans_for,
    resolve_launch_tier,
    synthesize_plans,
)
from funnel_builder.schemas import Page, PricingPlan


def _tiers() -> tuple[Tier, ...]:
    step = Step(id="s1", pageType="checkout", label="Checkout")
    return (
        Tier(id="professional", name="Professional", steps=(step,)),
        Tier(id="pro", name="Pro", steps=(step,)),
        Tier(id="gold", name="Gold Plus", steps=()),
    )


def test_exact_match_wins_over_earlier_substring_match():
    assert match_tier("Pro", _tiers()).id == "pro"
    assert match_tier("  pro ", _tiers()).id == "pro"


def test_substring_match_in_either_direction_uses_tier_order():
    assert match_tier("Professional Annual", _tiers()).id == "professional"
    assert match_tier("Gold", _tiers()).id == "gold"


def test_blank_or_unknown_plan_names_do_not_match():
    assert match_tier("", _tiers()) is None
    assert match_tier("   ", _tiers()) is None
    assert match_tier("Enterprise", _tiers()) is None


def test_map_plans_to_tiers_leaves_unmatched_plans_out():
    plans = [PricingPlan(name="Pro"), PricingPlan(name="Enterprise"), PricingPlan(name="gold")]

    assert map_plans_to_tiers(plans, _tiers()) == {"Pro": "pro", "gold": "gold"}


def test_operator_overrides_survive_refresh():
    tiers = _tiers()
    mapping = PlanTierMap()
    mapping.refresh([PricingPlan(name="Pro"), PricingPlan(name="Gold")], tiers)
    assert mapping.as_dict() == {"Pro": "pro", "Gold": "gold"}

    mapping.assign("Pro", "professional", tiers)
    mapping.unassign("Gold")
    mapping.refresh([PricingPlan(name="Pro"), PricingPlan(name="Gold"), PricingPlan(name="Professional")], tiers)

    assert mapping.get("Pro") == "professional"
    assert mapping.get("Gold") is None
    assert mapping.get("Professional") == "professional"
    assert mapping.is_overridden("Pro")
    assert not mapping.is_overridden("Professional")


def test_override_to_deleted_tier_is_dropped_on_refresh():
    tiers = _tiers()
    mapping = PlanTierMap()
    mapping.assign("Pro", "gold", tiers)

    mapping.refresh([PricingPlan(name="Pro")], tiers[:2])

    assert mapping.get("Pro") is None


def test_assign_to_unknown_tier_raises():
    with pytest.raises(PlanMappingError):
        PlanTierMap().assign("Pro", "missing", _tiers())


def test_resolve_launch_tier_reports_unmapped_plan_and_empty_tier():
    funnel = Funnel(id=1, projectId=1, name="Launch", tiers=_tiers())

    assert resolve_launch_tier({"Pro": "pro"}, "Pro", funnel).id == "pro"
    with pytest.raises(PlanLaunchError, match="Enterprise"):
        resolve_launch_tier({"Pro": "pro"}, "Enterprise", funnel)
    with pytest.raises(PlanLaunchError, match="no steps"):
        resolve_launch_tier({"Gold": "gold"}, "Gold", funnel)
    with pytest.raises(PlanLaunchError, match="no longer exists"):
        resolve_launch_tier({"Pro": "deleted"}, "Pro", funnel)


def test_extract_prefers_pricing_page_over_checkout():
    pages = [
        Page(id=1, page_type="checkout", content_json={"plans": [{"name": "Checkout Plan", "price": 9}]}),
        Page(
            id=2,
            page_type="pricing",
            content_json={"pricing": {"plans": [{"title": "Pro", "price": 19.5, "highlighted": True, "features": [{"text": "A"}]}]}},
        ),
    ]

    plans = extract_pricing_plans(pages)

    assert [plan.name for plan in plans] == ["Pro"]
    assert plans[0].price == "$19.5"
    assert plans[0].popular is True
    assert plans[0].features == ["A"]


def test_extract_falls_back_to_checkout_and_skips_nameless_plans():
    pages = [
        Page(id=1, page_type="pricing", content_json={"hero": {}}),
        Page(id=2, page_type="checkout", content_json='{"plans": [{"name": "Basic", "price": "$5"}, {"price": 1}]}'),
    ]

    plans = extract_pricing_plans(pages)

    assert [(plan.name, plan.price, plan.cta) for plan in plans] == [("Basic", "$5", "Choose Plan")]


def test_pricing_plans_for_synthesizes_one_plan_per_tier():
    tiers = _tiers()

    plans = pricing_plans_for([Page(id=1, page_type="index")], tiers)

    assert [plan.name for plan in plans] == ["Professional", "Pro", "Gold Plus"]
    assert plans[0].features == ["Checkout"]
    assert synthesize_plans(()) == []


def test_override_survives_a_reload_that_drops_the_plan():
    tiers = _tiers()
    mapping = PlanTierMap()
    mapping.refresh([PricingPlan(name="Pro")], tiers)
    mapping.assign("Pro", "gold", tiers)

    mapping.refresh([], tiers)
    assert mapping.get("Pro") is None
    assert mapping.is_overridden("Pro")

    mapping.refresh([PricingPlan(name="Pro")], tiers)
    assert mapping.get("Pro") == "gold"


def test_override_to_missing_tier_comes_back_when_the_tier_returns():
    tiers = _tiers()
    mapping = PlanTierMap()
    mapping.assign("Pro", "gold", tiers)

    mapping.refresh([PricingPlan(name="Pro")], tiers[:2])
    assert mapping.get("Pro") is None

    mapping.refresh([PricingPlan(name="Pro")], tiers)
    assert mapping.get("Pro") == "gold"


def test_extract_reduces_object_cta_and_non_scalar_price():
    pages = [
        Page(
            id=1,
            page_type="pricing",
            content_json={
                "plans": [
                    {"name": "Pro", "cta": {"text": "Buy"}, "price": {"amount": 19}},
                    {"name": "Gold", "cta": {"label": " Go gold "}, "features": {"text": "A"}},
                    {"name": "Free", "cta": {"href": "/free"}},
                ]
            },
        )
    ]

    plans = extract_pricing_plans(pages)

    assert [(plan.name, plan.cta, plan.price, plan.features) for plan in plans] == [
        ("Pro", "Buy", "", []),
        ("Gold", "Go gold", "", []),
        ("Free", "Choose Plan", "", []),
    ]


def test_extract_skips_plans_that_fail_validation(monkeypatch, caplog):
    monkeypatch.setattr(PricingPlan, "from_content", classmethod(lambda cls, raw: cls.model_validate(raw)))
    pages = [Page(id=1, page_type="pricing", content_json={"plans": [{"price": 5}, {"name": "Basic"}]})]

    with caplog.at_level("WARNING"):
        plans = extract_pricing_plans(pages)

    assert [plan.name for plan in plans] == ["Basic"]
    assert "plan_mapper.invalid_plan_skipped" in caplog.text
