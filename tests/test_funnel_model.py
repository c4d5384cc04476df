from __future__ import annotations

import pytest
from pydantic import ValidationError

from funnel_builder.funnel_model import (
    QUICK_ADD_STEP_TYPES,
    TIER_COLORS,
    Funnel,
    FunnelModelError,
    Step,
    Tier,
    add_step,
    add_tier,
    duplicate_step,
    find_step,
    find_tier,
    funnel_payload,
    link_page,
    new_funnel,
    relabel_step,
    remove_step,
    remove_tier,
    rename_tier,
    set_step_delay,
    slugify,
    step_delay_seconds,
    strip_page_links,
    unique_tier_id,
    unlink_page,
)


def _funnel():
    return new_funnel(funnel_id=1, project_id=7, name="Launch")


def test_add_tier_slugifies_name_and_starts_empty():
    funnel = add_tier(_funnel(), "Gold Plan!")

    tier = funnel.tiers[0]
    assert tier.id == "gold-plan"
    assert tier.name == "Gold Plan!"
    assert tier.steps == ()
    assert tier.color == TIER_COLORS[0]


def test_add_tier_suffixes_taken_ids_and_picks_unused_colors():
    funnel = _funnel()
    for _ in range(3):
        funnel = add_tier(funnel, "Gold")

    assert [tier.id for tier in funnel.tiers] == ["gold", "gold-2", "gold-3"]
    assert [tier.color for tier in funnel.tiers] == list(TIER_COLORS[:3])


def test_add_tier_with_blank_name_returns_same_funnel():
    funnel = _funnel()
    assert add_tier(funnel, "   ") is funnel


def test_slugify_falls_back_for_symbol_only_names():
    assert slugify("***") == "tier"
    assert unique_tier_id("***", {"tier"}) == "tier-2"


def test_rename_and_remove_tier():
    funnel = add_tier(add_tier(_funnel(), "Free"), "Pro")

    renamed = rename_tier(funnel, "pro", "Professional")
    assert find_tier(renamed, "pro").name == "Professional"
    assert rename_tier(renamed, "pro", "Professional") is renamed

    removed = remove_tier(renamed, "free")
    assert [tier.id for tier in removed.tiers] == ["pro"]
    assert remove_tier(removed, "missing") is removed


def test_add_step_uses_catalog_label_and_rejects_unknown_types():
    funnel = add_step(add_tier(_funnel(), "Gold"), "gold", "thankyou")
    step = funnel.tiers[0].steps[0]

    assert step.pageType == "thankyou"
    assert step.label == "Thank You"
    assert step.id.startswith("step-")

    with pytest.raises(FunnelModelError):
        add_step(funnel, "gold", "webinar")


def test_unknown_tier_or_step_leaves_funnel_untouched():
    funnel = add_step(add_tier(_funnel(), "Gold"), "gold", "checkout")
    step_id = funnel.tiers[0].steps[0].id

    assert add_step(funnel, "missing", "checkout") is funnel
    assert remove_step(funnel, "gold", "missing") is funnel
    assert duplicate_step(funnel, "gold", "missing") is funnel
    assert relabel_step(funnel, "missing", step_id, "x") is funnel
    assert unlink_page(funnel, "gold", step_id) is funnel


def test_step_ids_stay_unique_under_mixed_operations():
    funnel = add_tier(_funnel(), "Gold")
    for page_type in ("checkout", "upsell", "register", "thankyou", "custom"):
        funnel = add_step(funnel, "gold", page_type)
    for step in list(funnel.tiers[0].steps):
        funnel = duplicate_step(funnel, "gold", step.id)
    funnel = remove_step(funnel, "gold", funnel.tiers[0].steps[3].id)
    funnel = add_step(funnel, "gold", "checkout")

    ids = [step.id for step in funnel.tiers[0].steps]
    assert len(ids) == 10
    assert len(set(ids)) == len(ids)


def test_duplicate_step_inserts_copy_after_original():
    funnel = add_tier(_funnel(), "Gold")
    funnel = add_step(funnel, "gold", "checkout")
    funnel = add_step(funnel, "gold", "register")
    checkout = funnel.tiers[0].steps[0]
    funnel = set_step_delay(funnel, "gold", checkout.id, 4)

    duplicated = duplicate_step(funnel, "gold", checkout.id)
    steps = duplicated.tiers[0].steps

    assert [step.pageType for step in steps] == ["checkout", "checkout", "register"]
    assert steps[1].label == "Checkout (copy)"
    assert steps[1].id != steps[0].id
    assert steps[1].config == {"autoAdvance": 4}
    assert steps[1].config is not steps[0].config


def test_link_and_unlink_page_keep_title_in_config():
    funnel = add_step(add_tier(_funnel(), "Gold"), "gold", "checkout")
    step_id = funnel.tiers[0].steps[0].id

    linked = link_page(funnel, "gold", step_id, 42, "Pricing")
    step = find_step(linked, "gold", step_id)
    assert step.pageId == 42
    assert step.config["pageTitle"] == "Pricing"

    unlinked = unlink_page(linked, "gold", step_id)
    step = find_step(unlinked, "gold", step_id)
    assert step.pageId is None
    assert "pageTitle" not in step.config
    # The earlier value is untouched.
    assert find_step(linked, "gold", step_id).pageId == 42


def test_step_delay_defaults_and_explicit_values():
    thankyou = Step(id="s1", pageType="thankyou", label="Thank You")
    checkout = Step(id="s2", pageType="checkout", label="Checkout")
    assert step_delay_seconds(thankyou) == 5
    assert step_delay_seconds(checkout) == 0

    funnel = _funnel().model_copy(update={"tiers": (Tier(id="t", name="T", steps=(thankyou, checkout)),)})
    funnel = set_step_delay(funnel, "t", "s1", 0)
    funnel = set_step_delay(funnel, "t", "s2", -3)

    assert step_delay_seconds(find_step(funnel, "t", "s1")) == 0
    assert find_step(funnel, "t", "s2").config == {"autoAdvance": 0}


def test_duplicate_ids_are_rejected_by_validators():
    step = {"id": "same", "pageType": "register", "label": "Register"}
    with pytest.raises(ValidationError):
        Tier.model_validate({"id": "t", "name": "T", "steps": [step, step]})

    tier = {"id": "t", "name": "T", "steps": []}
    with pytest.raises(ValidationError):
        Funnel.model_validate({"id": 1, "projectId": 1, "name": "x", "tiers": [tier, tier]})


def test_models_are_frozen():
    funnel = add_tier(_funnel(), "Gold")
    with pytest.raises(ValidationError):
        funnel.tiers[0].name = "Other"  # type: ignore[misc]


def test_strip_page_links_and_payload_shape():
    funnel = add_step(add_tier(_funnel(), "Gold"), "gold", "checkout")
    step_id = funnel.tiers[0].steps[0].id
    funnel = link_page(funnel, "gold", step_id, 42, "Pricing")

    stripped = strip_page_links(funnel.tiers)
    assert stripped[0].steps[0].pageId is None
    assert stripped[0].steps[0].config == {}

    payload = funnel_payload(funnel)
    assert payload["projectId"] == 7
    assert payload["tiers"][0]["steps"][0]["pageId"] == 42
    assert "createdAt" not in payload


def test_quick_add_offers_the_first_three_step_types():
    assert [info.type for info in QUICK_ADD_STEP_TYPES] == ["checkout", "upsell", "register"]
