import dataclasses

import pytest

from core.budget import allocation_for, analyze_budget, profile_destination


@pytest.mark.parametrize("international", [True, False])
@pytest.mark.parametrize("travel_type", ["budget", "comfort", "luxury"])
def test_allocation_sums_to_one(international, travel_type):
    allocation = allocation_for(international, travel_type)
    assert sum(dataclasses.astuple(allocation)) == pytest.approx(1.0)


def test_shanghai_comfort_breakdown():
    result = analyze_budget(5000, 3, "上海")
    breakdown = result["budget_breakdown"]
    assert breakdown["flight"]["amount"] == 1250
    assert breakdown["flight"]["percentage"] == 25
    assert breakdown["accommodation"]["amount"] == 1500
    assert breakdown["transport"]["amount"] == 400
    assert result["destination_analysis"]["is_international"] is False
    assert result["risk_assessment"]["risk_level"] == "低"
    assert result["cost_comparison"]["budget_category"] == "奢华"


def test_tight_tokyo_budget_is_high_risk():
    result = analyze_budget(3000, 5, "东京")
    assert result["destination_analysis"]["currency"] == "日元"
    assert result["risk_assessment"]["risk_level"] == "高"
    assert "日均预算可能不足，建议增加到¥900以上" in result["risk_assessment"]["warnings"]
    assert any("JR Pass" in tip for tip in result["money_saving_tips"])


def test_unknown_destination_defaults_to_domestic():
    profile = profile_destination("某个小镇")
    assert profile.is_international is False
    assert profile.currency == "人民币"
    assert profile_destination("出国看看").is_international is True


def test_unknown_travel_type_becomes_comfort():
    result = analyze_budget(5000, 3, "上海", travel_type="backpacker")
    assert result["trip_info"]["travel_type"] == "comfort"


def test_per_person_figures():
    result = analyze_budget(6000, 3, "成都", travelers=2)
    assert result["daily_budget"]["per_person"] == 1000
    assert result["budget_breakdown"]["flight"]["per_person"] == pytest.approx(750)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"total_budget": 0, "days": 3, "destination": "上海"},
        {"total_budget": 5000, "days": 0, "destination": "上海"},
        {"total_budget": 5000, "days": 3, "destination": ""},
        {"total_budget": 5000, "days": 3, "destination": "上海", "travelers": 0},
    ],
)
def test_invalid_input_is_rejected(kwargs):
    with pytest.raises(ValueError):
        analyze_budget(**kwargs)
