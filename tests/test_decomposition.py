from datetime import date

import pytest

from conftest import E2E_REQUEST
from core.decomposition import (
    DEFAULT_PLAN,
    RuleBasedDecomposer,
    TravelRequest,
    extract_budget,
    extract_days,
    extract_destination,
    extract_origin,
    is_complex_request,
)
from core.errors import WorkflowDecompositionFailed


def test_full_planning_request_yields_four_subtasks():
    assert RuleBasedDecomposer().decompose(E2E_REQUEST) == [
        "搜索从北京到上海的机票",
        "查找上海的酒店",
        "规划上海的旅游路线",
        "分析5000元旅行预算",
    ]


def test_metro_hotel_and_sights():
    tasks = RuleBasedDecomposer().decompose("规划去到成都的行程，住地铁站附近的酒店，看看景点")
    assert "查找成都地铁站附近的酒店" in tasks
    assert "规划成都的旅游路线" in tasks
    assert not any("预算" in task for task in tasks)


def test_request_without_travel_keyword_gets_default_plan():
    assert RuleBasedDecomposer().decompose("查一下天气") == DEFAULT_PLAN


@pytest.mark.parametrize(
    "request_text, expected",
    [
        ("帮我比较一下机票价格", ["比较不同航空公司的机票价格"]),
        ("比价：这几家酒店哪个好", ["比较不同酒店的价格和位置"]),
        ("比较两个旅行方案", ["比较旅行方案"]),
    ],
)
def test_comparison_requests(request_text, expected):
    assert RuleBasedDecomposer().decompose(request_text) == expected


@pytest.mark.parametrize("blank", ["", "   ", None])
def test_blank_request_fails(blank):
    with pytest.raises(WorkflowDecompositionFailed):
        RuleBasedDecomposer().decompose(blank)


def test_extractors():
    assert extract_destination(E2E_REQUEST) == "上海"
    assert extract_origin(E2E_REQUEST) == "北京"
    assert extract_budget(E2E_REQUEST) == 5000
    assert extract_budget("大概2000元左右") == 2000
    assert extract_days(E2E_REQUEST) == 3
    assert extract_days("住4晚") == 5
    assert extract_destination("随便走走") is None


def test_travel_request_defaults():
    params = TravelRequest.parse(E2E_REQUEST, today=date(2025, 1, 1))
    assert params.origin == "北京"
    assert params.destination == "上海"
    assert params.budget == 5000
    assert params.days == 3
    assert params.nights == 2
    assert params.departure_date == "2025-01-08"
    assert params.return_date is None


def test_travel_request_explicit_dates():
    params = TravelRequest.parse("从上海到成都，2025-05-01出发，2025-05-04返回")
    assert params.destination == "成都"
    assert params.departure_date == "2025-05-01"
    assert params.return_date == "2025-05-04"


def test_single_day_trip_still_has_one_night():
    assert TravelRequest.parse("去杭州1天").nights == 1


@pytest.mark.parametrize(
    "text, expected",
    [
        (E2E_REQUEST, True),
        ("到杭州旅游，住酒店，预算3000元", True),
        ("现在几点", False),
        ("帮我计算 1200*3", False),
        ("推荐一个旅行目的地", False),
    ],
)
def test_is_complex_request(text, expected):
    assert is_complex_request(text) is expected
