import asyncio

from conftest import E2E_REQUEST
from core.context import WorkflowContext
from core.models import BudgetResult, ErrorEntry, FlightResult, HotelResult
from tools.enhanced import (
    BudgetAnalyzerAdapter,
    CalculatorAdapter,
    FlightSearchAdapter,
    HotelNearMetroAdapter,
    RoutePlannerAdapter,
    enhanced_tools,
)


def test_adapters_follow_registry_order(registry):
    assert [a.name for a in enhanced_tools(registry)] == [
        "flight_search",
        "hotel_near_metro",
        "route_planner",
        "budget_analyzer",
        "calculator",
        "get_current_time",
    ]


def test_flight_arguments_from_route_in_subtask(registry):
    context = WorkflowContext(E2E_REQUEST)
    arguments = FlightSearchAdapter(registry, "flight_search").build_arguments(context, "搜索从北京到上海的机票")
    assert arguments["origin"] == "北京"
    assert arguments["destination"] == "上海"
    assert "return_date" not in arguments


def test_station_is_taken_from_the_request(registry):
    context = WorkflowContext("去上海玩3天，住在静安寺站附近的酒店")
    arguments = HotelNearMetroAdapter(registry, "hotel_near_metro").build_arguments(context, "查找上海地铁站附近的酒店")
    assert arguments["station"] == "静安寺"


def test_string_override_in_context_wins(registry):
    context = WorkflowContext("去上海玩3天，住在静安寺站附近的酒店")
    context.set("station", "徐家汇")
    arguments = HotelNearMetroAdapter(registry, "hotel_near_metro").build_arguments(context, "查找上海的酒店")
    assert arguments["station"] == "徐家汇"


def test_check_in_follows_flight_departure(registry):
    context = WorkflowContext(E2E_REQUEST)
    context.set("result_flight_search", FlightResult({"query": {"departure_date": "2025-06-01"}, "flights": []}))
    arguments = HotelNearMetroAdapter(registry, "hotel_near_metro").build_arguments(context, "查找上海的酒店")
    assert arguments["city"] == "上海"
    assert arguments["check_in"] == "2025-06-01"
    assert arguments["check_out"] == "2025-06-03"


def test_route_starts_at_first_hotel(registry):
    context = WorkflowContext(E2E_REQUEST)
    context.set("result_hotel_near_metro", HotelResult({
        "station": {"name": "人民广场"},
        "hotels": [{"name": "全季酒店(人民广场店)"}, {"name": "汉庭酒店"}],
    }))
    arguments = RoutePlannerAdapter(registry, "route_planner").build_arguments(context, "规划上海的旅游路线")
    assert arguments["start_location"] == "全季酒店(人民广场店)"
    assert arguments["days"] == 3
    assert arguments["city"] == "上海"
    assert "外滩" in arguments["attractions"]


def test_route_without_hotel_has_no_start(registry):
    context = WorkflowContext(E2E_REQUEST)
    arguments = RoutePlannerAdapter(registry, "route_planner").build_arguments(context, "规划上海的旅游路线")
    assert "start_location" not in arguments


def test_calculator_picks_the_expression(registry):
    context = WorkflowContext("帮我算算")
    arguments = CalculatorAdapter(registry, "calculator").build_arguments(context, "计算 1200*3+500 的结果")
    assert arguments == {"expression": "1200*3+500"}


def test_execute_writes_only_its_own_key(registry):
    context = WorkflowContext(E2E_REQUEST)
    result = asyncio.run(BudgetAnalyzerAdapter(registry, "budget_analyzer").execute(context, "分析5000元旅行预算"))
    assert result.ok
    assert list(context.storage) == ["result_budget_analyzer"]
    entry = context.result_for("budget_analyzer")
    assert isinstance(entry, BudgetResult)
    assert entry.data["trip_info"]["total_budget"] == 5000
    assert entry.data["trip_info"]["departure_city"] == "北京"


def test_failed_tool_is_stored_as_error_entry(registry):
    context = WorkflowContext("帮我计算一下")
    result = asyncio.run(CalculatorAdapter(registry, "calculator").execute(context, "计算"))
    assert not result.ok
    entry = context.result_for("calculator")
    assert isinstance(entry, ErrorEntry)
    assert "缺少必填参数" in entry.error


def test_can_handle(registry):
    cases = [
        (FlightSearchAdapter(registry, "flight_search"), "从广州到成都", "讲个笑话"),
        (HotelNearMetroAdapter(registry, "hotel_near_metro"), "找个宾馆", "搜索机票"),
        (BudgetAnalyzerAdapter(registry, "budget_analyzer"), "这趟要花费多少", "查找酒店"),
        (CalculatorAdapter(registry, "calculator"), "调用 calculator", "查找酒店"),
    ]
    for adapter, matching, other in cases:
        assert adapter.can_handle(matching)
        assert not adapter.can_handle(other)
