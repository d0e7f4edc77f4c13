# =============================================================================
# core/budget.py  —  Travel Budget Analysis
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Splits a total trip budget into categories and grades how realistic it
#   is for the destination.
#
#   1. Destination profile: cost level, domestic vs international, currency
#   2. Allocation ratios: flight 25% (40% international), hotel 30%,
#      food 20%, local transport 8%, activities 12%, emergency 5%;
#      scaled by travel type (budget / comfort / luxury) and normalized
#      back to 100%
#   3. Detailed breakdown, per-day and per-person figures
#   4. Recommendations, risk assessment and money-saving tips
#
# Everything is table-driven and deterministic; no provider is involved.
# =============================================================================

from dataclasses import dataclass

TRAVEL_TYPES = ("budget", "comfort", "luxury")


@dataclass(frozen=True)
class DestinationProfile:
    cost_level: str
    is_international: bool
    currency: str
    exchange_note: str


@dataclass(frozen=True)
class BudgetAllocation:
    flight: float
    hotel: float
    food: float
    transport: float
    activities: float
    emergency: float


_INTERNATIONAL: dict[str, DestinationProfile] = {
    "日本": DestinationProfile("高", True, "日元", "建议准备现金，很多地方不支持信用卡"),
    "韩国": DestinationProfile("中高", True, "韩元", "移动支付发达"),
    "泰国": DestinationProfile("低", True, "泰铢", "现金为主，准备小面额"),
    "新加坡": DestinationProfile("高", True, "新加坡元", "移动支付普及"),
    "美国": DestinationProfile("高", True, "美元", "信用卡为主，准备少量现金"),
    "欧洲": DestinationProfile("高", True, "欧元", "信用卡普及，部分地区需现金"),
    "东京": DestinationProfile("高", True, "日元", "建议准备现金"),
    "大阪": DestinationProfile("高", True, "日元", "建议准备现金"),
    "首尔": DestinationProfile("中高", True, "韩元", "移动支付发达"),
    "曼谷": DestinationProfile("低", True, "泰铢", "现金为主"),
}

_DOMESTIC: dict[str, DestinationProfile] = {
    "北京": DestinationProfile("中高", False, "人民币", "移动支付普及"),
    "上海": DestinationProfile("中高", False, "人民币", "移动支付普及"),
    "深圳": DestinationProfile("中高", False, "人民币", "移动支付普及"),
    "广州": DestinationProfile("中", False, "人民币", "移动支付普及"),
    "成都": DestinationProfile("中", False, "人民币", "移动支付普及"),
    "西安": DestinationProfile("中", False, "人民币", "移动支付普及"),
    "杭州": DestinationProfile("中", False, "人民币", "移动支付普及"),
    "三亚": DestinationProfile("中高", False, "人民币", "旅游城市，价格较高"),
    "丽江": DestinationProfile("中", False, "人民币", "古城区价格较高"),
}

# Daily spend below which a trip to the destination is at risk.
_MIN_DAILY_BUDGETS: dict[str, float] = {
    "日本": 800, "东京": 900,
    "韩国": 600, "首尔": 650,
    "新加坡": 700,
    "美国": 1000,
    "欧洲": 800,
    "泰国": 300, "曼谷": 350,
    "北京": 400, "上海": 450,
    "深圳": 400, "广州": 350,
    "三亚": 500,
}

_INTERNATIONAL_MARKERS = ("国外", "出国", "海外", "境外")


def profile_destination(destination: str) -> DestinationProfile:
    """Look the destination up; unknown places default to a domestic profile."""
    lowered = destination.lower()
    for table in (_INTERNATIONAL, _DOMESTIC):
        for name, profile in table.items():
            if name in lowered:
                return profile
    if any(marker in lowered for marker in _INTERNATIONAL_MARKERS):
        return DestinationProfile("中高", True, "外币", "建议提前兑换外币")
    return DestinationProfile("中", False, "人民币", "移动支付普及")


def allocation_for(is_international: bool, travel_type: str) -> BudgetAllocation:
    flight = 0.40 if is_international else 0.25
    hotel, food, transport, activities, emergency = 0.30, 0.20, 0.08, 0.12, 0.05

    if travel_type == "budget":
        flight *= 0.8
        hotel *= 0.7
        food *= 0.8
        emergency = 0.08
    elif travel_type == "luxury":
        flight *= 0.9
        hotel *= 1.3
        food *= 1.4
        activities *= 1.5
        emergency = 0.03

    total = flight + hotel + food + transport + activities + emergency
    return BudgetAllocation(
        flight=flight / total,
        hotel=hotel / total,
        food=food / total,
        transport=transport / total,
        activities=activities / total,
        emergency=emergency / total,
    )


def _flight_tips(amount: float, is_international: bool) -> list[str]:
    tips = []
    if amount < 1000 and is_international:
        tips += ["建议关注特价机票，提前预订", "考虑中转航班，通常更便宜"]
    elif amount > 3000:
        tips.append("可考虑商务舱或直飞航班")
    tips += ["建议比较不同航空公司价格", "关注行李额度，避免额外费用"]
    return tips


def _hotel_tips(per_night: float, travelers: int) -> list[str]:
    per_person = per_night / travelers
    if per_person < 200:
        return ["建议选择青旅或民宿", "考虑多人间以分担成本"]
    if per_person < 500:
        return ["可选择快捷酒店或中档酒店", "关注位置是否便利"]
    return ["可选择高档酒店", "享受更好的服务和设施"]


def breakdown_budget(
    total_budget: float,
    days: int,
    travelers: int,
    allocation: BudgetAllocation,
    profile: DestinationProfile,
) -> dict:
    person_days = days * travelers
    flight = total_budget * allocation.flight
    hotel = total_budget * allocation.hotel
    food = total_budget * allocation.food
    transport = total_budget * allocation.transport
    activities = total_budget * allocation.activities
    emergency = total_budget * allocation.emergency

    return {
        "flight": {
            "amount": round(flight, 2),
            "percentage": round(allocation.flight * 100),
            "per_person": round(flight / travelers, 2),
            "tips": _flight_tips(flight, profile.is_international),
        },
        "accommodation": {
            "amount": round(hotel, 2),
            "percentage": round(allocation.hotel * 100),
            "per_night": round(hotel / days, 2),
            "per_person_per_night": round(hotel / person_days, 2),
            "tips": _hotel_tips(hotel / days, travelers),
        },
        "food": {
            "amount": round(food, 2),
            "percentage": round(allocation.food * 100),
            "per_day": round(food / days, 2),
            "per_person_per_day": round(food / person_days, 2),
            "meals": {
                "breakfast": round(food * 0.25 / person_days, 2),
                "lunch": round(food * 0.35 / person_days, 2),
                "dinner": round(food * 0.40 / person_days, 2),
            },
        },
        "transport": {
            "amount": round(transport, 2),
            "percentage": round(allocation.transport * 100),
            "per_day": round(transport / days, 2),
            "includes": ["市内交通", "景点间交通", "机场往返"],
        },
        "activities": {
            "amount": round(activities, 2),
            "percentage": round(allocation.activities * 100),
            "per_day": round(activities / days, 2),
            "includes": ["门票", "娱乐项目", "购物", "体验活动"],
        },
        "emergency": {
            "amount": round(emergency, 2),
            "percentage": round(allocation.emergency * 100),
            "purpose": "应急资金，建议单独存放",
        },
    }


def _recommendations(daily: float, travel_type: str, profile: DestinationProfile) -> list[str]:
    if daily < 200:
        tips = ["预算偏紧，建议选择青旅、民宿，多吃当地平价美食"]
    elif daily < 500:
        tips = ["预算适中，可选择舒适型酒店，体验当地特色餐厅"]
    else:
        tips = ["预算充裕，可选择高端酒店，尽情享受当地美食和活动"]

    if profile.is_international:
        tips += ["建议购买旅行保险，预算中应包含保险费用", "关注汇率变动，可考虑分批兑换外币", "预留签证费用（如需要）"]

    if travel_type == "budget":
        tips += ["多使用公共交通，可以更好体验当地文化", "考虑购买城市通票，通常更划算"]
    elif travel_type == "luxury":
        tips += ["可考虑包车服务，更加便利舒适", "建议预订知名餐厅，提前了解消费水平"]
    else:
        tips.append("平衡体验和成本，选择性价比高的项目")
    return tips


def assess_risk(total_budget: float, days: int, destination: str, profile: DestinationProfile) -> dict:
    daily = total_budget / days
    level = "低"
    warnings = []

    for name, minimum in _MIN_DAILY_BUDGETS.items():
        if name in destination and daily < minimum:
            level = "高" if daily < minimum * 0.7 else "中"
            warnings.append(f"日均预算可能不足，建议增加到¥{int(minimum)}以上")
            break

    if profile.is_international and daily < 500:
        level = "中" if level == "低" else level
        warnings.append("国际旅行建议日均预算不低于¥500")
    if days <= 3 and total_budget < 2000:
        warnings.append("短途旅行固定成本占比高，预算可能偏紧")

    if level == "高":
        suggestions = ["考虑延长旅行时间以摊薄成本", "选择更经济的住宿方式", "减少购物和娱乐开支"]
    else:
        suggestions = ["预算分配合理", "可适当增加体验项目"]
    return {"risk_level": level, "warnings": warnings, "suggestions": suggestions}


def money_saving_tips(destination: str) -> list[str]:
    tips = [
        "提前规划行程，避免临时高价预订",
        "下载当地优惠App，寻找折扣信息",
        "选择当地人推荐的餐厅，性价比更高",
        "利用城市旅游卡，景点门票更优惠",
    ]
    if "日本" in destination or "东京" in destination or "大阪" in destination:
        tips.append("购买JR Pass，交通费用可节省30%以上")
    elif "欧洲" in destination:
        tips.append("考虑欧铁通票，多城市旅行更划算")
    return tips


def analyze_budget(
    total_budget: float,
    days: int,
    destination: str,
    travel_type: str = "comfort",
    travelers: int = 1,
    departure_city: str = "上海",
) -> dict:
    """Full budget analysis for one trip.

    Raises:
        ValueError: destination is blank, or days / travelers / budget
            are not positive.
    """
    if not destination or days <= 0 or total_budget <= 0 or travelers <= 0:
        raise ValueError("目的地、天数、人数和总预算必填且有效")
    if travel_type not in TRAVEL_TYPES:
        travel_type = "comfort"

    profile = profile_destination(destination)
    allocation = allocation_for(profile.is_international, travel_type)
    breakdown = breakdown_budget(total_budget, days, travelers, allocation, profile)
    daily_total = total_budget / days
    category = "经济" if daily_total < 300 else "舒适" if daily_total < 600 else "奢华"

    return {
        "trip_info": {
            "destination": destination,
            "departure_city": departure_city,
            "total_budget": total_budget,
            "days": days,
            "travelers": travelers,
            "travel_type": travel_type,
        },
        "destination_analysis": {
            "destination": destination,
            "cost_level": profile.cost_level,
            "is_international": profile.is_international,
            "currency": profile.currency,
            "exchange_rate_note": profile.exchange_note,
        },
        "budget_breakdown": breakdown,
        "daily_budget": {
            "per_person": round(total_budget / (days * travelers), 2),
            "total": round(daily_total, 2),
            "recommended_cash": round((breakdown["food"]["amount"] + breakdown["transport"]["amount"]) * 0.6, 2),
            "emergency_fund": breakdown["emergency"]["amount"],
        },
        "cost_comparison": {
            "budget_category": category,
            "cost_level": profile.cost_level,
            "comparison_note": f"与同类目的地相比，您的预算属于{category}水平",
        },
        "recommendations": _recommendations(daily_total, travel_type, profile),
        "risk_assessment": assess_risk(total_budget, days, destination, profile),
        "money_saving_tips": money_saving_tips(destination),
    }
