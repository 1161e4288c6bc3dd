"""
Derived statistics for the admin dashboard.

Everything here is a pure function over already-loaded documents: plan
normalization, subscription remaining days, platform-wide dashboard
counters with monthly series, and per-business revenue/profit/loss windows.
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from models import PaymentStatus, ProductStatus, SubscriptionPlan, UserRole
from timezone_utils import local_now, start_of_day, start_of_week, start_of_year, to_local

MS_PER_DAY = 86400000
EXPIRY_WARNING_DAYS = 7
GROWTH_BUCKETS = 6

_PLAN_SYNONYMS = {
    "month": SubscriptionPlan.MONTHLY.value,
    "monthly": SubscriptionPlan.MONTHLY.value,
    "year": SubscriptionPlan.ANNUALLY.value,
    "yearly": SubscriptionPlan.ANNUALLY.value,
    "annually": SubscriptionPlan.ANNUALLY.value,
    "forever": SubscriptionPlan.FOREVER.value,
}

# First non-empty field wins
PRODUCT_DATE_FIELDS = ("soldDate", "updatedAt", "addedDate")
PRODUCT_COST_FIELDS = ("costPrice", "costPricePerUnit", "unitCost")
PRODUCT_PRICE_FIELDS = ("sellingPrice", "sellPrice")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Read a stored timestamp.

    Accepts datetimes, ISO-8601 strings (a trailing 'Z' included), epoch
    milliseconds and {seconds, nanoseconds} maps. Returns None for anything
    missing or unreadable.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        if isinstance(value, dict) and "seconds" in value:
            seconds = value.get("seconds") or 0
            nanos = value.get("nanoseconds") or 0
            return datetime.fromtimestamp(seconds + nanos / 1e9, tz=timezone.utc)
    except (OverflowError, OSError, ValueError, TypeError):
        # Out-of-range epoch, NaN, or non-numeric seconds
        return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


def to_number(value: Any) -> float:
    """Numeric value of a stored amount; anything non-numeric counts as 0"""
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return number


def _first_present(doc: Dict[str, Any], fields: Iterable[str]) -> Any:
    for field in fields:
        value = doc.get(field)
        if value not in (None, ""):
            return value
    return None


# =============================================================================
# PLANS & SUBSCRIPTIONS
# =============================================================================

def normalize_plan(value: Optional[str]) -> str:
    """
    Map a free-text plan onto free | monthly | annually | forever.
    Unknown non-empty values are returned lower-cased.
    """
    plan = (value or "").strip().lower()
    if not plan:
        return SubscriptionPlan.FREE.value
    return _PLAN_SYNONYMS.get(plan, plan)


def resolve_plan(doc: Dict[str, Any]) -> str:
    """Normalized plan of a document: top-level `plan`, else `subscription.plan`"""
    subscription = doc.get("subscription") or {}
    raw = doc.get("plan") or (subscription.get("plan") if isinstance(subscription, dict) else None)
    return normalize_plan(raw)


def calculate_remaining_days(end_date: Any, now: Optional[datetime] = None) -> Optional[int]:
    """
    Whole days until `end_date`, rounded up. Negative once expired.
    None when there is no usable end date.
    """
    end = parse_timestamp(end_date)
    if end is None:
        return None

    now = now or datetime.now(timezone.utc)
    # Naive values are read as UTC on the server
    if end.tzinfo is None:
        end = end.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    delta_ms = (end - now).total_seconds() * 1000
    return math.ceil(delta_ms / MS_PER_DAY)


def is_expiring_soon(remaining_days: Optional[int]) -> bool:
    return remaining_days is not None and remaining_days <= EXPIRY_WARNING_DAYS


# =============================================================================
# DASHBOARD STATISTICS
# =============================================================================

def _month_key(value: Any, now: datetime, tz_name: str) -> str:
    moment = parse_timestamp(value)
    if moment is None:
        # Undated documents count as created now
        moment = now
    moment = to_local(moment, tz_name)
    return f"{moment.year}-{moment.month:02d}"


def monthly_series(
    docs: Iterable[Dict[str, Any]],
    value_of,
    now: datetime,
    tz_name: str = "UTC",
    date_field: str = "createdAt",
    buckets: int = GROWTH_BUCKETS
) -> List[Dict[str, Any]]:
    """Sum `value_of(doc)` per YYYY-MM of `date_field`; last `buckets` months, oldest first"""
    totals: Dict[str, float] = {}
    for doc in docs:
        key = _month_key(doc.get(date_field), now, tz_name)
        totals[key] = totals.get(key, 0) + value_of(doc)

    ordered = sorted(totals.items(), key=lambda item: item[0])
    return [{"name": name, "value": value} for name, value in ordered][-buckets:]


def compute_dashboard_stats(
    businesses: List[Dict[str, Any]],
    users: List[Dict[str, Any]],
    payments: List[Dict[str, Any]],
    now: Optional[datetime] = None,
    tz_name: str = "UTC"
) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)

    by_plan = {plan.value: 0 for plan in SubscriptionPlan}
    for business in businesses:
        plan = resolve_plan(business)
        if plan in by_plan:
            by_plan[plan] += 1

    active_businesses = sum(1 for b in businesses if b.get("isActive"))
    business_stats = {
        "total": len(businesses),
        "active": active_businesses,
        "inactive": len(businesses) - active_businesses,
        "byPlan": by_plan,
    }

    active_users = sum(1 for u in users if u.get("isActive"))
    user_stats = {
        "total": len(users),
        "active": active_users,
        "inactive": len(users) - active_users,
        "admin": sum(1 for u in users if u.get("role") == UserRole.ADMIN.value),
        "staff": sum(1 for u in users if u.get("role") == UserRole.STAFF.value),
    }

    def with_status(status: PaymentStatus):
        return [p for p in payments if p.get("status") == status.value]

    approved = with_status(PaymentStatus.APPROVED)
    payment_stats = {
        "total": len(payments),
        "pending": len(with_status(PaymentStatus.PENDING)),
        "approved": len(approved),
        "rejected": len(with_status(PaymentStatus.REJECTED)),
        "revenue": sum(to_number(p.get("amount")) for p in approved),
    }

    return {
        "businessStats": business_stats,
        "userStats": user_stats,
        "paymentStats": payment_stats,
        "businessGrowthData": monthly_series(businesses, lambda _: 1, now, tz_name),
        "paymentsGrowthData": monthly_series(
            payments, lambda p: to_number(p.get("amount")), now, tz_name
        ),
    }


# =============================================================================
# PER-BUSINESS FINANCIAL PERIODS
# =============================================================================

def _empty_totals() -> Dict[str, float]:
    return {"revenue": 0, "profit": 0, "loss": 0}


def compute_financial_periods(
    products: Iterable[Dict[str, Any]],
    now: Optional[datetime] = None,
    tz_name: str = "UTC"
) -> Dict[str, Dict[str, float]]:
    """
    Revenue, profit and loss for today, this week and this year.

    Sold items add `sellingPrice * quantity` to revenue and
    `(sellingPrice - costPrice) * quantity` to profit; deleted items add
    `costPrice * quantity` to loss. The windows overlap: an item sold today
    is counted in all three.
    """
    current = local_now(tz_name, now)
    windows = {
        "today": start_of_day(current),
        "week": start_of_week(current),
        "year": start_of_year(current),
    }
    totals = {name: _empty_totals() for name in windows}

    for product in products:
        status = product.get("status")
        if status not in (ProductStatus.SOLD.value, ProductStatus.DELETED.value):
            continue

        moment = parse_timestamp(_first_present(product, PRODUCT_DATE_FIELDS))
        if moment is None:
            continue
        moment = to_local(moment, tz_name)

        quantity = to_number(product.get("quantity"))
        cost = to_number(_first_present(product, PRODUCT_COST_FIELDS))
        price = to_number(_first_present(product, PRODUCT_PRICE_FIELDS))

        for name, start in windows.items():
            if not (start <= moment <= current):
                continue
            bucket = totals[name]
            if status == ProductStatus.SOLD.value:
                bucket["revenue"] += price * quantity
                bucket["profit"] += (price - cost) * quantity
            else:
                bucket["loss"] += cost * quantity

    return totals
