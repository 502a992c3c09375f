# core/utils.py
import math
import re
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the database stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_date(value) -> date:
    return value.date() if isinstance(value, datetime) else value


def is_future_date(value, today: date = None) -> bool:
    """True when `value` falls on a day after today (UTC)."""
    today = today or utcnow().date()
    return as_date(value) > today


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round with halves going up, unlike Python's banker's rounding."""
    quant = Decimal(1).scaleb(-ndigits)
    rounded = Decimal(str(value)).quantize(quant, rounding=ROUND_HALF_UP)
    return int(rounded) if ndigits == 0 else float(rounded)


def ceil_div_percent(total: int, percent: int) -> int:
    return math.ceil(total * percent / 100)


# ==========================================================
# ✅ Helper: Generate clean slug
# ==========================================================
def generate_slug(name: str) -> str:
    slug = name.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")[:50] or "workspace"
