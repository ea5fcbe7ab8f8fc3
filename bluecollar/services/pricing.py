"""Money and distance helpers shared by bookings, payments and search."""
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple, Union

from bluecollar.config import settings

EARTH_RADIUS_KM = 6371.0
CENTS = Decimal("0.01")

Number = Union[int, float, Decimal, str]


def to_money(value: Number) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def split_commission(amount: Number, rate: Optional[float] = None) -> Tuple[Decimal, Decimal]:
    """Return ``(commission, provider_amount)`` for a booking amount.

    The commission is rounded to cents and the provider gets the remainder,
    so the two parts always add back up to the amount.
    """
    rate = settings.COMMISSION_RATE if rate is None else rate
    total = to_money(amount)
    commission = (total * Decimal(str(rate))).quantize(CENTS, rounding=ROUND_HALF_UP)
    return commission, total - commission


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance_between(lat1, lon1, lat2, lon2) -> Optional[float]:
    # any missing coordinate means "unknown", not zero
    if None in (lat1, lon1, lat2, lon2):
        return None
    return round(haversine_km(lat1, lon1, lat2, lon2), 2)
