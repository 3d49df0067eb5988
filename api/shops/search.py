"""
Public shop search helpers: distance, opening hours and badges.
"""

from __future__ import annotations

import math
from datetime import datetime, time
from typing import Any

EARTH_RADIUS_KM = 6371.0

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

GREAT_DEAL_THRESHOLD = 20


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def _parse_clock(value: str) -> time:
    hours, minutes = value.strip().split(":", 1)
    return time(int(hours), int(minutes))


def is_open_now(opening_hours: dict[str, Any] | None, now: datetime) -> bool | None:
    """
    `opening_hours` looks like {"monday": "09:00-21:00", "sunday": "closed"}.
    Returns None when hours are unknown for the day.
    """
    if not opening_hours:
        return None
    hours = opening_hours.get(WEEKDAYS[now.weekday()])
    if hours is None:
        return None
    hours = str(hours).strip().lower()
    if hours == "closed":
        return False
    if hours in {"24h", "open"}:
        return True

    try:
        start_raw, end_raw = hours.split("-", 1)
        start, end = _parse_clock(start_raw), _parse_clock(end_raw)
    except ValueError:
        return None

    current = now.time().replace(second=0, microsecond=0)
    if start <= end:
        return start <= current <= end
    # Overnight hours, e.g. 18:00-02:00.
    return current >= start or current <= end


def badges(shop: dict[str, Any]) -> list[str]:
    result = []
    if float(shop.get("discount_offered") or 0) >= GREAT_DEAL_THRESHOLD:
        result.append("Great Deals")
    if shop.get("status") == "approved" and shop.get("is_active"):
        result.append("Active")
    return result


def location_terms(location: str | None) -> list[str]:
    """
    "Kochi, Ernakulam" -> ["Kochi, Ernakulam", "Kochi", "Ernakulam"]
    """
    raw = (location or "").strip()
    if not raw:
        return []
    parts = [p.strip() for p in raw.split(",") if p.strip()]
    terms = [raw]
    terms.extend(p for p in parts if p != raw)
    return terms


def decorate(
    shops: list[dict[str, Any]],
    *,
    now: datetime,
    latitude: float | None = None,
    longitude: float | None = None,
    max_distance_km: float | None = None,
) -> list[dict[str, Any]]:
    result = []
    for shop in shops:
        item = dict(shop)
        distance = None
        if latitude is not None and longitude is not None and item.get("latitude") is not None and item.get("longitude") is not None:
            distance = round(haversine_km(latitude, longitude, float(item["latitude"]), float(item["longitude"])), 2)
        if max_distance_km is not None and (distance is None or distance > max_distance_km):
            continue
        item["distance_km"] = distance
        item["is_open_now"] = is_open_now(item.get("opening_hours"), now)
        item["badges"] = badges(item)
        result.append(item)
    return result


def sort_results(shops: list[dict[str, Any]], sort_by: str) -> list[dict[str, Any]]:
    if sort_by == "distance":
        # Shops without coordinates go last.
        return sorted(shops, key=lambda s: (s.get("distance_km") is None, s.get("distance_km") or 0.0, s["name"]))
    if sort_by == "discount":
        return sorted(shops, key=lambda s: (-float(s.get("discount_offered") or 0), s["name"]))
    return sorted(shops, key=lambda s: str(s.get("name") or "").lower())
