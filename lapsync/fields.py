"""
Canonical Channel Names

Different loggers name the same auxiliary channel differently ("Sats",
"Satellites", "NumSats"). This module maps every known spelling to one
canonical id so settings such as hidden channels apply across formats.
"""

from typing import Dict, Iterable, List, Optional

FIELD_ALIASES: Dict[str, List[str]] = {
    "altitude": ["Altitude (m)", "Altitude", "Alt"],
    "satellites": ["Satellites", "Sats", "NumSats"],
    "hdop": ["HDOP", "Hdop"],
    "lat_g": ["Lat G", "Lat G (Native)", "Lateral G", "LatG"],
    "lon_g": ["Lon G", "Lon G (Native)", "Longitudinal G", "LonG"],
    "rpm": ["RPM", "Rpm"],
    "water_temp": ["Water Temp", "Water Temperature", "Coolant Temp"],
    "egt": ["EGT", "Exhaust Temp"],
    "throttle": ["Throttle", "TPS", "Throttle Position"],
    "brake": ["Brake", "Brake Pressure"],
}

_NAME_TO_CANONICAL: Dict[str, str] = {
    alias.lower(): canonical
    for canonical, aliases in FIELD_ALIASES.items()
    for alias in aliases
}


def canonical_field_id(field_name: str) -> Optional[str]:
    """Return the canonical id for a channel name, or None if it has none."""
    return _NAME_TO_CANONICAL.get(field_name.lower())


def is_field_hidden(field_name: str, hidden_canonical_ids: Iterable[str]) -> bool:
    canonical = canonical_field_id(field_name)
    if canonical is None:
        return False
    return canonical in set(hidden_canonical_ids)


def field_aliases(canonical_id: str) -> List[str]:
    return list(FIELD_ALIASES.get(canonical_id, []))


def visible_fields(field_names: Iterable[str], hidden_canonical_ids: Iterable[str]) -> List[str]:
    """Filter a session's channel list down to the ones not hidden by setting."""
    hidden = set(hidden_canonical_ids)
    return [name for name in field_names if not is_field_hidden(name, hidden)]
