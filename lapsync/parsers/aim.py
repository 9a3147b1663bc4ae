"""AiM RaceStudio CSV export parser."""

import re

from .base import SNIFF_CHARS, Content, decode_text
from .channel_table import ChannelTableParser

_AIM_FORMAT = re.compile(r'^"?format"?\s*[,;]\s*"?aim', re.IGNORECASE | re.MULTILINE)


class AimCsvParser(ChannelTableParser):
    name = "AiM CSV"

    lat_aliases = ("gps latitude", "latitude", "lat")
    lon_aliases = ("gps longitude", "longitude", "lon")
    speed_aliases = ("gps speed", "speed")
    heading_aliases = ("gps heading", "heading")
    lat_g_aliases = ("gps latacc", "lateral acc", "latacc")
    lon_g_aliases = ("gps lonacc", "inline acc", "lonacc")
    channel_aliases = {
        "Satellites": ("gps nsat", "nsat"),
        "Altitude (m)": ("gps altitude", "altitude"),
        "RPM": ("rpm", "engine rpm"),
        "Water Temp": ("water temp", "water temperature"),
        "Distance": ("distance on gps speed", "distance"),
    }

    def detect(self, content: Content) -> bool:
        head = decode_text(content)[:SNIFF_CHARS]
        return _AIM_FORMAT.search(head) is not None or "racestudio" in head.lower()
