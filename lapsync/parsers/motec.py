"""
MoTeC Parsers

Two MoTeC sources are supported:
    - CSV exports from i2 Pro (quoted metadata block, channel/units rows)
    - native .ld binary logs

The .ld layout follows the community reverse-engineered description: a
fixed header whose offset 8 points at a linked list of channel metadata
blocks, each pointing at its own sample array.
"""

import re
import struct
from typing import Dict, List, NamedTuple, Optional

import numpy as np

from .. import constants
from ..exceptions import ParseError
from ..log import get_logger
from ..models import ParsedSession
from .base import SNIFF_CHARS, Content, LogParser, SequenceBuilder, decode_text
from .channel_table import ChannelTableParser, native_g, speed_factor

logger = get_logger(__name__)

# ============================================================================
# MOTEC CSV
# ============================================================================

CSV_INDICATORS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r'^"?sample\s*rate"?',
        r'^"?beacon\s*markers?"?',
        r'^"?log\s*date"?',
        r'^"?log\s*time"?',
        r'^"?device"?\s*,',
        r'^"?driver"?\s*,',
    )
)


class MotecCsvParser(ChannelTableParser):
    name = "MoTeC CSV"

    date_key = "log date"
    time_key = "log time"

    lat_aliases = ("gps latitude", "gps_latitude", "latitude", "lat")
    lon_aliases = ("gps longitude", "gps_longitude", "longitude", "lon", "long")
    speed_aliases = ("ground speed", "gps speed", "speed", "gps_speed")
    heading_aliases = ("gps heading", "gps_heading", "heading", "course", "gps course")
    lat_g_aliases = ("g force lat", "g_force_lat", "lateral g", "lat g", "gy")
    lon_g_aliases = ("g force long", "g_force_long", "longitudinal g", "lon g", "gx")
    channel_aliases = {
        "RPM": ("engine rpm", "rpm", "engine_rpm"),
        "Throttle": ("throttle", "throttle pos", "tps"),
        "Water Temp": ("water temp", "coolant temp", "t_h2o", "engine temp"),
        "Altitude": ("gps altitude", "altitude", "alt"),
    }

    def detect(self, content: Content) -> bool:
        lines = decode_text(content)[:SNIFF_CHARS].splitlines()[:20]
        hits = sum(1 for line in lines for pattern in CSV_INDICATORS if pattern.match(line))
        return hits >= 3


# ============================================================================
# MOTEC LD (BINARY)
# ============================================================================

LD_MARKER = 0x40
LD_HEADER_SIZE = 1594

# prev, next, data_ptr, data_len, counter, dtype_a, dtype_b, freq,
# shift, mul, scale, dec, name, short_name, unit
CHANNEL_META = struct.Struct("<IIIIHHHHhhhh32s8s12s40x")

_FLOAT_TYPES = {2: "<f2", 4: "<f4"}
_INT_TYPES = {2: "<i2", 4: "<i4"}


class LdChannel(NamedTuple):
    name: str
    short_name: str
    unit: str
    freq: int
    data: np.ndarray


def _decode_ascii(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("ascii", errors="replace").strip()


def _read_channel(buffer: bytes, meta_ptr: int):
    (_prev, next_ptr, data_ptr, data_len, _counter, dtype_a, dtype_b, freq,
     shift, mul, scale, dec, name, short_name, unit) = CHANNEL_META.unpack_from(buffer, meta_ptr)

    if dtype_a == 0x07:
        dtype = _FLOAT_TYPES.get(dtype_b)
    elif dtype_a in (0x00, 0x03, 0x05):
        dtype = _INT_TYPES.get(dtype_b)
    else:
        dtype = None

    data = np.array([], dtype=float)
    if dtype is not None and data_ptr < len(buffer):
        itemsize = np.dtype(dtype).itemsize
        count = min(data_len, (len(buffer) - data_ptr) // itemsize)
        raw = np.frombuffer(buffer, dtype=dtype, count=count, offset=data_ptr).astype(float)
        data = (raw / (scale or 1) * 10.0 ** -dec + shift) * (mul or 1)

    channel = LdChannel(
        name=_decode_ascii(name),
        short_name=_decode_ascii(short_name),
        unit=_decode_ascii(unit),
        freq=freq,
        data=data,
    )
    return channel, next_ptr


def read_ld_channels(buffer: bytes) -> List[LdChannel]:
    """Walk the channel metadata list of an .ld file."""
    (meta_ptr,) = struct.unpack_from("<I", buffer, 8)

    channels = []
    visited = set()
    ptr = meta_ptr
    while ptr > 0 and ptr not in visited and ptr + CHANNEL_META.size <= len(buffer):
        visited.add(ptr)
        channel, ptr = _read_channel(buffer, ptr)
        channels.append(channel)
    return channels


class MotecLdParser(LogParser):
    name = "MoTeC LD"
    binary = True

    lat_names = ("gps latitude", "gps_latitude", "latitude", "lat", "gps lat")
    lon_names = ("gps longitude", "gps_longitude", "longitude", "lon", "long", "gps long")
    speed_names = ("ground speed", "gps speed", "speed", "gps_speed")
    heading_names = ("gps heading", "heading", "gps_heading", "course", "gps course")
    channel_names = {
        "RPM": ("engine rpm", "rpm", "engine_rpm"),
        "Throttle": ("throttle", "throttle pos", "tps"),
        "Water Temp": ("water temp", "coolant temp", "engine temp"),
        "Altitude": ("gps altitude", "altitude", "alt"),
        "Lat G (Native)": ("g force lat", "g_force_lat", "lateral g", "lat g"),
        "Lon G (Native)": ("g force long", "g_force_long", "longitudinal g", "lon g"),
    }

    def detect(self, content: Content) -> bool:
        if not isinstance(content, bytes) or len(content) < LD_HEADER_SIZE:
            return False
        return struct.unpack_from("<I", content, 0)[0] == LD_MARKER

    def parse(self, content: Content) -> ParsedSession:
        if not isinstance(content, bytes):
            raise ParseError("binary content required", self.name)

        channels = read_ld_channels(content)
        if not channels:
            raise ParseError("no channels found", self.name)

        by_name: Dict[str, LdChannel] = {}
        for channel in channels:
            if channel.data.size == 0:
                continue
            by_name.setdefault(channel.name.lower(), channel)
            if channel.short_name:
                by_name.setdefault(channel.short_name.lower(), channel)

        def find(names) -> Optional[LdChannel]:
            return next((by_name[n] for n in names if n in by_name), None)

        lat_ch = find(self.lat_names)
        lon_ch = find(self.lon_names)
        if lat_ch is None or lon_ch is None:
            raise ParseError("missing GPS latitude/longitude channels", self.name)

        speed_ch = find(self.speed_names)
        heading_ch = find(self.heading_names)
        extra = {display: find(names) for display, names in self.channel_names.items()}

        base_freq = lat_ch.freq or 10
        n_samples = min(lat_ch.data.size, lon_ch.data.size)
        to_mps = speed_factor(speed_ch.unit if speed_ch is not None else "")
        logger.debug("MoTeC LD: {} channels, {} GPS samples at {} Hz", len(channels), n_samples, base_freq)

        def resample(channel: Optional[LdChannel], i: int) -> float:
            # Nearest neighbour onto the GPS channel's rate
            if channel is None:
                return float("nan")
            src = int(round(i * channel.freq / base_freq))
            if src < 0 or src >= channel.data.size:
                return float("nan")
            return float(channel.data[src])

        builder = SequenceBuilder(self.name)
        for i in range(n_samples):
            channels_at = {display: resample(ch, i) for display, ch in extra.items() if ch is not None}
            for key in ("Lat G (Native)", "Lon G (Native)"):
                value = channels_at.get(key)
                if value is not None and np.isfinite(value):
                    channels_at[key] = native_g(value)

            builder.admit(
                t=i / base_freq * 1000.0,
                lat=float(lat_ch.data[i]),
                lon=float(lon_ch.data[i]),
                speed_mps=resample(speed_ch, i) * to_mps,
                heading=resample(heading_ch, i),
                channels=channels_at,
            )

        return builder.build()
