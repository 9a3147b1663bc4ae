"""Shared fixtures: synthetic sessions, courses and log files in every format."""

import math
import struct

import numpy as np
import pytest

from lapsync.models import Bounds, Course, LatLon, ParsedSession, Sample, TimingLine

ORIGIN_LAT = 28.4
ORIGIN_LON = -81.4
M_PER_DEG_LAT = 111320.0
M_PER_DEG_LON = M_PER_DEG_LAT * math.cos(math.radians(ORIGIN_LAT))


def to_latlon(x_m, y_m):
    return ORIGIN_LAT + y_m / M_PER_DEG_LAT, ORIGIN_LON + x_m / M_PER_DEG_LON


def square_position(d, side_m):
    """(x, y, heading) at distance d along a counter-clockwise square from its SW corner."""
    d = d % (4 * side_m)
    if d < side_m:
        return d, 0.0, 90.0
    if d < 2 * side_m:
        return side_m, d - side_m, 0.0
    if d < 3 * side_m:
        return 3 * side_m - d, side_m, 270.0
    return 0.0, 4 * side_m - d, 180.0


def make_square_loop(laps=3, side_m=200.0, speed_mps=20.0, hz=10, start_offset_m=55.0, channels=None):
    """Constant-speed loop around a square, 800 m per lap by default (40 s at 20 m/s)."""
    duration_s = laps * 4 * side_m / speed_mps + 5.0
    samples = []
    for i in range(int(duration_s * hz)):
        t_s = i / hz
        x, y, heading = square_position(start_offset_m + speed_mps * t_s, side_m)
        lat, lon = to_latlon(x, y)
        samples.append(Sample(t=t_s * 1000.0, lat=lat, lon=lon, speed_mps=speed_mps,
                              heading=heading, channels=dict(channels or {})))
    return samples


def make_line_samples(speeds, hz=10, heading=90.0):
    """Straight eastward run with the given speed (m/s) per sample."""
    samples = []
    x = 0.0
    for i, speed in enumerate(speeds):
        lat, lon = to_latlon(x, 0.0)
        samples.append(Sample(t=i * 1000.0 / hz, lat=lat, lon=lon, speed_mps=float(speed), heading=heading))
        x += speed / hz
    return samples


def make_session(samples, fields=(), format_name="test"):
    samples = tuple(samples)
    lats = [s.lat for s in samples]
    lons = [s.lon for s in samples]
    return ParsedSession(
        samples=samples,
        fields=tuple(fields),
        bounds=Bounds(min(lats), max(lats), min(lons), max(lons)),
        duration_ms=samples[-1].t,
        format_name=format_name,
    )


def samples_to_csv(samples):
    """Generic columnar log of a sample list, ms timestamps."""
    rows = [f"{s.t:.0f},{s.lat:.8f},{s.lon:.8f},{s.speed_mps:.3f},{s.heading:.1f}" for s in samples]
    return "time_ms,latitude,longitude,speed (m/s),heading\n" + "\n".join(rows) + "\n"


def timing_line_fields(line):
    return {"a_lat": str(line.a.lat), "a_lon": str(line.a.lon), "b_lat": str(line.b.lat), "b_lon": str(line.b.lon)}


def vertical_line(x_m, y_lo, y_hi):
    a_lat, a_lon = to_latlon(x_m, y_lo)
    b_lat, b_lon = to_latlon(x_m, y_hi)
    return TimingLine(a=LatLon(a_lat, a_lon), b=LatLon(b_lat, b_lon))


def horizontal_line(y_m, x_lo, x_hi):
    a_lat, a_lon = to_latlon(x_lo, y_m)
    b_lat, b_lon = to_latlon(x_hi, y_m)
    return TimingLine(a=LatLon(a_lat, a_lon), b=LatLon(b_lat, b_lon))


@pytest.fixture
def square_loop():
    return make_square_loop()


@pytest.fixture
def start_finish():
    """Start/finish across the middle of the bottom edge of the square."""
    return vertical_line(100.0, -10.0, 10.0)


@pytest.fixture
def square_course(start_finish):
    return Course(
        name="Square",
        start_finish=start_finish,
        sector_2=horizontal_line(100.0, 190.0, 210.0),
        sector_3=vertical_line(100.0, 190.0, 210.0),
    )


# ============================================================================
# SAMPLE LOG FILES
# ============================================================================

def _nmea_checksum(body):
    value = 0
    for ch in body:
        value ^= ord(ch)
    return f"{value:02X}"


def _nmea_coord(value, is_lat):
    hemi = ("N" if value >= 0 else "S") if is_lat else ("E" if value >= 0 else "W")
    value = abs(value)
    degrees = int(value)
    minutes = (value - degrees) * 60
    width = 2 if is_lat else 3
    return f"{degrees:0{width}d}{minutes:07.4f}", hemi


def build_nmea_log(samples, start_clock="235959.0", date="150624"):
    """RMC + GGA per sample, starting at an hhmmss clock (wraps past midnight)."""
    base_s = int(start_clock[0:2]) * 3600 + int(start_clock[2:4]) * 60 + float(start_clock[4:])
    lines = []
    for s in samples:
        clock_s = (base_s + s.t / 1000.0) % 86400
        hh, rem = divmod(clock_s, 3600)
        mm, ss = divmod(rem, 60)
        clock = f"{int(hh):02d}{int(mm):02d}{ss:06.3f}"
        lat, lat_h = _nmea_coord(s.lat, True)
        lon, lon_h = _nmea_coord(s.lon, False)
        knots = s.speed_mps / 0.514444
        rmc = f"GPRMC,{clock},A,{lat},{lat_h},{lon},{lon_h},{knots:.2f},{s.heading or 0:.1f},{date},,"
        gga = f"GPGGA,{clock},{lat},{lat_h},{lon},{lon_h},1,09,0.9,12.5,M,0.0,M,,"
        lines.append(f"${gga}*{_nmea_checksum(gga)}")
        lines.append(f"${rmc}*{_nmea_checksum(rmc)}")
    return "\n".join(lines) + "\n"


@pytest.fixture
def vbo_text():
    rows = []
    for i in range(20):
        lat, lon = to_latlon(i * 2.0, 0.0)
        clock = 120000.0 + i * 0.1
        rows.append(f"011 {clock:.2f} {lat:.7f} {lon:.7f} 72.000 090.00 015.20 +0.10 -0.05 123")
    return (
        "File created on 15/06/2024 at 12:00:00\n"
        "[header]\n"
        "satellites\ntime\nlatitude\nlongitude\nvelocity kmh\nheading\nheight\n"
        "[column names]\n"
        "sats time lat long velocity heading height lat-accel long-accel unknown\n"
        "[data]\n" + "\n".join(rows) + "\n"
    )


@pytest.fixture
def alfano_text():
    rows = []
    for i in range(20):
        lat, lon = to_latlon(i * 2.0, 0.0)
        rows.append(f"{i * 0.1:.1f};{lat:.7f};{lon:.7f};72.0;90.0;0.5;-3.0;9000;85")
    return (
        "Driver: Test Driver\n"
        "Track: Test Track\n"
        "Date: 15/06/2024\n"
        "\n"
        "Time;GPS_Latitude;GPS_Longitude;GPS_Speed;GPS_Heading;LatAcc;LonAcc;RPM;Water\n"
        + "\n".join(rows) + "\n"
    )


@pytest.fixture
def dove_text():
    rows = []
    base = 1718452800000
    for i in range(20):
        lat, lon = to_latlon(i * 2.0, 0.0)
        rows.append(f"{base + i * 100},{lat:.7f},{lon:.7f},44.74,10,0.8,12.0,9500,650,82,3")
    return (
        "timestamp,lat,lng,speed_mph,sats,hdop,altitude_m,rpm,exhaust_temp_c,water_temp_c,gear_pos\n"
        + "\n".join(rows) + "\n"
    )


@pytest.fixture
def motec_csv_text():
    rows = []
    for i in range(20):
        lat, lon = to_latlon(i * 2.0, 0.0)
        rows.append(f'"{i * 0.1:.3f}","{lat:.7f}","{lon:.7f}","44.74","90.0","0.20","-0.40","8000","55.5"')
    return (
        '"Format","MoTeC CSV File"\n'
        '"Venue","Test Track"\n'
        '"Device","ADL3"\n'
        '"Log Date","15/06/2024"\n'
        '"Log Time","13:45:10"\n'
        '"Sample Rate","10"\n'
        '"Driver","Test Driver"\n'
        "\n"
        '"Time","GPS Latitude","GPS Longitude","Ground Speed","GPS Heading","G Force Lat","G Force Long",'
        '"Engine RPM","Oil Pressure"\n'
        '"s","deg","deg","mph","deg","G","G","rpm","psi"\n'
        + "\n".join(rows) + "\n"
    )


@pytest.fixture
def aim_csv_text():
    rows = []
    for i in range(20):
        lat, lon = to_latlon(i * 2.0, 0.0)
        rows.append(f'"{i * 0.1:.3f}","{lat:.7f}","{lon:.7f}","72.0","90.0","7.8","11","25.5"')
    return (
        '"Format","AiM CSV File"\n'
        '"Venue","Test Track"\n'
        '"Vehicle","Kart"\n'
        '"Date","15/06/2024"\n'
        '"Time","10:12"\n'
        "\n"
        '"Time","GPS Latitude","GPS Longitude","GPS Speed","GPS Heading","GPS LatAcc","GPS Nsat","Oil Temp"\n'
        '"s","deg","deg","km/h","deg","m/s^2","#","C"\n'
        + "\n".join(rows) + "\n"
    )


@pytest.fixture
def generic_csv_text():
    rows = []
    for i in range(20):
        lat, lon = to_latlon(i * 2.0, 0.0)
        rows.append(f"{i * 100},{lat:.7f},{lon:.7f},20.0,42.5")
    return "time_ms,latitude,longitude,speed (m/s),brake\n" + "\n".join(rows) + "\n"


def build_ld_file(lat_values, lon_values, speed_kmh, freq=10):
    """Minimal .ld binary: header, three float/int channels and their data."""
    meta = struct.Struct("<IIIIHHHHhhhh32s8s12s40x")
    header_size = 1594
    n = len(lat_values)

    lat_data = np.asarray(lat_values, dtype="<f4").tobytes()
    lon_data = np.asarray(lon_values, dtype="<f4").tobytes()
    # Speed stored as int16 tenths of km/h (dec=1)
    speed_data = np.asarray(np.round(np.asarray(speed_kmh) * 10), dtype="<i2").tobytes()

    meta_start = header_size
    metas = []
    data_start = meta_start + 3 * meta.size
    lat_ptr = data_start
    lon_ptr = lat_ptr + len(lat_data)
    speed_ptr = lon_ptr + len(lon_data)

    channels = [
        (lat_ptr, 0x07, 4, 0, 1, 1, 0, b"GPS Latitude", b"Lat", b"deg"),
        (lon_ptr, 0x07, 4, 0, 1, 1, 0, b"GPS Longitude", b"Lon", b"deg"),
        (speed_ptr, 0x03, 2, 0, 1, 1, 1, b"Ground Speed", b"Spd", b"km/h"),
    ]
    for idx, (ptr, dtype_a, dtype_b, shift, mul, scale, dec, name, short, unit) in enumerate(channels):
        this_ptr = meta_start + idx * meta.size
        next_ptr = this_ptr + meta.size if idx < len(channels) - 1 else 0
        prev_ptr = this_ptr - meta.size if idx else 0
        metas.append(meta.pack(prev_ptr, next_ptr, ptr, n, idx, dtype_a, dtype_b, freq,
                               shift, mul, scale, dec, name, short, unit))

    header = bytearray(header_size)
    struct.pack_into("<I", header, 0, 0x40)
    struct.pack_into("<I", header, 8, meta_start)
    return bytes(header) + b"".join(metas) + lat_data + lon_data + speed_data
