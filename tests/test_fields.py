"""Tests for canonical channel names."""

from lapsync.fields import canonical_field_id, field_aliases, is_field_hidden, visible_fields


def test_aliases_share_canonical_id():
    assert canonical_field_id("Sats") == "satellites"
    assert canonical_field_id("NumSats") == "satellites"
    assert canonical_field_id("satellites") == "satellites"
    assert canonical_field_id("Lat G (Native)") == "lat_g"


def test_unknown_field():
    assert canonical_field_id("Oil Pressure") is None
    assert not is_field_hidden("Oil Pressure", ["satellites"])


def test_hidden_across_formats():
    fields = ["Lat G", "Lon G", "Sats", "RPM", "Oil Pressure"]
    assert visible_fields(fields, ["satellites", "lat_g"]) == ["Lon G", "RPM", "Oil Pressure"]
    assert visible_fields(fields, []) == fields


def test_field_aliases():
    assert "TPS" in field_aliases("throttle")
    assert field_aliases("nothing") == []
