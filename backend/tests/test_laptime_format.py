import pytest
from motoverse.services.laptime import (
    InvalidLapTime, format_lap_time, format_gap, parse_lap_time, lap_time_from_components,
)

@pytest.mark.parametrize("ms,text", [
    (95320, "1:35.320"),
    (59999, "0:59.999"),
    (60000, "1:00.000"),
    (1, "0:00.001"),
    (3_725_004, "62:05.004"),
])
def test_format_lap_time(ms, text):
    assert format_lap_time(ms) == text
    assert parse_lap_time(text) == ms

def test_round_trip_over_a_range():
    for ms in range(1, 400_000, 997):
        assert parse_lap_time(format_lap_time(ms)) == ms

def test_gap_format():
    assert format_gap(1680) == "+1.680"
    assert format_gap(12) == "+0.012"
    assert format_gap(61_000) == "+1:01.000"
    assert parse_lap_time(format_gap(1680)) == 1680
    assert parse_lap_time(format_gap(61_000)) == 61_000

@pytest.mark.parametrize("text", ["", "1:35", "1:5.320", "1:60.000", "abc", "1:35.32", "-1:35.320", "75.000"])
def test_parse_rejects_malformed(text):
    with pytest.raises(InvalidLapTime):
        parse_lap_time(text)

def test_components():
    assert lap_time_from_components(1, 35, 320) == 95320
    assert lap_time_from_components(None, 59, None) == 59000
    with pytest.raises(InvalidLapTime):
        lap_time_from_components(1, 60, 0)
    with pytest.raises(InvalidLapTime):
        lap_time_from_components(1, 0, 1000)
    with pytest.raises(InvalidLapTime):
        lap_time_from_components(0, 0, 0)
    with pytest.raises(InvalidLapTime):
        lap_time_from_components(-1, 10, 0)
