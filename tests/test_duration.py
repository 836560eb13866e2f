import pytest

from app.services.duration import parse_hours


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1h30", 1.5),
        ("45min", 0.75),
        ("90m", 1.5),
        ("1,30", 1.5),
        ("1:15", 1.25),
        ("2.5", 2.5),
        ("2h", 2.0),
        (" 3 ", 3.0),
    ],
)
def test_parses_common_formats(raw, expected):
    assert parse_hours(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["", "abc", "xyz", "-2", "h30", None])
def test_unparseable_or_negative_is_zero(raw):
    assert parse_hours(raw) == 0


def test_comma_with_out_of_range_minutes_is_a_decimal():
    assert parse_hours("1,75") == pytest.approx(1.75)


def test_colon_with_out_of_range_minutes_does_not_parse():
    assert parse_hours("1:75") == 0


def test_numbers_pass_through():
    assert parse_hours(2) == 2.0
    assert parse_hours(0.5) == 0.5
