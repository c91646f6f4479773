import pytest

from studio_pricing.formatting import format_currency, format_timeline


@pytest.mark.parametrize(
    "amount, expected",
    [
        (20000, "$20,000"),
        (8660.4, "$8,660"),
        (1234.6, "$1,235"),
        (0, "$0"),
        (-50, "-$50"),
        (float("nan"), "$0"),
        ("N/A", "N/A"),
    ],
)
def test_format_currency(amount, expected):
    assert format_currency(amount) == expected


def test_format_currency_symbol():
    assert format_currency(1500, currency_symbol="€") == "€1,500"


@pytest.mark.parametrize(
    "weeks, expected",
    [
        (0, "0 weeks"),
        (1, "1 week"),
        (5, "5 weeks"),
        (8, "1 month 4 weeks"),
        (10, "2 months 1 week"),
        (13, "3 months"),
        (52, "1 year"),
        (53, "1 year 1 week"),
        (60, "1 year 8 weeks"),
        (104, "2 years"),
    ],
)
def test_format_timeline(weeks, expected):
    assert format_timeline(weeks) == expected
