"""
Unit tests for number parsing and display formatting.
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from estimator.utils.number_format import parse_decimal, to_decimal, parse_positive_decimal
from estimator.utils.formatters import money, quantity, datetime_display, to_json_value


class TestParseDecimal:
    """Tests for parse_decimal."""

    @pytest.mark.parametrize('raw, expected', [
        ('12', Decimal('12')),
        ('12.5', Decimal('12.5')),
        ('12,5', Decimal('12.5')),
        (' 7 ', Decimal('7')),
        ('1e3', Decimal('1000')),
        (3, Decimal('3')),
        (0.1, Decimal('0.1')),
        (Decimal('2.50'), Decimal('2.50')),
    ])
    def test_valid_numbers(self, raw, expected):
        assert parse_decimal(raw) == expected

    @pytest.mark.parametrize('raw', [None, True, '', 'abc', '1.2.3', 'NaN', float('nan'), float('inf'), [1]])
    def test_invalid_numbers(self, raw):
        with pytest.raises(ValueError):
            parse_decimal(raw)

    def test_to_decimal_default(self):
        assert to_decimal('abc') == Decimal('0')
        assert to_decimal('abc', default=None) is None
        assert to_decimal('4') == Decimal('4')

    def test_parse_positive_decimal_messages(self):
        assert parse_positive_decimal('0.5', 'Price') == Decimal('0.5')

        with pytest.raises(ValueError, match='Price must be a number'):
            parse_positive_decimal('ten', 'Price')
        with pytest.raises(ValueError, match='Price must be greater than zero'):
            parse_positive_decimal(0, 'Price')
        with pytest.raises(ValueError, match='greater than zero'):
            parse_positive_decimal('-1', 'Price')


class TestFormatters:
    """Tests for display helpers."""

    def test_money(self):
        assert money(25) == '25.00'
        assert money(Decimal('1500.5'), 'DT HT') == 'DT HT 1,500.50'
        assert money(Decimal('0.125')) == '0.12'
        assert money(None) == '-'
        assert money('abc') == '-'

    def test_quantity(self):
        assert quantity(Decimal('2.000')) == '2'
        assert quantity(Decimal('2.50')) == '2.5'
        assert quantity(None) == '-'

    def test_datetime_display(self):
        value = datetime(2025, 3, 5, 14, 30, tzinfo=timezone.utc)
        assert datetime_display(value) == 'Mar 5, 2025 14:30'

        shifted = datetime(2025, 3, 5, 16, 30, tzinfo=timezone(timedelta(hours=2)))
        assert datetime_display(shifted) == 'Mar 5, 2025 14:30'

        assert datetime_display(date(2025, 3, 5)) == 'Mar 5, 2025'
        assert datetime_display(None) == 'Unknown date'

    def test_to_json_value(self):
        value = {
            'total_cost': Decimal('25.00'),
            'created_at': datetime(2025, 3, 5, 14, 30, tzinfo=timezone.utc),
            'materials': [{'quantity': Decimal('2.5')}],
            'notes': None,
        }

        assert to_json_value(value) == {
            'total_cost': '25.00',
            'created_at': '2025-03-05T14:30:00+00:00',
            'materials': [{'quantity': '2.5'}],
            'notes': None,
        }
