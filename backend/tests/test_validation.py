# Overview: Pytest coverage for input parsing and formatting helpers.

from datetime import date
from decimal import Decimal

import pytest

from cashmais.services.auth_service import (
    PasswordValidationError,
    hash_password,
    validate_password_strength,
    verify_password,
)
from cashmais.time_utils import add_months, parse_iso_date, parse_month, to_utc_z
from cashmais.validation import (
    ValidationError,
    clean_digits,
    format_brl,
    format_cnpj,
    format_cpf,
    normalize_cpf,
    parse_cashback_percentage,
    parse_purchase_value,
)


class TestDocuments:

    def test_clean_digits(self):
        assert clean_digits('123.456.789-09') == '12345678909'
        assert clean_digits(None) == ''

    def test_normalize_cpf(self):
        assert normalize_cpf('123.456.789-09') == '12345678909'
        with pytest.raises(ValidationError):
            normalize_cpf('1234567890')

    def test_format(self):
        assert format_cnpj('12345678000190') == '12.345.678/0001-90'
        assert format_cpf('12345678909') == '123.456.789-09'
        assert format_cpf('123') == '123'


class TestMoney:

    @pytest.mark.parametrize('raw, expected', [
        (100, Decimal('100')),
        ('10,50', Decimal('10.50')),
        (' 0.01 ', Decimal('0.01')),
        (19.9, Decimal('19.9')),
        ('10.500', Decimal('10.50')),
    ])
    def test_parse_purchase_value(self, raw, expected):
        assert parse_purchase_value(raw) == expected

    @pytest.mark.parametrize('raw', [0, -1, '0.001', 'NaN', 'Infinity', [], False, '100000000', '10.005', 12.345])
    def test_invalid_purchase_value(self, raw):
        with pytest.raises(ValidationError):
            parse_purchase_value(raw)

    def test_cashback_percentage_bounds(self):
        assert parse_cashback_percentage('20', minimum=1, maximum=20) == Decimal('20')
        with pytest.raises(ValidationError, match='entre 1% e 20%'):
            parse_cashback_percentage(0.99, minimum=1, maximum=20)

    @pytest.mark.parametrize('amount, expected', [
        (Decimal('5'), 'R$ 5,00'),
        (Decimal('0.35'), 'R$ 0,35'),
        (Decimal('2.49975'), 'R$ 2,50'),
        (0.005, 'R$ 0,01'),
    ])
    def test_format_brl(self, amount, expected):
        assert format_brl(amount) == expected


class TestDates:

    def test_parse_iso_date(self):
        assert parse_iso_date('2024-03-05') == date(2024, 3, 5)
        assert parse_iso_date('') is None
        with pytest.raises(ValueError):
            parse_iso_date('2024-02-30')

    def test_parse_month(self):
        assert parse_month('2024-03') == date(2024, 3, 1)
        assert parse_month(None) is None
        with pytest.raises(ValueError):
            parse_month('2024-00')

    def test_add_months_crosses_years(self):
        assert add_months(date(2024, 1, 31), -1) == date(2023, 12, 1)
        assert add_months(date(2023, 11, 15), 3) == date(2024, 2, 1)

    def test_to_utc_z(self):
        from datetime import datetime
        assert to_utc_z(datetime(2024, 3, 5, 12, 30, 0, 999)) == '2024-03-05T12:30:00Z'
        assert to_utc_z(None) is None


class TestPasswords:

    def test_hash_and_verify(self, app):
        hashed = hash_password('segredo123')

        assert hashed != 'segredo123'
        assert verify_password('segredo123', hashed) is True
        assert verify_password('errada', hashed) is False

    def test_verify_rejects_garbage(self):
        assert verify_password('x', 'not-a-bcrypt-hash') is False
        assert verify_password(None, None) is False
        assert verify_password(123, '$2b$04$abcdefghijklmnopqrstuv') is False

    def test_short_password(self, app):
        with pytest.raises(PasswordValidationError):
            validate_password_strength('12345')
        with pytest.raises(PasswordValidationError):
            hash_password('12345')
