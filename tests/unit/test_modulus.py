"""Unit tests for sort code / account number modulus checking"""

import pytest
from payment_gateway.domain.modulus import (
    CHECKSUM_FAILED,
    MALFORMED_IDENTIFIER,
    NO_WEIGHT_TABLE,
    CheckMethod,
    load_weight_tables,
    normalize_account_number,
    normalize_sort_code,
    validate,
)


def test_mod10_valid_account():
    """Weighted sum 180 is divisible by 10"""
    result = validate("089999", "66374958")
    assert result.valid is True
    assert result.indeterminate is False
    assert result.reason is None


def test_mod10_checksum_failure():
    """Changing the last digit moves the weighted sum to 181"""
    result = validate("089999", "66374959")
    assert result.valid is False
    assert result.reason == CHECKSUM_FAILED


def test_mod11_valid_and_invalid():
    assert validate("200000", "12345679").valid is True  # sum 121
    assert validate("200000", "12345678").valid is False  # sum 120


def test_double_alternate_sums_product_digits():
    """DBLAL adds the digits of each product: 5*2=10 contributes 1, not 10"""
    assert validate("300000", "12345678").valid is True  # digit total 40
    assert validate("300000", "12345679").valid is False


def test_every_applicable_table_must_pass():
    """Range 400000-409999 carries both MOD11 and DBLAL rows"""
    assert validate("400000", "00000051").valid is True
    # Passes MOD11 (sum 11) but fails DBLAL (digit total 19)
    result = validate("400000", "00000019")
    assert result.valid is False
    assert result.reason == CHECKSUM_FAILED


def test_unknown_range_is_indeterminate_pass():
    result = validate("990000", "12345678")
    assert result.valid is True
    assert result.indeterminate is True
    assert result.reason == NO_WEIGHT_TABLE


def test_separators_are_stripped():
    assert validate("08-99-99", "6637 4958").valid is True


def test_short_account_numbers_are_zero_padded():
    assert normalize_account_number("374958") == "00374958"
    assert normalize_account_number("1234567") == "01234567"


@pytest.mark.parametrize(
    "sort_code,account_number",
    [
        ("08999", "66374958"),  # sort code too short
        ("0899999", "66374958"),  # sort code too long
        ("08999a", "66374958"),
        ("089999", "12345"),  # account too short
        ("089999", "123456789"),  # account too long
        ("089999", "6637495x"),
        ("", ""),
        (None, "66374958"),
        ("089999", 66374958),
        ("０８９９９９", "66374958"),  # full-width digits
    ],
)
def test_malformed_identifiers(sort_code, account_number):
    """Malformed input fails before any checksum is evaluated"""
    result = validate(sort_code, account_number)
    assert result.valid is False
    assert result.reason == MALFORMED_IDENTIFIER


def test_validate_is_idempotent():
    first = validate("089999", "66374958")
    second = validate("089999", "66374958")
    assert first == second


def test_normalize_sort_code_rejects_non_strings():
    assert normalize_sort_code(89999) is None
    assert normalize_sort_code("08 99 99") == "089999"


def test_load_weight_tables_parses_valacdos_rows():
    lines = [
        "# sort code ranges",
        "",
        "070116 070116 MOD10 0 0 0 0 0 0 7 1 3 7 1 3 7 1",
        "200000 209999 mod11 0 0 0 0 0 0 8 7 6 5 4 3 2 1 5",
    ]

    tables = load_weight_tables(lines)

    assert len(tables) == 2
    assert tables[0].method == CheckMethod.MOD10
    assert tables[0].covers("070116")
    assert not tables[0].covers("070117")
    assert tables[1].method == CheckMethod.MOD11
    assert tables[1].weights == (0, 0, 0, 0, 0, 0, 8, 7, 6, 5, 4, 3, 2, 1)
    assert tables[1].exception == 5


def test_loaded_tables_replace_defaults():
    tables = load_weight_tables(["200000 209999 MOD11 0 0 0 0 0 0 8 7 6 5 4 3 2 1"])
    # 089999 has no row in the loaded set
    assert validate("089999", "66374959", tables).indeterminate is True
    assert validate("200000", "12345679", tables).valid is True


def test_load_weight_tables_rejects_short_rows():
    with pytest.raises(ValueError, match="Line 1"):
        load_weight_tables(["200000 209999 MOD11 0 0 0"])
