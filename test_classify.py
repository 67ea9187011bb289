import pytest

from streamstat.classify import NULL, NUMERIC, TEXT, canonical_number, classify


@pytest.mark.parametrize("raw,value", [("123", 123.0), ("-4.5", -4.5), ("0", 0.0), (" 12 ", 12.0), ("0.25", 0.25)])
def test_canonical_literals_are_numeric(raw, value):
    cell = classify(raw)
    assert cell.kind == NUMERIC
    assert cell.value == value


@pytest.mark.parametrize("raw", ["2020-01-01", "123abc", "007", "1.50", "1e5", "+3", "inf", "NaN", "1_000"])
def test_non_canonical_strings_are_text(raw):
    cell = classify(raw)
    assert cell.kind == TEXT
    assert cell.value == raw


@pytest.mark.parametrize("raw", ["", None, "   ", "\t"])
def test_blank_and_missing_are_null(raw):
    assert classify(raw).kind == NULL


def test_canonical_number_drops_integral_fraction():
    assert canonical_number(5.0) == "5"
    assert canonical_number(-4.5) == "-4.5"
    assert canonical_number(1e22) == "1e+22"


@pytest.mark.parametrize("raw,value", [("1e-7", 1e-7), ("1.5e-7", 1.5e-7), ("-2.5e-10", -2.5e-10), ("1e+22", 1e22)])
def test_exponent_literals_are_numeric(raw, value):
    assert canonical_number(value) == raw
    cell = classify(raw)
    assert cell.kind == NUMERIC
    assert cell.value == value


def test_zero_padded_exponent_is_text():
    assert classify("1e-07").kind == TEXT
