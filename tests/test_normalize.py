"""Tests de normalisation."""

from concordimmo.normalize import clean_float, clean_int, clean_str, norm_document, norm_text


def test_norm_text_basic() -> None:
    # Espaces multiples → espace simple, lower, strip
    assert norm_text("  Rua   Augusta  ") == "rua augusta"


def test_norm_text_lower_strip() -> None:
    assert norm_text("  ABC  ", lower=True, strip=True) == "abc"
    assert norm_text("  ABC  ", lower=False, strip=True) == "ABC"


def test_norm_text_whitespace() -> None:
    assert norm_text("a\t\n  b") == "a b"
    assert norm_text("  ") == ""


def test_norm_text_remove_diacritics() -> None:
    assert norm_text("São João", remove_diacritics=True) == "sao joao"


def test_norm_text_none_nan() -> None:
    assert norm_text(None) == ""
    assert norm_text(float("nan")) == ""


def test_norm_document_digits_only() -> None:
    assert norm_document("123.456.789-09") == "12345678909"
    assert norm_document("12.345.678/0001-95") == "12345678000195"
    assert norm_document(None) == ""


def test_clean_str() -> None:
    assert clean_str("  abc ") == "abc"
    assert clean_str("   ") is None
    assert clean_str(None) is None
    assert clean_str(float("nan")) is None


def test_clean_float_accepts_decimal_comma() -> None:
    assert clean_float("120,5") == 120.5
    assert clean_float("120.5") == 120.5
    assert clean_float(200) == 200.0


def test_clean_float_malformed_is_none() -> None:
    assert clean_float("abc") is None
    assert clean_float("") is None
    assert clean_float(None) is None
    assert clean_float(True) is None
    assert clean_float("inf") is None


def test_clean_int() -> None:
    assert clean_int("3") == 3
    assert clean_int(2.0) == 2
    assert clean_int("x") is None
