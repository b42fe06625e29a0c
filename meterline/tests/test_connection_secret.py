import pytest

from meterline.features.billing.candidates import is_valid_connection_secret


@pytest.mark.parametrize("value", ["", "   ", "undefined", "null", " null ", None])
def test_placeholder_and_empty_secrets_are_invalid(value):
    assert is_valid_connection_secret(value) is False


@pytest.mark.parametrize("value", ["cs_123", "Null", "undefined-but-real"])
def test_real_secrets_are_valid(value):
    assert is_valid_connection_secret(value) is True
