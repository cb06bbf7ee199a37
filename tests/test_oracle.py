"""Tests for OracleReference construction and the token address table."""

import pytest

from coset.constants import TOKEN_ADDRESSES, Network, PaymentToken
from coset.errors import ConfigurationError
from coset.oracle import OracleReference, is_address, resolve_token_address

ORACLE = "0x" + "ab" * 20
CST_ADDRESS = "0x" + "cd" * 20


class TestIsAddress:
    def test_valid(self) -> None:
        assert is_address(ORACLE) is True

    def test_mixed_case(self) -> None:
        assert is_address("0xAbCdEf0123456789aBcDeF0123456789AbCdEf01") is True

    @pytest.mark.parametrize("value", ["", "0x", "ab" * 20, "0x" + "ab" * 19, "0x" + "zz" * 20])
    def test_invalid(self, value: str) -> None:
        assert is_address(value) is False


class TestResolveTokenAddress:
    def test_builtin_entry(self) -> None:
        address = resolve_token_address(Network.MANTLE, PaymentToken.USDC)
        assert address == TOKEN_ADDRESSES[Network.MANTLE][PaymentToken.USDC]

    def test_missing_entry_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="not supported on mantle"):
            resolve_token_address(Network.MANTLE, PaymentToken.CST)

    def test_override_fills_gap(self) -> None:
        overrides = {"mantle": {"CST": CST_ADDRESS}}
        assert resolve_token_address(Network.MANTLE, PaymentToken.CST, overrides) == CST_ADDRESS

    def test_override_with_bad_address_raises(self) -> None:
        overrides = {"cronos": {"USDC": "nope"}}
        with pytest.raises(ConfigurationError, match="Invalid token address"):
            resolve_token_address(Network.CRONOS, PaymentToken.USDC, overrides)


class TestOracleReference:
    def test_create_from_strings(self) -> None:
        ref = OracleReference.create(ORACLE, "cronos", "USDC")
        assert ref.network is Network.CRONOS
        assert ref.payment_token is PaymentToken.USDC
        assert ref.token_address == TOKEN_ADDRESSES[Network.CRONOS][PaymentToken.USDC]

    def test_invalid_oracle_address(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid oracle address"):
            OracleReference.create("0x1234", Network.MANTLE, PaymentToken.USDC)

    def test_unknown_network(self) -> None:
        with pytest.raises(ConfigurationError, match="Unsupported network"):
            OracleReference.create(ORACLE, "ethereum", PaymentToken.USDC)

    def test_unknown_token(self) -> None:
        with pytest.raises(ConfigurationError, match="Unsupported payment token"):
            OracleReference.create(ORACLE, Network.MANTLE, "DAI")

    def test_unsupported_token_on_network(self) -> None:
        with pytest.raises(ConfigurationError):
            OracleReference.create(ORACLE, Network.MANTLE_TESTNET, PaymentToken.USDC)

    def test_query_params(self) -> None:
        ref = OracleReference.create(ORACLE, Network.MANTLE, PaymentToken.USDC)
        assert ref.query_params() == {"network": "mantle", "oracleAddress": ORACLE}
