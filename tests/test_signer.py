"""Tests for the eth-account payment signer."""

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data

from coset.errors import ConfigurationError, SignatureError
from coset.signer import LocalAccountSigner, PaymentSigner

# Well-known development key (Hardhat/Anvil account #0).
DEV_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
DEV_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


def _typed_data() -> dict:
    return {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "Ping": [{"name": "value", "type": "uint256"}],
        },
        "primaryType": "Ping",
        "domain": {
            "name": "USD Coin",
            "version": "2",
            "chainId": 25,
            "verifyingContract": "0xc21223249CA28397B4B6541dfFaEcC539BfF0c59",
        },
        "message": {"value": 7},
    }


class TestLocalAccountSigner:
    def test_address_derived_from_key(self) -> None:
        assert LocalAccountSigner(DEV_KEY).address == DEV_ADDRESS

    def test_key_without_prefix(self) -> None:
        assert LocalAccountSigner(DEV_KEY[2:]).address == DEV_ADDRESS

    def test_invalid_key(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid private key"):
            LocalAccountSigner("0x1234")

    def test_repr_hides_key(self) -> None:
        text = repr(LocalAccountSigner(DEV_KEY))
        assert DEV_ADDRESS in text
        assert DEV_KEY[2:] not in text

    def test_satisfies_protocol(self) -> None:
        assert isinstance(LocalAccountSigner(DEV_KEY), PaymentSigner)

    @pytest.mark.asyncio
    async def test_signature_recovers_to_signer(self) -> None:
        signer = LocalAccountSigner(DEV_KEY)
        typed = _typed_data()
        signature = await signer.sign_typed_data(typed)
        assert signature.startswith("0x")
        assert len(signature) == 2 + 65 * 2
        recovered = Account.recover_message(
            encode_typed_data(full_message=typed), signature=signature
        )
        assert recovered == DEV_ADDRESS

    @pytest.mark.asyncio
    async def test_malformed_typed_data_raises_signature_error(self) -> None:
        signer = LocalAccountSigner(DEV_KEY)
        with pytest.raises(SignatureError):
            await signer.sign_typed_data({"types": {}, "message": {}})
