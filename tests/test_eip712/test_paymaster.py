"""
Paymaster Codec Test Suite

Tests for ``IPaymasterFlow`` input encoding, decoding and validation.

Usage:
    pytest tests/test_eip712/test_paymaster.py -v
"""

import pytest
from eth_abi import decode

from test_mocks import MOCK_PAYMASTER_ADDRESS, MOCK_TOKEN_ADDRESS

from zksync_signer.engine.exceptions import EncodingError
from zksync_signer.eip712.paymaster import (
    APPROVAL_BASED_SELECTOR,
    GENERAL_SELECTOR,
    ApprovalBasedPaymasterInput,
    GeneralPaymasterInput,
    decode_paymaster_input,
    get_approval_based_paymaster_input,
    get_general_paymaster_input,
    get_paymaster_flow_abi,
    get_paymaster_params,
)
from zksync_signer.eip712.schemas import PaymasterParams

GENERAL_EMPTY_INPUT = (
    "8c5a3445"
    "0000000000000000000000000000000000000000000000000000000000000020"
    "0000000000000000000000000000000000000000000000000000000000000000"
)


class TestSelectors:
    """Test the flow function selectors."""

    def test_general_selector(self):
        assert GENERAL_SELECTOR.hex() == "8c5a3445"

    def test_approval_based_selector(self):
        assert APPROVAL_BASED_SELECTOR.hex() == "949431dc"

    def test_flow_abi_lists_both_functions(self):
        assert [entry["name"] for entry in get_paymaster_flow_abi()] == ["general", "approvalBased"]


class TestGeneralInput:
    """Test ``general(bytes)`` encoding."""

    def test_empty_inner_input(self):
        """Test the encoding of an empty general flow."""
        encoded = get_general_paymaster_input({"type": "General", "innerInput": b""})
        assert encoded.hex() == GENERAL_EMPTY_INPUT

    def test_inner_input_round_trip(self):
        """Test that the inner input is ABI-encoded as ``bytes``."""
        encoded = get_general_paymaster_input(GeneralPaymasterInput(innerInput="0xdeadbeef"))
        assert encoded[:4] == GENERAL_SELECTOR
        assert decode(["bytes"], encoded[4:]) == (bytes.fromhex("deadbeef"),)

    def test_wrong_variant(self):
        """Test that an approval-based input is rejected by the general encoder."""
        with pytest.raises(EncodingError):
            get_general_paymaster_input({
                "type": "ApprovalBased",
                "token": MOCK_TOKEN_ADDRESS,
                "minimalAllowance": 1,
            })


class TestApprovalBasedInput:
    """Test ``approvalBased(address,uint256,bytes)`` encoding."""

    def test_encoding(self):
        """Test the selector and argument encoding."""
        encoded = get_approval_based_paymaster_input({
            "type": "ApprovalBased",
            "token": MOCK_TOKEN_ADDRESS,
            "minimalAllowance": 1,
            "innerInput": b"",
        })
        assert encoded[:4] == APPROVAL_BASED_SELECTOR
        token, allowance, inner = decode(["address", "uint256", "bytes"], encoded[4:])
        assert token.lower() == MOCK_TOKEN_ADDRESS.lower()
        assert allowance == 1
        assert inner == b""

    def test_snake_case_fields(self):
        """Test that snake_case field names are accepted."""
        by_alias = ApprovalBasedPaymasterInput(token=MOCK_TOKEN_ADDRESS, minimalAllowance=5)
        by_name = ApprovalBasedPaymasterInput(token=MOCK_TOKEN_ADDRESS, minimal_allowance=5)
        assert get_approval_based_paymaster_input(by_alias) == get_approval_based_paymaster_input(by_name)

    def test_invalid_token(self):
        """Test that a malformed token address raises EncodingError."""
        with pytest.raises(EncodingError):
            get_approval_based_paymaster_input({
                "type": "ApprovalBased", "token": "0x1234", "minimalAllowance": 1,
            })

    def test_negative_allowance(self):
        """Test that allowances outside uint256 raise EncodingError."""
        with pytest.raises(EncodingError):
            get_approval_based_paymaster_input({
                "type": "ApprovalBased", "token": MOCK_TOKEN_ADDRESS, "minimalAllowance": -1,
            })


class TestPaymasterParams:
    """Test ``get_paymaster_params`` dispatch and validation."""

    def test_general_params(self):
        """Test params for the general flow."""
        params = get_paymaster_params(MOCK_PAYMASTER_ADDRESS, {"type": "General", "innerInput": "0x"})
        assert isinstance(params, PaymasterParams)
        assert params.paymaster.lower() == MOCK_PAYMASTER_ADDRESS.lower()
        assert params.paymaster_input.hex() == GENERAL_EMPTY_INPUT

    def test_approval_based_params(self):
        """Test params for the approval-based flow."""
        params = get_paymaster_params(MOCK_PAYMASTER_ADDRESS, {
            "type": "ApprovalBased",
            "token": MOCK_TOKEN_ADDRESS,
            "minimalAllowance": 1,
            "innerInput": b"",
        })
        assert params.paymaster_input[:4] == APPROVAL_BASED_SELECTOR

    def test_unknown_type(self):
        """Test that an unknown flow type raises EncodingError."""
        with pytest.raises(EncodingError):
            get_paymaster_params(MOCK_PAYMASTER_ADDRESS, {"type": "Sponsored"})

    def test_missing_type(self):
        """Test that the discriminator is required."""
        with pytest.raises(EncodingError):
            get_paymaster_params(MOCK_PAYMASTER_ADDRESS, {"innerInput": "0x"})

    def test_invalid_paymaster_address(self):
        """Test that the paymaster must be a valid address."""
        with pytest.raises(EncodingError):
            get_paymaster_params("0xnot-an-address", {"type": "General"})

    def test_params_are_immutable(self):
        """Test that the returned params cannot be modified."""
        params = get_paymaster_params(MOCK_PAYMASTER_ADDRESS, {"type": "General"})
        with pytest.raises(Exception):
            params.paymaster = MOCK_TOKEN_ADDRESS


class TestDecodePaymasterInput:
    """Test decoding ``paymasterInput`` bytes back into inputs."""

    def test_general_round_trip(self):
        original = GeneralPaymasterInput(innerInput=b"\x01\x02\x03")
        assert decode_paymaster_input(get_general_paymaster_input(original)) == original

    def test_approval_based_round_trip(self):
        original = ApprovalBasedPaymasterInput(
            token=MOCK_TOKEN_ADDRESS, minimalAllowance=10 ** 18, innerInput=b"\xff"
        )
        decoded = decode_paymaster_input(get_approval_based_paymaster_input(original))
        assert decoded == original

    def test_hex_input(self):
        assert decode_paymaster_input("0x" + GENERAL_EMPTY_INPUT) == GeneralPaymasterInput()

    def test_unknown_selector(self):
        with pytest.raises(EncodingError, match="selector"):
            decode_paymaster_input(bytes.fromhex("deadbeef") + bytes(64))

    def test_truncated_payload(self):
        with pytest.raises(EncodingError):
            decode_paymaster_input(GENERAL_SELECTOR + bytes(8))
