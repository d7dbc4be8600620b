"""
Smart Account Test Suite

Tests for ``SmartAccount`` and raw transaction serialisation:
- Message and typed-data signing through single- and multi-key strategies
- End-to-end populate / sign / serialise of EIP-712 transactions
- Provider binding and configuration errors

Usage:
    pytest tests/test_eip712/test_accounts.py -v
"""

import pytest
import rlp

from test_mocks import (
    MOCK_ADDRESS_1,
    MOCK_ADDRESS_2,
    MOCK_CHAIN_ID_LOCAL,
    MOCK_GAS_LIMIT,
    MOCK_MAX_FEE_PER_GAS,
    MOCK_MESSAGE,
    MOCK_MESSAGE_SIGNATURE_1,
    MOCK_MESSAGE_SIGNATURE_2,
    MOCK_NONCE,
    MOCK_PAYMASTER_ADDRESS,
    MOCK_PERSON_DOMAIN,
    MOCK_PERSON_SIGNATURE_1,
    MOCK_PERSON_SIGNATURE_2,
    MOCK_PERSON_TYPES,
    MOCK_PERSON_VALUE,
    MOCK_PRIVATE_KEY_1,
    MOCK_PRIVATE_KEY_2,
    MOCK_TRANSFER_SIGNATURE_1,
    MOCK_TRANSFER_SIGNATURE_2,
    MockProvider,
    create_populated_transaction,
    create_transfer_request,
)

from zksync_signer.engine.exceptions import (
    ConfigurationError,
    EncodingError,
    MissingChainIdError,
    MissingRequiredFieldError,
)
from zksync_signer.eip712.accounts import SmartAccount, serialize_transaction
from zksync_signer.eip712.digest import get_signed_digest
from zksync_signer.eip712.paymaster import get_paymaster_params
from zksync_signer.eip712.signatures import ECDSASigner, MultisigECDSASigner
from zksync_signer.eip712.verifies import recover_signer

# Zeroed fee and nonce fields: with these the populated transfer hashes to
# the known transfer digest and needs no provider.
ZERO_FEE_FIELDS = {
    "nonce": 0,
    "gasLimit": 0,
    "maxFeePerGas": 0,
    "maxPriorityFeePerGas": 0,
}


def _decode_raw(raw: bytes) -> list:
    assert raw[0] == 0x71
    return rlp.decode(raw[1:])


def _int(field: bytes) -> int:
    return rlp.sedes.big_endian_int.deserialize(field)


def _envelope_from_raw(raw: bytes) -> dict:
    """Rebuild the signed fields of a transaction from its raw serialisation."""
    fields = _decode_raw(raw)
    return {
        "nonce": _int(fields[0]),
        "maxPriorityFeePerGas": _int(fields[1]),
        "maxFeePerGas": _int(fields[2]),
        "gasLimit": _int(fields[3]),
        "to": "0x" + fields[4].hex(),
        "value": _int(fields[5]),
        "data": fields[6],
        "chainId": _int(fields[10]),
        "from": "0x" + fields[11].hex(),
        "customData": {"gasPerPubdata": _int(fields[12]), "factoryDeps": fields[13]},
    }


@pytest.fixture
def single_account():
    return SmartAccount(MOCK_ADDRESS_1, MOCK_PRIVATE_KEY_1)


@pytest.fixture
def multisig_account():
    return SmartAccount(MOCK_ADDRESS_1, MultisigECDSASigner([MOCK_PRIVATE_KEY_1, MOCK_PRIVATE_KEY_2]))


class TestSmartAccountConstruction:
    """Test account construction and provider binding."""

    def test_hex_key_is_wrapped(self, single_account):
        assert isinstance(single_account.signer, ECDSASigner)
        assert single_account.address == MOCK_ADDRESS_1

    def test_address_checksummed(self):
        account = SmartAccount(MOCK_ADDRESS_1.lower(), MOCK_PRIVATE_KEY_1)
        assert account.address == MOCK_ADDRESS_1

    def test_invalid_address(self):
        with pytest.raises(ConfigurationError):
            SmartAccount("0x1234", MOCK_PRIVATE_KEY_1)

    def test_connect_returns_new_account(self, single_account):
        """Test that connect binds a provider without touching the original."""
        provider = MockProvider()
        connected = single_account.connect(provider)

        assert connected is not single_account
        assert connected.provider is provider
        assert connected.signer is single_account.signer
        assert single_account.provider is None

    def test_repr_hides_key(self, single_account):
        assert MOCK_PRIVATE_KEY_1[2:] not in repr(single_account)

    @pytest.mark.asyncio
    async def test_get_nonce(self, single_account):
        provider = MockProvider(nonce=42)
        assert await single_account.connect(provider).get_nonce() == 42
        provider.get_transaction_count.assert_awaited_once_with(MOCK_ADDRESS_1, "pending")

    @pytest.mark.asyncio
    async def test_get_nonce_without_provider(self, single_account):
        with pytest.raises(ConfigurationError, match="get_nonce"):
            await single_account.get_nonce()


class TestSmartAccountMessages:
    """Test message and typed-data signing."""

    def test_sign_message(self, single_account):
        assert single_account.sign_message(MOCK_MESSAGE).hex() == MOCK_MESSAGE_SIGNATURE_1

    def test_sign_message_multisig(self, multisig_account):
        signature = multisig_account.sign_message(MOCK_MESSAGE)
        assert signature.hex() == MOCK_MESSAGE_SIGNATURE_1 + MOCK_MESSAGE_SIGNATURE_2

    def test_sign_typed_data(self, single_account):
        signature = single_account.sign_typed_data(MOCK_PERSON_DOMAIN, MOCK_PERSON_TYPES, MOCK_PERSON_VALUE)
        assert signature.hex() == MOCK_PERSON_SIGNATURE_1

    def test_sign_typed_data_multisig(self, multisig_account):
        signature = multisig_account.sign_typed_data(
            MOCK_PERSON_DOMAIN, MOCK_PERSON_TYPES, MOCK_PERSON_VALUE, "Person"
        )
        assert signature.hex() == MOCK_PERSON_SIGNATURE_1 + MOCK_PERSON_SIGNATURE_2


class TestSmartAccountTransactions:
    """Test populate / sign / serialise through the account."""

    @pytest.mark.asyncio
    async def test_populate_sets_account_as_sender(self):
        """Test that the account address, not the key address, becomes ``from``."""
        account = SmartAccount(MOCK_ADDRESS_2, MOCK_PRIVATE_KEY_1, MockProvider())
        populated = await account.populate_transaction(create_transfer_request(sender=None))

        assert populated.from_ == MOCK_ADDRESS_2
        assert populated.is_populated()

    @pytest.mark.asyncio
    async def test_sign_transaction_known_vector(self, single_account):
        """Test that the custom signature matches the known transfer signature."""
        raw = await single_account.sign_transaction(create_transfer_request(**ZERO_FEE_FIELDS))
        fields = _decode_raw(raw)

        assert len(fields) == 16
        assert fields[14].hex() == MOCK_TRANSFER_SIGNATURE_1

    @pytest.mark.asyncio
    async def test_sign_transaction_multisig_vector(self, multisig_account):
        raw = await multisig_account.sign_transaction(create_transfer_request(**ZERO_FEE_FIELDS))
        fields = _decode_raw(raw)

        assert fields[14].hex() == MOCK_TRANSFER_SIGNATURE_1 + MOCK_TRANSFER_SIGNATURE_2

    @pytest.mark.asyncio
    async def test_sign_transaction_with_provider(self, single_account):
        """Test a transaction populated from the provider end to end."""
        provider = MockProvider()
        account = single_account.connect(provider)
        raw = await account.sign_transaction(create_transfer_request(sender=None))
        fields = _decode_raw(raw)

        assert rlp.sedes.big_endian_int.deserialize(fields[0]) == MOCK_NONCE
        assert rlp.sedes.big_endian_int.deserialize(fields[3]) == MOCK_GAS_LIMIT
        assert rlp.sedes.big_endian_int.deserialize(fields[10]) == MOCK_CHAIN_ID_LOCAL
        assert fields[11] == bytes.fromhex(MOCK_ADDRESS_1[2:])

        populated = await account.populate_transaction(create_transfer_request(sender=None))
        assert recover_signer(get_signed_digest(populated), fields[14]) == MOCK_ADDRESS_1

    @pytest.mark.asyncio
    async def test_raw_fields_hash_to_signed_digest(self, single_account):
        """Test that the serialised fields reproduce the digest covered by ``customSignature``."""
        raw = await single_account.connect(MockProvider()).sign_transaction(create_transfer_request(sender=None))
        digest = get_signed_digest(_envelope_from_raw(raw))

        assert recover_signer(digest, _decode_raw(raw)[14]) == MOCK_ADDRESS_1

    @pytest.mark.asyncio
    async def test_sign_transaction_without_provider(self, single_account):
        """Test that missing network data without a provider is a configuration error."""
        with pytest.raises(ConfigurationError):
            await single_account.sign_transaction(create_transfer_request(sender=None))


class TestSerializeTransaction:
    """Test the raw ``0x71`` transaction layout."""

    def test_unsigned_layout(self):
        """Test that chain id and two empty strings fill the signature slots."""
        fields = _decode_raw(serialize_transaction(create_populated_transaction()))

        assert rlp.sedes.big_endian_int.deserialize(fields[7]) == MOCK_CHAIN_ID_LOCAL
        assert fields[8] == b""
        assert fields[9] == b""
        assert fields[13] == []
        assert fields[14] == b""
        assert fields[15] == []

    def test_signed_layout(self):
        """Test that an EOA signature is split into yParity, r and s."""
        signature = bytes.fromhex(MOCK_TRANSFER_SIGNATURE_1)
        fields = _decode_raw(serialize_transaction(create_populated_transaction(), signature))

        assert fields[7] == b""  # yParity 0 (v = 27)
        assert fields[8] == signature[:32].lstrip(b"\x00")
        assert fields[9] == signature[32:64].lstrip(b"\x00")

    def test_paymaster_params(self):
        params = get_paymaster_params(MOCK_PAYMASTER_ADDRESS, {"type": "General"})
        tx = create_populated_transaction(customData={
            "gasPerPubdata": 50_000,
            "paymasterParams": params.model_dump(by_alias=True),
        })
        fields = _decode_raw(serialize_transaction(tx))

        assert fields[15] == [bytes.fromhex(MOCK_PAYMASTER_ADDRESS[2:]), params.paymaster_input]

    def test_factory_deps(self):
        tx = create_populated_transaction(customData={"factoryDeps": ["0x" + "00" * 32]})
        fields = _decode_raw(serialize_transaction(tx))

        assert fields[13] == [bytes(32)]

    def test_empty_custom_signature(self):
        tx = create_populated_transaction(customData={"customSignature": "0x"})
        with pytest.raises(EncodingError, match="Empty signatures are not supported!"):
            serialize_transaction(tx)

    def test_missing_chain_id(self):
        with pytest.raises(MissingChainIdError):
            serialize_transaction(create_populated_transaction(chainId=None))

    def test_malformed_signature(self):
        with pytest.raises(EncodingError):
            serialize_transaction(create_populated_transaction(), b"\x01" * 10)

    def test_zero_chain_id(self):
        with pytest.raises(MissingChainIdError):
            serialize_transaction(create_populated_transaction(chainId=0))

    def test_missing_from(self):
        """Test that ``from`` must be given explicitly."""
        with pytest.raises(MissingRequiredFieldError) as exc_info:
            serialize_transaction({"chainId": MOCK_CHAIN_ID_LOCAL, "to": MOCK_ADDRESS_2})
        assert exc_info.value.field == "from"

    def test_minimal_vector(self):
        """Test the serialisation of a transaction holding only chain id and sender."""
        raw = serialize_transaction({"chainId": MOCK_CHAIN_ID_LOCAL, "from": MOCK_ADDRESS_1})
        assert "0x" + raw.hex() == (
            "0x71ea8080808080808082010e808082010e94"
            "36615cf349d7f6344891b1e7ca7c72883f5dc049"
            "82c350c080c0"
        )

    @pytest.mark.parametrize("overrides", [
        {},
        {"maxPriorityFeePerGas": None},
        {"maxFeePerGas": None, "maxPriorityFeePerGas": None, "gasPrice": 250_000_000},
        {"maxFeePerGas": 300_000_000, "maxPriorityFeePerGas": 7},
    ])
    def test_fee_fields_match_signed_digest(self, overrides):
        """Test that the serialised fee fields hash to the digest of the envelope."""
        tx = create_populated_transaction(**overrides)
        raw = serialize_transaction(tx)

        assert get_signed_digest(_envelope_from_raw(raw)) == get_signed_digest(tx)

    def test_zero_priority_fee_serialised_as_max_fee(self):
        fields = _decode_raw(serialize_transaction(create_populated_transaction()))
        assert _int(fields[1]) == _int(fields[2]) == MOCK_MAX_FEE_PER_GAS
