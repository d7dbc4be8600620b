"""
Smart Account

``SmartAccount`` binds an account address to a signing strategy
(``AccountSigner``) and, optionally, a provider. It populates, signs and
serialises ZKsync EIP-712 transactions and signs personal messages and
typed data with the same strategy, so single-key and multi-key accounts are
driven through one interface.

``serialize_transaction`` produces the raw ``0x71 || RLP(...)`` bytes
accepted by ``eth_sendRawTransaction``.
"""

from typing import Any, Dict, Mapping, Optional, Union

import rlp
from eth_utils import is_address, to_checksum_address

from ..engine.exceptions import (
    ConfigurationError,
    EncodingError,
    MissingChainIdError,
    MissingRequiredFieldError,
)
from ..utils import logger
from .constants import DEFAULT_GAS_PER_PUBDATA_LIMIT, EIP712_TX_TYPE
from .digest import as_envelope, get_signed_digest, hash_message, hash_typed_data, transaction_fees
from .providers import BaseProvider
from .schemas import Domain, ECDSASignature, TransactionEnvelope
from .signatures import AccountSigner, ECDSASigner, TransactionLike
from .typed_data import TypeRegistry, TypeSchema


def _address_bytes(address: Optional[str]) -> bytes:
    return bytes.fromhex(address[2:]) if address else b""


def serialize_transaction(
    tx: TransactionLike,
    signature: Optional[Union[bytes, str, ECDSASignature]] = None,
) -> bytes:
    """
    Serialise a ZKsync EIP-712 transaction.

    Layout::

        0x71 || rlp([nonce, maxPriorityFeePerGas, maxFeePerGas, gasLimit, to,
                     value, data, (yParity | chainId), (r | ""), (s | ""),
                     chainId, from, gasPerPubdata, factoryDeps,
                     customSignature, [paymaster, paymasterInput] | []])

    Args:
        tx:        Transaction envelope or dict.
        signature: Optional EOA signature; when absent the chain id and two
                   empty strings take its place.

    Raises:
        MissingChainIdError: ``chain_id`` is not set or zero.
        MissingRequiredFieldError: ``from`` is absent.
        EncodingError: ``custom_signature`` is present but empty.
    """
    tx = as_envelope(tx)
    if not tx.chain_id:
        raise MissingChainIdError()
    if tx.from_ is None:
        raise MissingRequiredFieldError("from")

    max_fee_per_gas, max_priority_fee_per_gas = transaction_fees(tx)
    fields = [
        tx.nonce or 0,
        max_priority_fee_per_gas,
        max_fee_per_gas,
        tx.gas_limit or 0,
        _address_bytes(tx.to),
        tx.value or 0,
        tx.data or b"",
    ]

    if signature is not None:
        if not isinstance(signature, ECDSASignature):
            try:
                signature = ECDSASignature.from_bytes(signature)
            except ValueError as exc:
                raise EncodingError(f"Malformed transaction signature: {exc}") from exc
        fields += [
            signature.v - 27,
            int.from_bytes(signature.r, "big"),
            int.from_bytes(signature.s, "big"),
        ]
    else:
        fields += [tx.chain_id, b"", b""]

    meta = tx.meta
    if meta.custom_signature is not None and len(meta.custom_signature) == 0:
        raise EncodingError("Empty signatures are not supported!")

    paymaster = meta.paymaster_params
    fields += [
        tx.chain_id,
        _address_bytes(tx.from_),
        meta.gas_per_pubdata or DEFAULT_GAS_PER_PUBDATA_LIMIT,
        list(meta.factory_deps),
        meta.custom_signature or b"",
        [_address_bytes(paymaster.paymaster), paymaster.paymaster_input] if paymaster else [],
    ]
    return bytes([EIP712_TX_TYPE]) + rlp.encode(fields)


class SmartAccount:
    """
    Account bound to an address, a signing strategy and an optional provider.

    Args:
        address:  Address of the (smart) account; used as ``from``.
        signer:   ``AccountSigner`` strategy, or a hex private key which is
                  wrapped in ``ECDSASigner``. When omitted, the key is read
                  from ``ZKSYNC_PRIVATE_KEY``.
        provider: Network collaborator used for population.

    Example::

        account = SmartAccount(
            "0x36615Cf349d7F6344891B1e7CA7C72883F5dc049",
            MultisigECDSASigner([PRIVATE_KEY1, PRIVATE_KEY2]),
            Web3Provider("https://sepolia.era.zksync.dev"),
        )
        raw_tx = await account.sign_transaction({
            "chainId": 300,
            "to": "0xa61464658AfeAf65CccaaFD3a512b69A83B77618",
            "value": 7_000_000_000,
        })
    """

    def __init__(
        self,
        address: str,
        signer: Optional[Union[AccountSigner, str]] = None,
        provider: Optional[BaseProvider] = None,
    ):
        if not isinstance(address, str) or not is_address(address):
            raise ConfigurationError(f"Invalid account address: {address!r}")
        self.address = to_checksum_address(address)
        self.signer = signer if isinstance(signer, AccountSigner) else ECDSASigner(signer)
        self.provider = provider

    def connect(self, provider: BaseProvider) -> "SmartAccount":
        """Return a new account with the same address and signer bound to ``provider``."""
        return SmartAccount(self.address, self.signer, provider)

    def _require_provider(self, operation: str) -> BaseProvider:
        if self.provider is None:
            raise ConfigurationError(f"Missing provider: {operation}")
        return self.provider

    async def get_nonce(self, block_tag: str = "pending") -> int:
        provider = self._require_provider("get_nonce")
        return await provider.get_transaction_count(self.address, block_tag)

    async def populate_transaction(self, tx: TransactionLike) -> TransactionEnvelope:
        """
        Populate ``tx`` through the signer's transaction builder with ``from``
        set to this account.
        """
        tx = as_envelope(tx)
        if tx.from_ is None:
            tx = tx.model_copy(update={"from_": self.address})
        return await self.signer.build_transaction(tx, self.provider)

    async def sign_transaction(self, tx: TransactionLike) -> bytes:
        """
        Populate, sign and serialise ``tx``.

        The account signature is stored as ``customSignature``; the result is
        ready for ``eth_sendRawTransaction``.
        """
        populated = await self.populate_transaction(tx)
        digest = get_signed_digest(populated)
        custom_signature = self.signer.sign(digest)
        signed = populated.model_copy(update={
            "custom_data": populated.meta.model_copy(update={"custom_signature": custom_signature}),
        })
        logger.debug(f"[SmartAccount] signed tx digest 0x{digest.hex()} for {self.address}")
        return serialize_transaction(signed)

    def sign_message(self, message: Union[str, bytes]) -> bytes:
        """Sign the EIP-191 hash of ``message`` with the account strategy."""
        return self.signer.sign(hash_message(message))

    def sign_typed_data(
        self,
        domain: Union[Domain, Mapping[str, Any]],
        types: Union[TypeSchema, TypeRegistry],
        value: Dict[str, Any],
        primary_type: Optional[str] = None,
    ) -> bytes:
        """Sign the EIP-712 digest of ``value`` with the account strategy."""
        return self.signer.sign(hash_typed_data(domain, types, value, primary_type))

    def __repr__(self) -> str:
        return f"SmartAccount(address={self.address}, signer={self.signer!r})"
