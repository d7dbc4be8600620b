"""
Authorization Strategies

Payload signers turn a 32-byte digest into the authorization bytes a smart
account expects; transaction builders take an unpopulated
``TransactionEnvelope`` and fill in everything needed to sign and submit it.

Exported helpers
----------------
sign_payload_with_ecdsa
    Sign a digest with one secp256k1 key; returns 65 bytes ``r || s || v``.

sign_payload_with_multiple_ecdsa
    Sign a digest with every key in order and concatenate the signatures.

populate_transaction_ecdsa / populate_transaction_multisig_ecdsa
    Fill ``from``, ``type``, ``nonce``, fees and defaults from a provider.

ECDSASigner / MultisigECDSASigner
    ``AccountSigner`` implementations pairing each signing strategy with
    its transaction builder.

All signing is performed in-process using ``eth_account``. Signatures are
deterministic (RFC 6979): the same digest and key always produce the same
bytes.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional, Sequence, Union

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_keys.exceptions import ValidationError as KeyValidationError

from ..engine.exceptions import (
    ConfigurationError,
    EncodingError,
    InsufficientKeysError,
    MissingChainIdError,
    MissingRequiredFieldError,
)
from ..utils import logger
from .constants import DEFAULT_GAS_PER_PUBDATA_LIMIT, EIP712_TX_TYPE, get_private_key_from_env
from .digest import as_envelope
from .providers import BaseProvider
from .schemas import Fee, TransactionEnvelope

TransactionLike = Union[TransactionEnvelope, Mapping[str, Any]]


def _load_account(secret: Union[str, bytes, LocalAccount]) -> LocalAccount:
    if isinstance(secret, LocalAccount):
        return secret
    try:
        return Account.from_key(secret)
    except (ValueError, TypeError, KeyValidationError) as exc:
        # The key itself must never end up in the message.
        raise ConfigurationError(f"Invalid private key: {type(exc).__name__}") from None


def _check_digest(payload: bytes) -> bytes:
    if not isinstance(payload, (bytes, bytearray)) or len(payload) != 32:
        raise EncodingError("Payload to sign must be a 32-byte digest")
    return bytes(payload)


# ---------------------------------------------------------------------------
# Payload signers
# ---------------------------------------------------------------------------

def sign_payload_with_ecdsa(payload: bytes, secret: Union[str, bytes, LocalAccount]) -> bytes:
    """
    Sign a 32-byte digest with a single secp256k1 key.

    The digest is signed as-is, without any further prefixing.

    Args:
        payload: 32-byte digest, e.g. from ``get_signed_digest``.
        secret:  Hex private key, raw key bytes or an ``eth_account`` account.

    Returns:
        65-byte signature ``r || s || v`` with ``v`` in ``{27, 28}``.

    Example::

        signature = sign_payload_with_ecdsa(hash_message("Hello World!"), PRIVATE_KEY)
    """
    digest = _check_digest(payload)
    account = _load_account(secret)
    signed = account.unsafe_sign_hash(digest)
    return bytes(signed.signature)


def sign_payload_with_multiple_ecdsa(
    payload: bytes,
    secrets: Sequence[Union[str, bytes, LocalAccount]],
) -> bytes:
    """
    Sign a 32-byte digest with every key and concatenate the signatures.

    Order is preserved exactly as given: the i-th 65-byte block is the
    signature of the i-th key. Duplicate keys are signed twice.

    Raises:
        InsufficientKeysError: If ``secrets`` is empty.
    """
    if isinstance(secrets, (str, bytes)) or not secrets:
        raise InsufficientKeysError("At least one private key is required for multi-key signing")
    digest = _check_digest(payload)
    return b"".join(sign_payload_with_ecdsa(digest, secret) for secret in secrets)


# ---------------------------------------------------------------------------
# Transaction builders
# ---------------------------------------------------------------------------

async def _nothing() -> None:
    return None


def _needs_fee(tx: TransactionEnvelope) -> bool:
    return (
        tx.gas_limit is None
        or (tx.max_fee_per_gas is None and tx.gas_price is None)
        or tx.max_priority_fee_per_gas is None
    )


async def populate_transaction(
    tx: TransactionLike,
    sender: str,
    provider: Optional[BaseProvider] = None,
) -> TransactionEnvelope:
    """
    Populate a transaction envelope for ``sender``.

    Nonce and fee estimate are requested concurrently. The populated
    envelope is assembled in a single step after both complete, so a
    cancelled or failed population leaves no partial result; the input
    envelope is never modified.

    Raises:
        MissingRequiredFieldError: ``to`` is absent.
        MissingChainIdError: ``chain_id`` is absent or zero.
        ConfigurationError: Network data is needed but ``provider`` is None.
    """
    tx = as_envelope(tx)
    if tx.to is None:
        raise MissingRequiredFieldError("to")
    if not tx.chain_id:
        raise MissingChainIdError()

    from_address = tx.from_ or sender
    request = tx.model_copy(update={"from_": from_address, "type": EIP712_TX_TYPE})

    need_nonce = tx.nonce is None
    need_fee = _needs_fee(tx)
    if (need_nonce or need_fee) and provider is None:
        raise ConfigurationError("Provider is required to populate nonce and fee fields")

    logger.debug(
        f"[Populate] tx from {from_address} to {tx.to}: "
        f"fetch nonce={need_nonce}, fetch fee={need_fee}"
    )
    tasks = [
        asyncio.ensure_future(
            provider.get_transaction_count(from_address, "pending") if need_nonce else _nothing()
        ),
        asyncio.ensure_future(provider.estimate_fee(request) if need_fee else _nothing()),
    ]
    try:
        nonce, fee = await asyncio.gather(*tasks)
    except Exception:
        # A failed leg cancels its sibling, which is awaited before re-raising.
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    if fee is not None and not isinstance(fee, Fee):
        fee = Fee.model_validate(fee)

    meta = tx.meta
    if meta.gas_per_pubdata is not None:
        gas_per_pubdata = meta.gas_per_pubdata
    elif fee is not None:
        gas_per_pubdata = fee.gas_per_pubdata_limit
    else:
        gas_per_pubdata = DEFAULT_GAS_PER_PUBDATA_LIMIT

    max_fee_per_gas = tx.max_fee_per_gas
    if max_fee_per_gas is None:
        max_fee_per_gas = tx.gas_price if tx.gas_price is not None else fee.max_fee_per_gas

    populated = request.model_copy(update={
        "nonce": tx.nonce if tx.nonce is not None else nonce,
        "gas_limit": tx.gas_limit if tx.gas_limit is not None else fee.gas_limit,
        "max_fee_per_gas": max_fee_per_gas,
        "max_priority_fee_per_gas": (
            tx.max_priority_fee_per_gas
            if tx.max_priority_fee_per_gas is not None
            else fee.max_priority_fee_per_gas
        ),
        "value": tx.value if tx.value is not None else 0,
        "data": tx.data if tx.data is not None else b"",
        "custom_data": meta.model_copy(update={"gas_per_pubdata": gas_per_pubdata}),
    })
    logger.debug(f"[Populate] populated nonce={populated.nonce}, gas_limit={populated.gas_limit}")
    return populated


async def populate_transaction_ecdsa(
    tx: TransactionLike,
    secret: Union[str, bytes, LocalAccount],
    provider: Optional[BaseProvider] = None,
) -> TransactionEnvelope:
    """
    Populate ``tx`` for an account controlled by one ECDSA key. ``from``
    defaults to the key's address.

    Example::

        populated = await populate_transaction_ecdsa(
            {"chainId": 270, "to": RECEIVER, "value": 7_000_000_000},
            PRIVATE_KEY,
            provider,
        )
    """
    return await populate_transaction(tx, _load_account(secret).address, provider)


async def populate_transaction_multisig_ecdsa(
    tx: TransactionLike,
    secrets: Sequence[Union[str, bytes, LocalAccount]],
    provider: Optional[BaseProvider] = None,
) -> TransactionEnvelope:
    """
    Populate ``tx`` for a multi-key account; the first key's address stands
    in for ``from`` when the envelope has none.

    Raises:
        InsufficientKeysError: If ``secrets`` is empty.
    """
    if isinstance(secrets, (str, bytes)) or not secrets:
        raise InsufficientKeysError("At least one private key is required to build the transaction")
    return await populate_transaction_ecdsa(tx, secrets[0], provider)


# ---------------------------------------------------------------------------
# Account signers
# ---------------------------------------------------------------------------

class AccountSigner(ABC):
    """
    Signing strategy of a smart account: how digests are authorized and how
    transactions are populated for it.
    """

    @property
    @abstractmethod
    def address(self) -> str:
        """Address used as ``from`` when an envelope has none."""

    @abstractmethod
    def sign(self, digest: bytes) -> bytes:
        """Authorize a 32-byte digest."""

    async def build_transaction(
        self,
        tx: TransactionLike,
        provider: Optional[BaseProvider] = None,
    ) -> TransactionEnvelope:
        return await populate_transaction(tx, self.address, provider)


class ECDSASigner(AccountSigner):
    """
    Single-key ECDSA strategy.

    Args:
        private_key: Hex private key. Falls back to ``ZKSYNC_PRIVATE_KEY``.

    Raises:
        ConfigurationError: No key given and none configured, or invalid key.
    """

    def __init__(self, private_key: Optional[Union[str, LocalAccount]] = None):
        resolved = private_key if private_key else get_private_key_from_env()
        if not resolved:
            raise ConfigurationError(
                "Private key not provided. Either pass 'private_key' parameter or "
                "set 'ZKSYNC_PRIVATE_KEY' environment variable."
            )
        self._account = _load_account(resolved)

    @property
    def address(self) -> str:
        return self._account.address

    def sign(self, digest: bytes) -> bytes:
        return sign_payload_with_ecdsa(digest, self._account)

    async def build_transaction(self, tx, provider=None):
        return await populate_transaction_ecdsa(tx, self._account, provider)

    def __repr__(self) -> str:
        return f"ECDSASigner(address={self.address})"


class MultisigECDSASigner(AccountSigner):
    """
    Multi-key ECDSA strategy: every key signs, signatures are concatenated
    in the order the keys were given.

    Raises:
        InsufficientKeysError: If ``private_keys`` is empty.
    """

    def __init__(self, private_keys: Sequence[Union[str, LocalAccount]]):
        if isinstance(private_keys, (str, bytes)) or not private_keys:
            raise InsufficientKeysError("At least one private key is required for multi-key signing")
        self._accounts = tuple(_load_account(key) for key in private_keys)

    @property
    def address(self) -> str:
        return self._accounts[0].address

    @property
    def addresses(self) -> tuple:
        return tuple(account.address for account in self._accounts)

    def sign(self, digest: bytes) -> bytes:
        return sign_payload_with_multiple_ecdsa(digest, self._accounts)

    async def build_transaction(self, tx, provider=None):
        return await populate_transaction_multisig_ecdsa(tx, self._accounts, provider)

    def __repr__(self) -> str:
        return f"MultisigECDSASigner(addresses={list(self.addresses)})"
