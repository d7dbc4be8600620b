"""
EIP-712 Digest Engine

Computes the 32-byte digests that are handed to a signer:

    digest = keccak256(0x19 0x01 || domainSeparator || hashStruct(primaryType, value))

plus the ZKsync-specific pieces around it: the canonical ``Transaction``
struct value of an EIP-712 transaction envelope, the chain-bound
transaction digest, the EIP-191 personal message hash and the bytecode hash
used for ``factoryDeps``.

All functions are pure and synchronous.
"""

import hashlib
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from eth_utils import keccak
from pydantic import ValidationError

from ..engine.exceptions import EncodingError, MissingChainIdError, MissingRequiredFieldError
from ..utils import as_bytes, logger
from .constants import (
    BYTECODE_HASH_VERSION,
    DEFAULT_GAS_PER_PUBDATA_LIMIT,
    EIP712_DOMAIN_NAME,
    EIP712_DOMAIN_VERSION,
    EIP712_TX_TYPE,
    MAX_BYTECODE_LEN_BYTES,
    MESSAGE_PREFIX,
    TYPED_DATA_PREFIX,
    ZERO_ADDRESS,
)
from .schemas import Domain, TransactionEnvelope
from .standards import (
    DOMAIN_TYPE_NAME,
    EIP712_TRANSACTION_TYPES,
    TRANSACTION_PRIMARY_TYPE,
    TransactionTypedData,
)
from .typed_data import TypeRegistry, TypeSchema, domain_separator

_TRANSACTION_REGISTRY = TypeRegistry(EIP712_TRANSACTION_TYPES)


def as_envelope(tx: Union[TransactionEnvelope, Mapping[str, Any]]) -> TransactionEnvelope:
    """Validate a transaction dict into a ``TransactionEnvelope``."""
    if isinstance(tx, TransactionEnvelope):
        return tx
    if not isinstance(tx, Mapping):
        raise EncodingError(f"Transaction must be a mapping, got {type(tx).__name__}")
    try:
        return TransactionEnvelope.model_validate(dict(tx))
    except ValidationError as exc:
        raise EncodingError(f"Invalid transaction: {exc}") from exc


def _struct_registry(types: Union[TypeSchema, TypeRegistry]) -> TypeRegistry:
    # EIP712Domain is synthesised from the domain itself.
    schema = types.types if isinstance(types, TypeRegistry) else types
    if isinstance(schema, Mapping) and DOMAIN_TYPE_NAME in schema:
        return TypeRegistry({k: v for k, v in schema.items() if k != DOMAIN_TYPE_NAME})
    if isinstance(types, TypeRegistry):
        return types
    return TypeRegistry(schema)


def hash_typed_data(
    domain: Union[Domain, Mapping[str, Any]],
    types: Union[TypeSchema, TypeRegistry],
    value: Mapping[str, Any],
    primary_type: Optional[str] = None,
) -> bytes:
    """
    Compute the EIP-712 digest of ``value``.

    Args:
        domain: Domain (``Domain`` or dict); only present members are hashed.
        types: Struct schema. An ``EIP712Domain`` entry is ignored.
        value: Struct value of the primary type.
        primary_type: Root struct name. Derived from the schema when omitted.

    Returns:
        bytes: 32-byte digest.

    Raises:
        TypedDataError: On any schema or value problem.
    """
    registry = _struct_registry(types)
    if primary_type is None:
        primary_type = registry.get_primary_type()
    separator = domain_separator(domain)
    struct_hash = registry.hash_struct(primary_type, value)
    digest = keccak(TYPED_DATA_PREFIX + separator + struct_hash)
    logger.debug(f"[Digest] typed data {primary_type}: 0x{digest.hex()}")
    return digest


def hash_typed_data_message(full_message: Mapping[str, Any]) -> bytes:
    """
    Digest of a full ``{types, primaryType, domain, message}`` payload, the
    layout used by ``eth_signTypedData_v4``.
    """
    try:
        types = full_message["types"]
        domain = full_message["domain"]
        message = full_message["message"]
    except (KeyError, TypeError) as exc:
        raise EncodingError(f"Malformed typed data payload, missing {exc}") from exc
    return hash_typed_data(domain, types, message, full_message.get("primaryType"))


def hash_message(message: Union[str, bytes]) -> bytes:
    """
    EIP-191 personal message hash.

    ``str`` messages are UTF-8 encoded; ``bytes`` are hashed as given.

    Example:
        hash_message("Hello World!").hex()
        # 'ec3608877ecbf8084c29896b7eab2a368b2b3c8d003288584d145613dfa4706c'
    """
    if isinstance(message, str):
        raw = message.encode("utf-8")
    elif isinstance(message, (bytes, bytearray)):
        raw = bytes(message)
    else:
        raise EncodingError(f"Message must be str or bytes, got {type(message).__name__}")
    return keccak(MESSAGE_PREFIX + str(len(raw)).encode("ascii") + raw)


def hash_bytecode(bytecode: Union[bytes, str]) -> bytes:
    """
    ZKsync bytecode hash.

    sha256 of the bytecode with the first two bytes replaced by the hash
    version (``0x0100``) and the next two by the length in 32-byte words.

    Raises:
        EncodingError: Length not a multiple of 32, an even number of words,
            or longer than ``MAX_BYTECODE_LEN_BYTES``.
    """
    try:
        code = as_bytes(bytecode)
    except ValueError as exc:
        raise EncodingError(f"Invalid bytecode: {exc}") from exc
    if len(code) % 32 != 0:
        raise EncodingError("The bytecode length in bytes must be divisible by 32")
    if len(code) > MAX_BYTECODE_LEN_BYTES:
        raise EncodingError(f"Bytecode can not be longer than {MAX_BYTECODE_LEN_BYTES} bytes")

    length_in_words = len(code) // 32
    if length_in_words % 2 == 0:
        raise EncodingError("Bytecode length in 32-byte words must be odd")

    digest = hashlib.sha256(code).digest()
    return BYTECODE_HASH_VERSION + length_in_words.to_bytes(2, "big") + digest[4:]


def transaction_fees(tx: TransactionEnvelope) -> Tuple[int, int]:
    """
    ``(maxFeePerGas, maxPriorityFeePerGas)`` of an envelope as they are both
    signed and serialised: the max fee falls back to ``gasPrice`` and the
    priority fee to the max fee.
    """
    max_fee_per_gas = tx.max_fee_per_gas or tx.gas_price or 0
    return max_fee_per_gas, tx.max_priority_fee_per_gas or max_fee_per_gas


def transaction_signing_input(tx: Union[TransactionEnvelope, Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Build the ``Transaction`` struct value signed for a ZKsync EIP-712
    transaction.

    Unset fields take their protocol defaults: ``txType`` 113,
    ``gasPerPubdataByteLimit`` 50000, ``maxFeePerGas`` falls back to
    ``gasPrice``, ``maxPriorityFeePerGas`` to ``maxFeePerGas``, other
    numbers to 0 and byte fields to empty. Addresses are returned as
    integers since the struct declares them ``uint256``.

    Raises:
        MissingRequiredFieldError: ``from`` or ``to`` is absent.
    """
    tx = as_envelope(tx)
    if tx.from_ is None:
        raise MissingRequiredFieldError("from")
    if tx.to is None:
        raise MissingRequiredFieldError("to")

    meta = tx.meta
    paymaster_params = meta.paymaster_params
    max_fee_per_gas, max_priority_fee_per_gas = transaction_fees(tx)

    return {
        "txType": tx.type or EIP712_TX_TYPE,
        "from": int(tx.from_, 16),
        "to": int(tx.to, 16),
        "gasLimit": tx.gas_limit or 0,
        "gasPerPubdataByteLimit": meta.gas_per_pubdata or DEFAULT_GAS_PER_PUBDATA_LIMIT,
        "maxFeePerGas": max_fee_per_gas,
        "maxPriorityFeePerGas": max_priority_fee_per_gas,
        "paymaster": int(paymaster_params.paymaster if paymaster_params else ZERO_ADDRESS, 16),
        "nonce": tx.nonce or 0,
        "value": tx.value or 0,
        "data": tx.data or b"",
        "factoryDeps": [hash_bytecode(dep) for dep in meta.factory_deps],
        "paymasterInput": paymaster_params.paymaster_input if paymaster_params else b"",
    }


def _transaction_domain(tx: TransactionEnvelope) -> Dict[str, Any]:
    if not tx.chain_id:
        raise MissingChainIdError()
    return {
        "name": EIP712_DOMAIN_NAME,
        "version": EIP712_DOMAIN_VERSION,
        "chainId": tx.chain_id,
    }


def get_signed_digest(tx: Union[TransactionEnvelope, Mapping[str, Any]]) -> bytes:
    """
    Digest to sign for a ZKsync EIP-712 transaction.

    The domain is ``{name: "zkSync", version: "2", chainId}``; the chain id is
    never defaulted.

    Raises:
        MissingChainIdError: ``chain_id`` is not set or zero.
        MissingRequiredFieldError: ``from`` or ``to`` is absent.
    """
    tx = as_envelope(tx)
    domain = _transaction_domain(tx)
    return hash_typed_data(
        domain,
        _TRANSACTION_REGISTRY,
        transaction_signing_input(tx),
        TRANSACTION_PRIMARY_TYPE,
    )


def transaction_typed_data(tx: Union[TransactionEnvelope, Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Full ``eth_signTypedData_v4`` payload of a transaction, for signing with
    wallets or external tooling. Byte values are rendered as ``0x`` hex.
    """
    tx = as_envelope(tx)
    chain_id = _transaction_domain(tx)["chainId"]
    message = {}
    for key, value in transaction_signing_input(tx).items():
        if isinstance(value, bytes):
            value = "0x" + value.hex()
        elif isinstance(value, list):
            value = ["0x" + item.hex() for item in value]
        message[key] = value
    return TransactionTypedData(chain_id=chain_id, message=message).to_dict()
