"""
EIP-712 Schema Models

Pydantic models for typed-data domains, ZKsync EIP-712 transaction
envelopes, fee estimates, paymaster parameters and ECDSA signatures. All
classes inherit from the base schema hierarchy in ``schemas.bases``.

Values arriving as hex strings (as returned by JSON-RPC) are converted at
the model boundary: integers become Python ``int`` (the single wide-integer
representation used throughout the package), byte fields become ``bytes``
and addresses are checksummed.

Domain / envelope classes:
    - Domain: EIP-712 domain, any subset of its five members.
    - TransactionEnvelope: ZKsync EIP-712 transaction (type ``0x71``).
    - Eip712Meta: ZKsync-specific ``customData`` of a transaction.

Supporting classes:
    - PaymasterParams: ``{paymaster, paymasterInput}`` pair.
    - Fee: Fee estimate returned by the provider collaborator.
    - ECDSASignature: ``r || s || v`` signature.
"""

from typing import Any, Dict, List, Literal, Optional, Tuple

from eth_utils import is_address, to_checksum_address
from pydantic import ConfigDict, Field, field_validator

from ..schemas.bases import BaseSignature, FrozenModel
from ..utils import as_bytes, as_int
from .constants import (
    DEFAULT_GAS_PER_PUBDATA_LIMIT,
    EIP712_TX_TYPE,
    SIGNATURE_LENGTH,
)
from .standards import DOMAIN_FIELD_TYPES


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    result = as_int(value)
    if result < 0:
        raise ValueError(f"Expected non-negative integer, got {result}")
    return result


def _optional_address(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        value = "0x" + bytes(value).hex()
    if not isinstance(value, str) or not is_address(value):
        raise ValueError(f"Invalid address: {value!r}")
    return to_checksum_address(value)


def _optional_bytes(value: Any) -> Optional[bytes]:
    if value is None:
        return None
    return as_bytes(value)


class Domain(FrozenModel):
    """
    EIP-712 domain.

    Any subset of the five standard members may be present; absent members
    are left out of both the synthesised ``EIP712Domain`` type and the
    domain separator. Unknown members are rejected.

    Attributes:
        name: Human-readable signing domain name.
        version: Current major version of the signing domain.
        chain_id: EIP-155 chain id (``chainId``).
        verifying_contract: Address of the verifying contract (``verifyingContract``).
        salt: 32-byte disambiguating salt.

    Example::

        domain = Domain(name="Example", version="1", chainId=270)
    """

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    version: Optional[str] = None
    chain_id: Optional[int] = Field(default=None, alias="chainId")
    verifying_contract: Optional[str] = Field(default=None, alias="verifyingContract")
    salt: Optional[bytes] = None

    @field_validator("chain_id", mode="before")
    @classmethod
    def _check_chain_id(cls, value: Any) -> Optional[int]:
        return _optional_int(value)

    @field_validator("verifying_contract", mode="before")
    @classmethod
    def _check_verifying_contract(cls, value: Any) -> Optional[str]:
        return _optional_address(value)

    @field_validator("salt", mode="before")
    @classmethod
    def _check_salt(cls, value: Any) -> Optional[bytes]:
        salt = _optional_bytes(value)
        if salt is not None and len(salt) != 32:
            raise ValueError(f"salt must be 32 bytes, got {len(salt)}")
        return salt

    def present_values(self) -> Dict[str, Any]:
        """
        Return the present members keyed by their EIP-712 names, in the
        canonical ``name, version, chainId, verifyingContract, salt`` order.
        """
        values = self.model_dump(by_alias=True)
        return {f.name: values[f.name] for f in DOMAIN_FIELD_TYPES if values[f.name] is not None}


class PaymasterParams(FrozenModel):
    """
    Paymaster address and the ABI-encoded input handed to it.

    Attributes:
        paymaster: Paymaster contract address.
        paymaster_input: Encoded ``IPaymasterFlow`` call (``paymasterInput``).
    """

    paymaster: str
    paymaster_input: bytes = Field(default=b"", alias="paymasterInput")

    @field_validator("paymaster", mode="before")
    @classmethod
    def _check_paymaster(cls, value: Any) -> Optional[str]:
        return _optional_address(value)

    @field_validator("paymaster_input", mode="before")
    @classmethod
    def _check_input(cls, value: Any) -> bytes:
        return as_bytes(value)


class Eip712Meta(FrozenModel):
    """
    ZKsync-specific transaction metadata (``customData``).

    Attributes:
        gas_per_pubdata: Max gas per byte of published data (``gasPerPubdata``).
        factory_deps: Raw bytecodes the transaction depends on (``factoryDeps``).
        custom_signature: Account-defined signature blob (``customSignature``).
        paymaster_params: Optional paymaster sponsorship (``paymasterParams``).
    """

    gas_per_pubdata: Optional[int] = Field(default=None, alias="gasPerPubdata")
    factory_deps: Tuple[bytes, ...] = Field(default=(), alias="factoryDeps")
    custom_signature: Optional[bytes] = Field(default=None, alias="customSignature")
    paymaster_params: Optional[PaymasterParams] = Field(default=None, alias="paymasterParams")

    @field_validator("gas_per_pubdata", mode="before")
    @classmethod
    def _check_gas_per_pubdata(cls, value: Any) -> Optional[int]:
        return _optional_int(value)

    @field_validator("factory_deps", mode="before")
    @classmethod
    def _check_factory_deps(cls, value: Any) -> Tuple[bytes, ...]:
        if value is None:
            return ()
        return tuple(as_bytes(dep) for dep in value)

    @field_validator("custom_signature", mode="before")
    @classmethod
    def _check_custom_signature(cls, value: Any) -> Optional[bytes]:
        return _optional_bytes(value)


class TransactionEnvelope(FrozenModel):
    """
    ZKsync EIP-712 transaction envelope.

    The envelope is immutable. Population and signing produce new envelopes
    via ``model_copy(update=...)`` so that a half-finished population is
    never observable.

    Field names accept both snake_case and the JSON-RPC camelCase aliases;
    ``from`` is exposed as ``from_`` because ``from`` is a Python keyword.

    Example::

        tx = TransactionEnvelope(**{
            "chainId": 270,
            "from": "0x36615Cf349d7F6344891B1e7CA7C72883F5dc049",
            "to": "0xa61464658AfeAf65CccaaFD3a512b69A83B77618",
            "value": 7_000_000_000,
        })
    """

    type: Optional[int] = None
    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None
    gas_limit: Optional[int] = Field(default=None, alias="gasLimit")
    gas_price: Optional[int] = Field(default=None, alias="gasPrice")
    max_fee_per_gas: Optional[int] = Field(default=None, alias="maxFeePerGas")
    max_priority_fee_per_gas: Optional[int] = Field(default=None, alias="maxPriorityFeePerGas")
    nonce: Optional[int] = None
    value: Optional[int] = None
    data: Optional[bytes] = None
    chain_id: Optional[int] = Field(default=None, alias="chainId")
    custom_data: Optional[Eip712Meta] = Field(default=None, alias="customData")

    @field_validator(
        "type", "gas_limit", "gas_price", "max_fee_per_gas",
        "max_priority_fee_per_gas", "nonce", "value", "chain_id",
        mode="before",
    )
    @classmethod
    def _check_ints(cls, value: Any) -> Optional[int]:
        return _optional_int(value)

    @field_validator("from_", "to", mode="before")
    @classmethod
    def _check_addresses(cls, value: Any) -> Optional[str]:
        return _optional_address(value)

    @field_validator("data", mode="before")
    @classmethod
    def _check_data(cls, value: Any) -> Optional[bytes]:
        return _optional_bytes(value)

    @property
    def meta(self) -> Eip712Meta:
        """``custom_data`` or an empty ``Eip712Meta``."""
        return self.custom_data if self.custom_data is not None else Eip712Meta()

    def missing_fields(self) -> List[str]:
        """Names of the fields a populated envelope must carry but this one lacks."""
        required = {
            "from": self.from_,
            "to": self.to,
            "chainId": self.chain_id,
            "nonce": self.nonce,
            "gasLimit": self.gas_limit,
            "maxFeePerGas": self.max_fee_per_gas,
            "maxPriorityFeePerGas": self.max_priority_fee_per_gas,
            "value": self.value,
            "data": self.data,
            "gasPerPubdata": self.meta.gas_per_pubdata,
        }
        return [name for name, value in required.items() if value is None]

    def is_populated(self) -> bool:
        """True once every field needed for signing and submission is set."""
        return self.type == EIP712_TX_TYPE and not self.missing_fields()


class Fee(FrozenModel):
    """
    Fee estimate returned by the ``estimate_fee`` collaborator.

    Accepts the hex-encoded payload of ``zks_estimateFee`` directly.
    """

    gas_limit: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    gas_per_pubdata_limit: int = DEFAULT_GAS_PER_PUBDATA_LIMIT

    @field_validator(
        "gas_limit", "max_fee_per_gas", "max_priority_fee_per_gas",
        "gas_per_pubdata_limit",
        mode="before",
    )
    @classmethod
    def _check_ints(cls, value: Any) -> int:
        return as_int(value)


class ECDSASignature(BaseSignature):
    """
    secp256k1 ECDSA signature serialised as ``r || s || v`` (65 bytes).

    Attributes:
        signature_type: Always ``"ECDSA"``.
        r: 32-byte r component.
        s: 32-byte s component.
        v: Recovery byte (27 or 28).
    """

    signature_type: Literal["ECDSA"] = "ECDSA"
    r: bytes
    s: bytes
    v: int = Field(..., ge=27, le=28)

    @field_validator("r", "s", mode="before")
    @classmethod
    def _check_component(cls, value: Any) -> bytes:
        if isinstance(value, int):
            return value.to_bytes(32, "big")
        raw = as_bytes(value)
        if len(raw) > 32:
            raise ValueError(f"signature component longer than 32 bytes: {len(raw)}")
        return raw.rjust(32, b"\x00")

    def validate_format(self) -> bool:
        if len(self.r) != 32 or len(self.s) != 32:
            raise ValueError("r and s must be 32 bytes")
        if self.v not in (27, 28):
            raise ValueError(f"Invalid recovery ID: {self.v}. Must be 27 or 28")
        return True

    def to_bytes(self) -> bytes:
        """Packed 65-byte ``r || s || v``."""
        self.validate_format()
        return self.r + self.s + bytes([self.v])

    def to_hex(self) -> str:
        return "0x" + self.to_bytes().hex()

    @classmethod
    def from_bytes(cls, signature: bytes) -> "ECDSASignature":
        """
        Parse a 65-byte ``r || s || v`` signature; ``v`` of 0/1 is
        normalised to 27/28.

        Raises:
            ValueError: If ``signature`` is not 65 bytes.
        """
        raw = as_bytes(signature)
        if len(raw) != SIGNATURE_LENGTH:
            raise ValueError(f"Expected {SIGNATURE_LENGTH}-byte signature, got {len(raw)}")
        v = raw[64]
        if v in (0, 1):
            v += 27
        return cls(r=raw[:32], s=raw[32:64], v=v)


def split_signatures(blob: bytes) -> List[ECDSASignature]:
    """
    Split a concatenated multi-key signature into its 65-byte blocks,
    preserving order.

    Raises:
        ValueError: If the blob length is not a positive multiple of 65.
    """
    raw = as_bytes(blob)
    if not raw or len(raw) % SIGNATURE_LENGTH:
        raise ValueError(
            f"Signature blob length {len(raw)} is not a positive multiple of {SIGNATURE_LENGTH}"
        )
    return [
        ECDSASignature.from_bytes(raw[i:i + SIGNATURE_LENGTH])
        for i in range(0, len(raw), SIGNATURE_LENGTH)
    ]
