from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, NamedTuple, Tuple

from .constants import EIP712_DOMAIN_NAME, EIP712_DOMAIN_VERSION


class TypedDataField(NamedTuple):
    """A single ``(name, type)`` member of an EIP-712 struct."""

    name: str
    type: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "type": self.type}


# -----------------------------
# EIP-712 Domain
# -----------------------------

#: Canonical member order of ``EIP712Domain``; only present members are encoded.
DOMAIN_FIELD_TYPES: Tuple[TypedDataField, ...] = (
    TypedDataField("name", "string"),
    TypedDataField("version", "string"),
    TypedDataField("chainId", "uint256"),
    TypedDataField("verifyingContract", "address"),
    TypedDataField("salt", "bytes32"),
)

DOMAIN_TYPE_NAME: str = "EIP712Domain"


# -----------------------------
# ZKsync EIP-712 Transaction
# -----------------------------

#: Struct schema signed for every ZKsync EIP-712 transaction. Addresses are
#: declared as ``uint256`` by the protocol.
EIP712_TRANSACTION_TYPES: Mapping[str, Tuple[TypedDataField, ...]] = MappingProxyType({
    "Transaction": (
        TypedDataField("txType", "uint256"),
        TypedDataField("from", "uint256"),
        TypedDataField("to", "uint256"),
        TypedDataField("gasLimit", "uint256"),
        TypedDataField("gasPerPubdataByteLimit", "uint256"),
        TypedDataField("maxFeePerGas", "uint256"),
        TypedDataField("maxPriorityFeePerGas", "uint256"),
        TypedDataField("paymaster", "uint256"),
        TypedDataField("nonce", "uint256"),
        TypedDataField("value", "uint256"),
        TypedDataField("data", "bytes"),
        TypedDataField("factoryDeps", "bytes32[]"),
        TypedDataField("paymasterInput", "bytes"),
    ),
})

TRANSACTION_PRIMARY_TYPE: str = "Transaction"


@dataclass
class TransactionTypedData:
    """
    Container for a ZKsync transaction as EIP-712 typed data.

    ``to_dict()`` produces the ``{types, primaryType, domain, message}``
    layout consumed by ``eth_signTypedData_v4`` and
    ``eth_account.messages.encode_typed_data``, which makes the digest
    reproducible with external tooling.

    Attributes:
        chain_id: Chain the transaction is bound to.
        message: Signing input as produced by ``transaction_signing_input``.
    """

    chain_id: int
    message: Dict[str, Any]

    primary_type: str = TRANSACTION_PRIMARY_TYPE

    types: Dict[str, List[Dict[str, str]]] = field(
        default_factory=lambda: {
            DOMAIN_TYPE_NAME: [f.to_dict() for f in DOMAIN_FIELD_TYPES[:3]],
            **{
                name: [f.to_dict() for f in fields]
                for name, fields in EIP712_TRANSACTION_TYPES.items()
            },
        }
    )

    def domain(self) -> Dict[str, Any]:
        return {
            "name": EIP712_DOMAIN_NAME,
            "version": EIP712_DOMAIN_VERSION,
            "chainId": self.chain_id,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Return a dict compatible with EIP-712 structured signing."""
        return {
            "types": self.types,
            "primaryType": self.primary_type,
            "domain": self.domain(),
            "message": self.message,
        }
