from .accounts import SmartAccount, serialize_transaction
from .digest import (
    get_signed_digest,
    hash_bytecode,
    hash_message,
    hash_typed_data,
    hash_typed_data_message,
    transaction_signing_input,
    transaction_typed_data,
)
from .paymaster import (
    ApprovalBasedPaymasterInput,
    GeneralPaymasterInput,
    PaymasterInput,
    decode_paymaster_input,
    get_approval_based_paymaster_input,
    get_general_paymaster_input,
    get_paymaster_flow_abi,
    get_paymaster_params,
)
from .providers import BaseProvider, Web3Provider
from .schemas import (
    Domain,
    ECDSASignature,
    Eip712Meta,
    Fee,
    PaymasterParams,
    TransactionEnvelope,
    split_signatures,
)
from .signatures import (
    AccountSigner,
    ECDSASigner,
    MultisigECDSASigner,
    populate_transaction_ecdsa,
    populate_transaction_multisig_ecdsa,
    sign_payload_with_ecdsa,
    sign_payload_with_multiple_ecdsa,
)
from .standards import EIP712_TRANSACTION_TYPES, TypedDataField
from .typed_data import (
    TypeRegistry,
    canonical_type_string,
    domain_separator,
    domain_type,
    encode_value,
    get_primary_type,
    hash_struct,
    type_hash,
)
from .verifies import (
    recover_signer,
    verify_ecdsa_signature,
    verify_eip1271_signature,
    verify_multisig_signature,
)

__all__ = [
    "SmartAccount",
    "serialize_transaction",
    "get_signed_digest",
    "hash_bytecode",
    "hash_message",
    "hash_typed_data",
    "hash_typed_data_message",
    "transaction_signing_input",
    "transaction_typed_data",
    "ApprovalBasedPaymasterInput",
    "GeneralPaymasterInput",
    "PaymasterInput",
    "decode_paymaster_input",
    "get_approval_based_paymaster_input",
    "get_general_paymaster_input",
    "get_paymaster_flow_abi",
    "get_paymaster_params",
    "BaseProvider",
    "Web3Provider",
    "Domain",
    "ECDSASignature",
    "Eip712Meta",
    "Fee",
    "PaymasterParams",
    "TransactionEnvelope",
    "split_signatures",
    "AccountSigner",
    "ECDSASigner",
    "MultisigECDSASigner",
    "populate_transaction_ecdsa",
    "populate_transaction_multisig_ecdsa",
    "sign_payload_with_ecdsa",
    "sign_payload_with_multiple_ecdsa",
    "EIP712_TRANSACTION_TYPES",
    "TypedDataField",
    "TypeRegistry",
    "canonical_type_string",
    "domain_separator",
    "domain_type",
    "encode_value",
    "get_primary_type",
    "hash_struct",
    "type_hash",
    "recover_signer",
    "verify_ecdsa_signature",
    "verify_eip1271_signature",
    "verify_multisig_signature",
]
