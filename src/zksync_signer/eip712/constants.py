"""
ZKsync Era EIP-712 Protocol Constants and Environment Configuration

Fixed values of the ZKsync EIP-712 transaction scheme plus the helpers that
read runtime configuration from the environment. Every constant here is a
plain immutable value; nothing in the package rebinds them.
"""

import os
from typing import Optional

import dotenv

dotenv.load_dotenv()

#: Transaction type discriminant of ZKsync EIP-712 transactions.
EIP712_TX_TYPE: int = 0x71

#: Default ``gasPerPubdataByteLimit`` used when the caller leaves it unset.
DEFAULT_GAS_PER_PUBDATA_LIMIT: int = 50_000

#: EIP-712 domain ``name`` for transaction signing.
EIP712_DOMAIN_NAME: str = "zkSync"

#: EIP-712 domain ``version`` for transaction signing.
EIP712_DOMAIN_VERSION: str = "2"

#: Prefix that precedes domain separator and struct hash in every digest.
TYPED_DATA_PREFIX: bytes = b"\x19\x01"

#: EIP-191 personal message prefix.
MESSAGE_PREFIX: bytes = b"\x19Ethereum Signed Message:\n"

ZERO_ADDRESS: str = "0x0000000000000000000000000000000000000000"

#: Largest bytecode accepted by ``hash_bytecode`` (length fits in 2 bytes of words).
MAX_BYTECODE_LEN_BYTES: int = ((1 << 16) - 1) * 32

#: Version bytes written into the first two bytes of a bytecode hash.
BYTECODE_HASH_VERSION: bytes = b"\x01\x00"

#: Length of a serialized ``r || s || v`` ECDSA signature.
SIGNATURE_LENGTH: int = 65

#: Magic value returned by a valid ERC-1271 ``isValidSignature`` call.
EIP1271_MAGIC_VALUE: bytes = b"\x16\x26\xba\x7e"


def get_private_key_from_env() -> Optional[str]:
    """
    Load the account private key from environment variables.

    Environment Variable:
        - ZKSYNC_PRIVATE_KEY: Account private key (0x-prefixed hex format)

    Returns:
        str: Private key from environment, or None if not configured

    Note:
        The private key should be stored securely in environment variables
        and never committed to version control.
    """
    return os.getenv("ZKSYNC_PRIVATE_KEY")


def get_rpc_url_from_env() -> Optional[str]:
    """
    Load the L2 JSON-RPC endpoint from environment variables.

    Environment Variable:
        - ZKSYNC_RPC_URL: HTTP(S) endpoint of a ZKsync Era node

    Returns:
        str: RPC URL from environment, or None if not configured

    Example:
        # In your .env file or environment setup:
        # export ZKSYNC_RPC_URL="https://sepolia.era.zksync.dev"
    """
    url = os.getenv("ZKSYNC_RPC_URL")
    return url.strip() if url and url.strip() else None
