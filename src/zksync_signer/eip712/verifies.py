"""
Signature Verification Helpers

Off-chain checks for the signatures produced by the authorization
strategies, plus an optional on-chain ERC-1271 check for smart accounts.

Current coverage
----------------
recover_signer
    Recover the address that produced a 65-byte ``r || s || v`` signature
    over a 32-byte digest.

verify_ecdsa_signature
    Confirm a single signature was produced by ``address``.

verify_multisig_signature
    Confirm a concatenated signature blob was produced, block by block and
    in order, by ``addresses``.

verify_eip1271_signature
    Ask a deployed account contract whether it accepts a signature.
"""

from typing import Sequence, Union

from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError as KeyValidationError
from eth_utils import ValidationError as UtilsValidationError, is_address, to_checksum_address
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception

from ..engine.exceptions import EncodingError
from ..utils import as_bytes, logger
from .abis import get_is_valid_signature_abi
from .constants import EIP1271_MAGIC_VALUE
from .schemas import ECDSASignature, split_signatures


def recover_signer(digest: bytes, signature: Union[bytes, str, ECDSASignature]) -> str:
    """
    Recover the checksummed signer address of ``signature`` over ``digest``.

    Raises:
        EncodingError: If the digest is not 32 bytes or the signature is
            malformed or unrecoverable.
    """
    try:
        digest = as_bytes(digest)
        parsed = signature if isinstance(signature, ECDSASignature) else ECDSASignature.from_bytes(signature)
    except ValueError as exc:
        raise EncodingError(f"Malformed signature input: {exc}") from exc
    if len(digest) != 32:
        raise EncodingError(f"Digest must be 32 bytes, got {len(digest)}")

    try:
        key_signature = keys.Signature(vrs=(
            parsed.v - 27,
            int.from_bytes(parsed.r, "big"),
            int.from_bytes(parsed.s, "big"),
        ))
        public_key = key_signature.recover_public_key_from_msg_hash(digest)
    except (BadSignature, KeyValidationError, UtilsValidationError) as exc:
        raise EncodingError(f"Cannot recover signer: {exc}") from exc
    return public_key.to_checksum_address()


def verify_ecdsa_signature(
    digest: bytes,
    signature: Union[bytes, str, ECDSASignature],
    address: str,
) -> bool:
    """
    Return ``True`` if ``signature`` over ``digest`` was produced by ``address``.

    Malformed signatures verify as ``False`` rather than raising.
    """
    if not is_address(address):
        return False
    try:
        recovered = recover_signer(digest, signature)
    except EncodingError:
        return False
    return recovered == to_checksum_address(address)


def verify_multisig_signature(
    digest: bytes,
    signatures: Union[bytes, str],
    addresses: Sequence[str],
) -> bool:
    """
    Return ``True`` if ``signatures`` holds exactly one 65-byte block per
    address and the i-th block was produced by the i-th address.

    Order matters: the same signatures in a different order do not verify.
    """
    try:
        blocks = split_signatures(signatures)
    except ValueError:
        return False
    if len(blocks) != len(addresses):
        return False
    return all(
        verify_ecdsa_signature(digest, block, address)
        for block, address in zip(blocks, addresses)
    )


async def verify_eip1271_signature(
    w3: AsyncWeb3,
    account: str,
    digest: bytes,
    signature: Union[bytes, str],
) -> bool:
    """
    Ask the contract at ``account`` whether it accepts ``signature`` for
    ``digest`` via ERC-1271 ``isValidSignature``.

    Args:
        w3:        ``AsyncWeb3`` connected to the account's chain.
        account:   Smart account address.
        digest:    32-byte digest that was signed.
        signature: Signature bytes in the account's own format.

    Returns:
        ``True`` if the call returned the ERC-1271 magic value, ``False`` if
        it returned anything else or reverted.
    """
    contract = w3.eth.contract(
        address=AsyncWeb3.to_checksum_address(account),
        abi=get_is_valid_signature_abi(),
    )
    try:
        result = await contract.functions.isValidSignature(
            as_bytes(digest), as_bytes(signature)
        ).call()
    except Web3Exception as e:
        logger.debug(f"isValidSignature call failed for {account}: {e}")
        return False
    return bytes(result) == EIP1271_MAGIC_VALUE
