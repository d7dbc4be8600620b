"""
IPaymasterFlow + ERC-1271 Contract ABI Module

Minimal ABI definitions for the ZKsync paymaster flow interface and the
ERC-1271 signature validation hook of smart accounts.

Usage:
    from .abis import (
        get_paymaster_flow_abi,
        get_is_valid_signature_abi,
    )

    # Encode / decode paymaster input
    flow_abi = get_paymaster_flow_abi()

    # Validate a smart-account signature on-chain
    erc1271_abi = get_is_valid_signature_abi()
"""

from typing import Any, Dict, List


def get_general_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the ``general(bytes)`` paymaster flow.

    Returns:
        List[Dict[str, Any]]: ABI for the ``general`` function
    """
    return [
        {
            "name": "general",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [{"name": "input", "type": "bytes"}],
            "outputs": [],
        }
    ]


def get_approval_based_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for the ``approvalBased(address,uint256,bytes)`` paymaster flow.

    Returns:
        List[Dict[str, Any]]: ABI for the ``approvalBased`` function
    """
    return [
        {
            "name": "approvalBased",
            "type": "function",
            "stateMutability": "nonpayable",
            "inputs": [
                {"name": "_token", "type": "address"},
                {"name": "_minAllowance", "type": "uint256"},
                {"name": "_innerInput", "type": "bytes"},
            ],
            "outputs": [],
        }
    ]


def get_paymaster_flow_abi() -> List[Dict[str, Any]]:
    """
    Get the complete ``IPaymasterFlow`` ABI.

    Returns:
        List[Dict[str, Any]]: ``general`` and ``approvalBased`` entries

    Example:
        abi = get_paymaster_flow_abi()
        contract = web3.eth.contract(abi=abi)
        data = contract.encode_abi("general", args=[b""])
    """
    return get_general_abi() + get_approval_based_abi()


def get_is_valid_signature_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for ERC-1271 ``isValidSignature(bytes32,bytes)``.

    Example:
        abi = get_is_valid_signature_abi()
        contract = web3.eth.contract(address=account_address, abi=abi)
        magic = await contract.functions.isValidSignature(digest, signature).call()
    """
    return [
        {
            "name": "isValidSignature",
            "type": "function",
            "stateMutability": "view",
            "inputs": [
                {"name": "_hash", "type": "bytes32"},
                {"name": "_signature", "type": "bytes"},
            ],
            "outputs": [{"name": "magicValue", "type": "bytes4"}],
        }
    ]
