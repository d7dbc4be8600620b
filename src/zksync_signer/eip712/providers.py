"""
L2 Network Collaborators

The signing engine needs exactly three things from the network: a fee
estimate, an account nonce and (for callers that want it) the chain id.
``BaseProvider`` declares that surface; ``Web3Provider`` implements it on top
of ``web3.AsyncWeb3`` against a ZKsync Era JSON-RPC endpoint.

No retries are performed here: any RPC failure propagates to the caller.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from web3 import AsyncWeb3
from web3.exceptions import Web3RPCError

from ..engine.exceptions import ConfigurationError
from ..utils import logger
from .constants import EIP712_TX_TYPE, get_rpc_url_from_env
from .schemas import Fee, TransactionEnvelope


def _quantity(value: int) -> str:
    return hex(value)


def transaction_to_rpc(tx: TransactionEnvelope) -> Dict[str, Any]:
    """
    Render an envelope as a JSON-RPC ``CallRequest`` with ``eip712Meta``,
    the shape accepted by ``zks_estimateFee`` and ``eth_estimateGas``.
    """
    request: Dict[str, Any] = {"type": _quantity(tx.type or EIP712_TX_TYPE)}
    if tx.from_ is not None:
        request["from"] = tx.from_
    if tx.to is not None:
        request["to"] = tx.to
    for key, value in (
        ("gas", tx.gas_limit),
        ("gasPrice", tx.gas_price),
        ("maxFeePerGas", tx.max_fee_per_gas),
        ("maxPriorityFeePerGas", tx.max_priority_fee_per_gas),
        ("nonce", tx.nonce),
        ("value", tx.value),
    ):
        if value is not None:
            request[key] = _quantity(value)
    request["data"] = "0x" + (tx.data or b"").hex()

    meta = tx.custom_data
    if meta is not None:
        eip712_meta: Dict[str, Any] = {
            "factoryDeps": [list(dep) for dep in meta.factory_deps],
        }
        if meta.gas_per_pubdata is not None:
            eip712_meta["gasPerPubdata"] = _quantity(meta.gas_per_pubdata)
        if meta.custom_signature is not None:
            eip712_meta["customSignature"] = list(meta.custom_signature)
        if meta.paymaster_params is not None:
            eip712_meta["paymasterParams"] = {
                "paymaster": meta.paymaster_params.paymaster,
                "paymasterInput": list(meta.paymaster_params.paymaster_input),
            }
        request["eip712Meta"] = eip712_meta
    return request


class BaseProvider(ABC):
    """
    Network data source consumed by transaction population.

    Implementations must be safe to call concurrently from one event loop.
    """

    @abstractmethod
    async def estimate_fee(self, tx: TransactionEnvelope) -> Fee:
        """Estimate gas limit, fees and gas-per-pubdata for ``tx``."""

    @abstractmethod
    async def get_transaction_count(self, address: str, block_tag: str = "pending") -> int:
        """Nonce of ``address`` at ``block_tag``."""

    @abstractmethod
    async def get_chain_id(self) -> int:
        """Chain id of the connected network."""


class Web3Provider(BaseProvider):
    """
    ``BaseProvider`` backed by ``web3.AsyncWeb3``.

    Args:
        rpc_url: ZKsync Era JSON-RPC endpoint. Falls back to the
            ``ZKSYNC_RPC_URL`` environment variable.
        request_timeout: HTTP request timeout in seconds.
        w3: Pre-built ``AsyncWeb3`` instance; overrides ``rpc_url``.

    Raises:
        ConfigurationError: If neither ``w3``, ``rpc_url`` nor
            ``ZKSYNC_RPC_URL`` is available.

    Example:
        provider = Web3Provider("https://sepolia.era.zksync.dev")
        fee = await provider.estimate_fee(tx)
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        request_timeout: int = 60,
        w3: Optional[AsyncWeb3] = None,
    ):
        self._rpc_url = rpc_url if rpc_url else get_rpc_url_from_env()
        self._request_timeout = request_timeout

        if w3 is None and not self._rpc_url:
            raise ConfigurationError(
                "RPC URL not provided. Either pass 'rpc_url' parameter or "
                "set 'ZKSYNC_RPC_URL' environment variable."
            )

        self.w3 = w3 if w3 is not None else AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            self._rpc_url,
            request_kwargs={"timeout": self._request_timeout}
        ))

    async def estimate_fee(self, tx: TransactionEnvelope) -> Fee:
        response = await self.w3.provider.make_request("zks_estimateFee", [transaction_to_rpc(tx)])
        if response.get("error"):
            logger.error(f"zks_estimateFee failed: {response['error']}")
            raise Web3RPCError(str(response["error"]), rpc_response=response)
        logger.debug(f"Got fee estimate: {response['result']}")
        return Fee.model_validate(response["result"])

    async def get_transaction_count(self, address: str, block_tag: str = "pending") -> int:
        return await self.w3.eth.get_transaction_count(AsyncWeb3.to_checksum_address(address), block_tag)

    async def get_chain_id(self) -> int:
        return await self.w3.eth.chain_id
