"""
On-chain balance lookup for the agent wallet.

Queries the USDC ``balanceOf`` of an address over JSON-RPC with
``AsyncWeb3``. Balance display is informational, so RPC failures are
reported as an unknown balance instead of an error.
"""

import logging
from typing import Optional

from web3 import AsyncWeb3

from ..adapters.evm.constants import BASE_MAINNET_CAIP2, BASE_MAINNET_RPC_URL, USDC_ADDRESSES
from ..adapters.evm.ERC20_ABI import get_balance_abi

logger = logging.getLogger(__name__)


def make_web3(rpc_url: str = BASE_MAINNET_RPC_URL, request_timeout: int = 10) -> AsyncWeb3:
    return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
        rpc_url,
        request_kwargs={"timeout": request_timeout}
    ))


async def get_usdc_balance(
    address: str,
    *,
    web3: Optional[AsyncWeb3] = None,
    rpc_url: str = BASE_MAINNET_RPC_URL,
    network: str = BASE_MAINNET_CAIP2,
) -> Optional[int]:
    """
    Query the USDC balance of ``address``.

    Args:
        address: Wallet address (0x-prefixed hex).
        web3: AsyncWeb3 instance; one bound to ``rpc_url`` is created when omitted.
        rpc_url: JSON-RPC endpoint used when ``web3`` is not given.
        network: CAIP-2 network selecting the USDC contract.

    Returns:
        Balance in smallest units (6 decimals), or ``None`` when the RPC call fails.
    """
    web3 = web3 or make_web3(rpc_url)
    try:
        contract = web3.eth.contract(
            address=AsyncWeb3.to_checksum_address(USDC_ADDRESSES[network]),
            abi=get_balance_abi()
        )
        balance = await contract.functions.balanceOf(AsyncWeb3.to_checksum_address(address)).call()
        return int(balance)
    except Exception as exc:
        logger.warning("could not read USDC balance for %s: %s", address, exc)
        return None
