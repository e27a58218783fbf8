"""
ERC20 Smart Contract ABI Module

Minimal ABI definitions for the read-only token calls the agent makes.

Usage:
    from .ERC20_ABI import get_balance_abi

    contract = w3.eth.contract(address=token_address, abi=get_balance_abi())
    balance = await contract.functions.balanceOf(owner).call()
"""

from typing import Dict, Any, List


def get_balance_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for querying a token balance.

    Returns:
        List[Dict[str, Any]]: ABI for balanceOf function
    """
    return [
        {
            "name": "balanceOf",
            "type": "function",
            "stateMutability": "view",
            "inputs": [{"name": "account", "type": "address"}],
            "outputs": [{"name": "", "type": "uint256"}],
        }
    ]
