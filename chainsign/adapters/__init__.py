"""Chain adapters and adapter dispatch."""

from typing import Optional, Union, assert_never

from ..constants import Chain, ChainConfig, get_chain_config
from .base import ChainAdapter
from .bitcoin import BitcoinAdapter
from .evm import EvmAdapter
from .solana import SolanaAdapter

__all__ = [
    "ChainAdapter",
    "EvmAdapter",
    "SolanaAdapter",
    "BitcoinAdapter",
    "get_adapter",
]


def get_adapter(
    chain: Union[Chain, str],
    config: Optional[ChainConfig] = None
) -> ChainAdapter:
    """
    Get the adapter for a chain.

    Args:
        chain: Chain enum member or its string value
        config: Optional configuration override

    Returns:
        ChainAdapter for the chain

    Raises:
        UnsupportedChainError: If the chain is unknown
        ChainMismatchError: If ``config`` belongs to another chain
    """
    chain = get_chain_config(chain).chain
    if chain is Chain.EVM:
        return EvmAdapter(config)
    elif chain is Chain.SOLANA:
        return SolanaAdapter(config)
    elif chain is Chain.BITCOIN:
        return BitcoinAdapter(config)
    else:
        assert_never(chain)
