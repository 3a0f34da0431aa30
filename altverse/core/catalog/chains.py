"""Static chain catalog."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from ...config import settings
from ..chain_types import ChainFamily, ChainId, to_hex_chain_id


class WalletType(str, Enum):
    """Wallet connector a chain is driven through."""

    EVM = "reown_evm"
    SOLANA = "reown_sol"
    SUI = "suiet_sui"


@dataclass(frozen=True)
class ChainInfo:
    key: str
    name: str
    symbol: str
    chain_id: ChainId
    decimals: int
    rpc_url: str
    explorer_url: str
    family: ChainFamily = ChainFamily.EVM
    wallet_type: WalletType = WalletType.EVM
    mayan_name: Optional[str] = None
    network_name: Optional[str] = None  # indexing service network id
    l2: bool = False

    @property
    def is_evm(self) -> bool:
        return self.family is ChainFamily.EVM

    @property
    def resolved_rpc_url(self) -> str:
        return settings.rpc_url_for(self.chain_id, self.rpc_url)

    def explorer_tx_url(self, tx_hash: str) -> str:
        base = self.explorer_url.rstrip("/")
        if base.endswith("/home"):
            base = base[: -len("/home")]
        return f"{base}/tx/{tx_hash}"

    def to_add_chain_params(self) -> Dict[str, Any]:
        """Payload for ``wallet_addEthereumChain``."""
        return {
            "chainId": to_hex_chain_id(self.chain_id),
            "chainName": self.name.title(),
            "nativeCurrency": {
                "name": self.symbol,
                "symbol": self.symbol,
                "decimals": self.decimals,
            },
            "rpcUrls": [self.resolved_rpc_url],
            "blockExplorerUrls": [self.explorer_url],
        }


CHAINS: Dict[str, ChainInfo] = {
    "ethereum": ChainInfo(
        key="ethereum",
        name="ethereum",
        symbol="ETH",
        chain_id=1,
        decimals=18,
        rpc_url="https://ethereum-rpc.publicnode.com",
        explorer_url="https://etherscan.io",
        mayan_name="ethereum",
        network_name="eth-mainnet",
    ),
    "arbitrum": ChainInfo(
        key="arbitrum",
        name="arbitrum",
        symbol="ARB",
        chain_id=42161,
        decimals=18,
        rpc_url="https://arb1.arbitrum.io/rpc",
        explorer_url="https://arbiscan.io",
        mayan_name="arbitrum",
        network_name="arb-mainnet",
        l2=True,
    ),
    "optimism": ChainInfo(
        key="optimism",
        name="optimism",
        symbol="OP",
        chain_id=10,
        decimals=18,
        rpc_url="https://mainnet.optimism.io",
        explorer_url="https://optimistic.etherscan.io",
        mayan_name="optimism",
        network_name="opt-mainnet",
        l2=True,
    ),
    "base": ChainInfo(
        key="base",
        name="base",
        symbol="BASE",
        chain_id=8453,
        decimals=18,
        rpc_url="https://mainnet.base.org",
        explorer_url="https://basescan.org",
        mayan_name="base",
        network_name="base-mainnet",
        l2=True,
    ),
    "unichain": ChainInfo(
        key="unichain",
        name="unichain",
        symbol="UNI",
        chain_id=130,
        decimals=18,
        rpc_url="https://unichain-rpc.publicnode.com",
        explorer_url="https://uniscan.xyz",
        mayan_name="unichain",
        network_name="unichain-mainnet",
        l2=True,
    ),
    "sui": ChainInfo(
        key="sui",
        name="sui",
        symbol="SUI",
        chain_id=999,
        decimals=9,
        rpc_url="https://sui-mainnet-endpoint.blockvision.org",
        explorer_url="https://suiscan.xyz/mainnet/home",
        family=ChainFamily.SUI,
        wallet_type=WalletType.SUI,
        mayan_name="sui",
    ),
    "polygon": ChainInfo(
        key="polygon",
        name="polygon",
        symbol="MATIC",
        chain_id=137,
        decimals=18,
        rpc_url="https://polygon-rpc.com",
        explorer_url="https://polygonscan.com",
        mayan_name="polygon",
        network_name="polygon-mainnet",
    ),
    "binance-smart-chain": ChainInfo(
        key="binance-smart-chain",
        name="bnb chain",
        symbol="BNB",
        chain_id=56,
        decimals=18,
        rpc_url="https://bsc-dataseed.binance.org",
        explorer_url="https://bscscan.com",
        mayan_name="bsc",
        network_name="bnb-mainnet",
    ),
    "avalanche": ChainInfo(
        key="avalanche",
        name="avalanche",
        symbol="AVAX",
        chain_id=43114,
        decimals=18,
        rpc_url="https://api.avax.network/ext/bc/C/rpc",
        explorer_url="https://snowtrace.io",
        mayan_name="avalanche",
        network_name="avax-mainnet",
    ),
    "solana": ChainInfo(
        key="solana",
        name="solana",
        symbol="SOL",
        chain_id=101,
        decimals=9,
        rpc_url="https://api.mainnet-beta.solana.com",
        explorer_url="https://explorer.solana.com/",
        family=ChainFamily.SOLANA,
        wallet_type=WalletType.SOLANA,
        mayan_name="solana",
        network_name="solana-mainnet",
    ),
}

_BY_CHAIN_ID: Dict[ChainId, ChainInfo] = {chain.chain_id: chain for chain in CHAINS.values()}

DEFAULT_SOURCE_CHAIN = CHAINS["ethereum"]
DEFAULT_DESTINATION_CHAIN = CHAINS["unichain"]


def get_chain(key: str) -> ChainInfo:
    """Look up a chain by catalog key; raises ``KeyError`` for unknown keys."""
    return CHAINS[key]


def get_chain_by_id(chain_id: ChainId) -> Optional[ChainInfo]:
    return _BY_CHAIN_ID.get(chain_id)


def list_chains(family: Optional[ChainFamily] = None) -> List[ChainInfo]:
    if family is None:
        return list(CHAINS.values())
    return [chain for chain in CHAINS.values() if chain.family is family]
