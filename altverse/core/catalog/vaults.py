"""Vault catalog.

Each vault is a share token on Ethereum mainnet; deposits go through the
vault's teller contract, which pulls the approved asset from the wallet.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from ...config import settings
from ..chain_types import ChainId


@dataclass(frozen=True)
class Vault:
    id: int
    name: str
    address: str
    expected_symbol: str
    chain_id: ChainId = 1
    teller_address: Optional[str] = None
    share_decimals: Optional[int] = None

    @property
    def resolved_teller_address(self) -> Optional[str]:
        return settings.vault_teller_overrides.get(self.id, self.teller_address)

    @property
    def accepts_deposits(self) -> bool:
        return self.resolved_teller_address is not None


VAULTS: Dict[int, Vault] = {
    1: Vault(
        id=1,
        name="Liquid ETH Yield",
        address="0xf0bb20865277aBd641a307eCe5Ee04E79073416C",
        expected_symbol="wETH",
        teller_address="0x9AA79C84b79816ab920bBcE20f8f74557B514734",
    ),
    2: Vault(
        id=2,
        name="Liquid BTC Yield",
        address="0x5f46d540b6eD704C3c8789105F30E075AA900726",
        expected_symbol="wBTC",
    ),
    3: Vault(
        id=3,
        name="Market-Neutral USD",
        address="0x08c6F91e2B681FaF5e17227F2a44C307b3C1364C",
        expected_symbol="USDC",
    ),
    4: Vault(
        id=4,
        name="EIGEN Restaking",
        address="0xE77076518A813616315EaAba6cA8e595E845EeE9",
        expected_symbol="EIGEN",
    ),
    5: Vault(
        id=5,
        name="UltraYield Stablecoin Vault",
        address="0xbc0f3B23930fff9f4894914bD745ABAbA9588265",
        expected_symbol="USDC",
    ),
    6: Vault(
        id=6,
        name="Liquid Move ETH",
        address="0xca8711dAF13D852ED2121E4bE3894Dae366039E4",
        expected_symbol="wETH",
    ),
    7: Vault(
        id=7,
        name="The Bera ETH Vault",
        address="0x83599937c2C9bEA0E0E8ac096c6f32e86486b410",
        expected_symbol="wETH",
    ),
    8: Vault(
        id=8,
        name="The Bera BTC Vault",
        address="0xC673ef7791724f0dcca38adB47Fbb3AEF3DB6C80",
        expected_symbol="wBTC",
    ),
}


def get_vault(vault_id: int) -> Vault:
    """Raises ``KeyError`` for unknown vault ids."""
    try:
        return VAULTS[vault_id]
    except KeyError:
        raise KeyError(f"Unknown vault id: {vault_id}") from None


def list_vaults() -> List[Vault]:
    return list(VAULTS.values())
