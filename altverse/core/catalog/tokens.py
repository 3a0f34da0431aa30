"""Token catalog and registry keyed by ``"{chain_id}-{address}"``."""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from ..chain_types import ChainId

NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass(frozen=True)
class Token:
    symbol: str
    name: str
    address: str
    chain_id: ChainId
    decimals: int
    price_usd: Optional[Decimal] = None
    native: bool = False
    custom: bool = False

    @property
    def key(self) -> str:
        return token_key(self.chain_id, self.address)

    @property
    def is_native(self) -> bool:
        return self.native or self.address.lower() == NATIVE_TOKEN_ADDRESS

    def with_price(self, price_usd: Optional[Decimal]) -> "Token":
        return replace(self, price_usd=price_usd)


def token_key(chain_id: ChainId, address: str) -> str:
    # Solana mints and Sui coin types are case-sensitive; only EVM hex is folded
    if address.startswith("0x") and "::" not in address:
        address = address.lower()
    return f"{chain_id}-{address}"


class TokenRegistry:
    """In-memory token lookup by composite key and by chain."""

    def __init__(self, tokens: Optional[Iterable[Token]] = None):
        self._by_key: Dict[str, Token] = {}
        self._by_chain: Dict[ChainId, List[Token]] = {}
        for token in tokens or ():
            self.add(token)

    def add(self, token: Token) -> Token:
        existing = self._by_key.get(token.key)
        self._by_key[token.key] = token
        chain_tokens = self._by_chain.setdefault(token.chain_id, [])
        if existing is not None:
            chain_tokens[chain_tokens.index(existing)] = token
        else:
            chain_tokens.append(token)
        return token

    def add_custom_token(self, token: Token) -> Token:
        return self.add(replace(token, custom=True))

    def get(self, chain_id: ChainId, address: str) -> Optional[Token]:
        return self._by_key.get(token_key(chain_id, address))

    def find_by_symbol(self, chain_id: ChainId, symbol: str) -> Optional[Token]:
        wanted = symbol.lower()
        for token in self._by_chain.get(chain_id, []):
            if token.symbol.lower() == wanted:
                return token
        return None

    def tokens_for_chain(self, chain_id: ChainId) -> List[Token]:
        return list(self._by_chain.get(chain_id, []))

    def update_prices(self, prices: Dict[str, Decimal]) -> None:
        """Apply prices keyed by composite token key."""
        for key, price in prices.items():
            token = self._by_key.get(key)
            if token is not None:
                self.add(token.with_price(price))

    def __contains__(self, key: str) -> bool:
        return key in self._by_key

    def __len__(self) -> int:
        return len(self._by_key)


def _mainnet(symbol: str, name: str, address: str, decimals: int) -> Token:
    return Token(symbol=symbol, name=name, address=address, chain_id=1, decimals=decimals)


# Ethereum mainnet assets accepted by the vault tellers, keyed by lower-case symbol
VAULT_DEPOSIT_TOKENS: Dict[str, Token] = {
    "weth": _mainnet("wETH", "Wrapped Ether", "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2", 18),
    "eeth": _mainnet("eETH", "ether.fi ETH", "0x35fa164735182de50811e8e2e824cfb9b6118ac2", 18),
    "weeth": _mainnet("weETH", "Wrapped eETH", "0xcd5fe23c85820f7b72d0926fc9b05b43e359b7ee", 18),
    "steth": _mainnet("stETH", "Lido Staked ETH", "0xae7ab96520de3a18e5e111b5eaab095312d7fe84", 18),
    "wsteth": _mainnet("wstETH", "Lido Wrapped stETH", "0x7f39c581f595b53c5cb19bd0b3f8da6c935e2ca0", 18),
    "lbtc": _mainnet("LBTC", "Lombard Staked BTC", "0x8236a87084f8b84306f72007f36f2618a5634494", 8),
    "wbtc": _mainnet("wBTC", "Wrapped BTC", "0x2260fac5e5542a773aa44fbcfedf7c193bc2c599", 8),
    "cbbtc": _mainnet("cbBTC", "Coinbase Wrapped BTC", "0xcbb7c0000ab88b473b1f5afd9ef808440eed33bf", 8),
    "ebtc": _mainnet("eBTC", "ether.fi BTC", "0xc03baf251b19280b02df5e795228eb1f10567f1a", 8),
    "usdc": _mainnet("USDC", "USD Coin", "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48", 6),
    "dai": _mainnet("DAI", "Dai Stablecoin", "0x6b175474e89094c44da98b954eedeac495271d0f", 18),
    "usdt": _mainnet("USDT", "Tether USD", "0xdac17f958d2ee523a2206206994597c13d831ec7", 6),
    "usde": _mainnet("USDe", "Ethena USDe", "0x4c9edd5852cd905f086c759e8383e09bff1e68b3", 6),
    "deusd": _mainnet("deUSD", "Elixir deUSD", "0xd05ad4e8d518a65ab55cfc28f14ee34e0e5f7ac5", 6),
    "sdeusd": _mainnet("sdeUSD", "Staked deUSD", "0x5be26527e817998a7206475596bf52cd5fe11733", 6),
    "eigen": _mainnet("EIGEN", "Eigen", "0x8a7dc00bbf63f01d63541a76c3c77cf23dec899d", 18),
}

# Native ETH deposits go through the wETH contract
VAULT_DEPOSIT_TOKENS["eth"] = VAULT_DEPOSIT_TOKENS["weth"]


def get_deposit_token(token_id: str) -> Token:
    """Resolve a vault deposit asset by id (``"weth"``, ``"usdc"``...)."""
    try:
        return VAULT_DEPOSIT_TOKENS[token_id.lower()]
    except KeyError:
        raise KeyError(f"Unsupported deposit token: {token_id}") from None


def default_registry() -> TokenRegistry:
    return TokenRegistry({token.key: token for token in VAULT_DEPOSIT_TOKENS.values()}.values())
