"""Shared fakes for the transfer core tests."""

from decimal import Decimal
from typing import Dict, List, Optional, Set, Tuple

import pytest

from altverse.core.catalog.chains import CHAINS, ChainInfo, WalletType
from altverse.core.catalog.tokens import Token
from altverse.core.execution.chain_rpc import ChainRpc
from altverse.core.execution.models import PreparedTransaction, TransactionReceipt
from altverse.core.execution.tx_builder import ERC20_APPROVE_SELECTOR
from altverse.core.gas.strategy import FeeData
from altverse.core.quotes.models import Quote, TransferRequest
from altverse.core.quotes.provider import QuoteProvider
from altverse.core.recovery.errors import ConfirmationTimeoutError, UnknownChainError
from altverse.core.wallet.context import WalletContext

WALLET_ADDRESS = "0x" + "11" * 20


class FakeRpc(ChainRpc):
    """In-memory chain state. Approvals sent through FakeWallet update allowances."""

    def __init__(self, fee_data: Optional[FeeData] = None):
        self.balances: Dict[Tuple[int, str, str], int] = {}
        self.allowances: Dict[Tuple[int, str, str, str], int] = {}
        self.reverted: Set[str] = set()
        self.timeouts: Set[str] = set()
        self.fee_data = fee_data
        self.receipt_waits: List[str] = []

    def set_balance(self, chain_id: int, token: str, owner: str, amount: int) -> None:
        self.balances[(chain_id, token.lower(), owner.lower())] = amount

    def set_allowance(self, chain_id: int, token: str, owner: str, spender: str, amount: int) -> None:
        self.allowances[(chain_id, token.lower(), owner.lower(), spender.lower())] = amount

    async def get_balance(self, chain_id, token_address, owner):
        return self.balances.get((chain_id, token_address.lower(), owner.lower()), 0)

    async def get_allowance(self, chain_id, token_address, owner, spender):
        return self.allowances.get((chain_id, token_address.lower(), owner.lower(), spender.lower()), 0)

    async def get_fee_data(self, chain_id):
        return self.fee_data

    async def wait_for_receipt(self, chain_id, tx_hash, confirmations=1, timeout=None):
        self.receipt_waits.append(tx_hash)
        if tx_hash in self.timeouts:
            raise ConfirmationTimeoutError(tx_hash, chain_id=chain_id, timeout_seconds=timeout)
        status = 0 if tx_hash in self.reverted else 1
        return TransactionReceipt(tx_hash=tx_hash, status=status, block_number=100, gas_used=50_000)

    def apply(self, tx: PreparedTransaction) -> None:
        if tx.data.startswith(ERC20_APPROVE_SELECTOR):
            body = tx.data[len(ERC20_APPROVE_SELECTOR):]
            spender = "0x" + body[24:64]
            amount = int(body[64:128], 16)
            self.set_allowance(tx.chain_id, tx.to_address, tx.from_address, spender, amount)


class FakeWallet(WalletContext):
    def __init__(
        self,
        rpc: Optional[FakeRpc] = None,
        *,
        chain_id: int = 1,
        address: str = WALLET_ADDRESS,
        wallet_type: WalletType = WalletType.EVM,
        known_chains: Optional[Set[int]] = None,
        switch_error: Optional[Exception] = None,
        add_error: Optional[Exception] = None,
        sticky: bool = False,
    ):
        self.rpc = rpc
        self.chain_id = chain_id
        self.address = address
        self.wallet_type = wallet_type
        self.known_chains = known_chains
        self.switch_error = switch_error
        self.add_error = add_error
        self.sticky = sticky
        self.calls: List[Tuple[str, int]] = []
        self.sent: List[PreparedTransaction] = []
        self.fail_on: Dict[str, Exception] = {}
        self.timeout_next: Set[str] = set()
        self.revert_next: Set[str] = set()

    async def get_chain_id(self):
        return hex(self.chain_id)

    async def switch_chain(self, chain: ChainInfo) -> None:
        self.calls.append(("switch", chain.chain_id))
        if self.switch_error is not None:
            raise self.switch_error
        if self.known_chains is not None and chain.chain_id not in self.known_chains:
            raise UnknownChainError(chain.chain_id)
        if not self.sticky:
            self.chain_id = chain.chain_id

    async def add_chain(self, chain: ChainInfo) -> None:
        self.calls.append(("add", chain.chain_id))
        if self.add_error is not None:
            raise self.add_error
        if self.known_chains is not None:
            self.known_chains.add(chain.chain_id)

    async def send_transaction(self, tx: PreparedTransaction) -> str:
        error = self.fail_on.get(tx.tx_type.value)
        if error is not None:
            raise error
        self.sent.append(tx)
        tx_hash = "0x" + format(len(self.sent), "064x")
        if self.rpc is not None:
            if tx.tx_type.value in self.timeout_next:
                self.rpc.timeouts.add(tx_hash)
            elif tx.tx_type.value in self.revert_next:
                self.rpc.reverted.add(tx_hash)
            else:
                self.rpc.apply(tx)
        return tx_hash


class StaticQuoteProvider(QuoteProvider):
    name = "static"

    def __init__(self, quotes: Optional[List[Quote]] = None, error: Optional[Exception] = None):
        self.quotes = quotes if quotes is not None else []
        self.error = error
        self.requests: List[TransferRequest] = []

    async def get_quotes(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return list(self.quotes)


@pytest.fixture
def rpc():
    return FakeRpc()


@pytest.fixture
def wallet(rpc):
    return FakeWallet(rpc)


@pytest.fixture
def ethereum():
    return CHAINS["ethereum"]


@pytest.fixture
def arbitrum():
    return CHAINS["arbitrum"]


@pytest.fixture
def usdc():
    return Token(
        symbol="USDC",
        name="USD Coin",
        address="0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48",
        chain_id=1,
        decimals=6,
    )


@pytest.fixture
def arb_usdc():
    return Token(
        symbol="USDC",
        name="USD Coin",
        address="0xaf88d065e77c8cc2239327c5edb3a432268e5831",
        chain_id=42161,
        decimals=6,
    )


@pytest.fixture
def make_quote():
    def _make(expected="1.487", **kwargs):
        kwargs.setdefault("route_id", "SWIFT")
        return Quote(expected_output_amount=Decimal(expected), **kwargs)

    return _make


@pytest.fixture
def fake_wallet_cls():
    return FakeWallet


@pytest.fixture
def quote_provider_cls():
    return StaticQuoteProvider
