"""
Transaction builder for ERC-20 approvals and vault teller deposits,
plus the read-call encodings the RPC layer needs.
"""

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Union

from .models import PreparedTransaction, TransactionType


# Function selectors
ERC20_APPROVE_SELECTOR = "0x095ea7b3"       # approve(address,uint256)
ERC20_BALANCE_OF_SELECTOR = "0x70a08231"    # balanceOf(address)
ERC20_ALLOWANCE_SELECTOR = "0xdd62ed3e"     # allowance(address,address)
ERC20_TOTAL_SUPPLY_SELECTOR = "0x18160ddd"  # totalSupply()
ERC20_DECIMALS_SELECTOR = "0x313ce567"      # decimals()
TELLER_DEPOSIT_SELECTOR = "0x0efe6a8b"      # deposit(address,uint256,uint256)

MAX_UINT256 = 2**256 - 1


def _encode_uint256(value: int) -> str:
    """Encode a uint256 as a 32-byte hex string (without 0x prefix)."""
    if value < 0 or value > MAX_UINT256:
        raise ValueError(f"Value out of uint256 range: {value}")
    return format(value, "064x")


def _encode_address(address: str) -> str:
    """Encode an address as a 32-byte hex string (without 0x prefix)."""
    addr = address.lower().replace("0x", "")
    if len(addr) != 40:
        raise ValueError(f"Invalid address: {address}")
    return addr.zfill(64)


def to_base_units(amount: Union[str, Decimal], decimals: int) -> int:
    """
    Convert a human amount to integer base units, truncating extra precision.

    >>> to_base_units("1.5", 18)
    1500000000000000000
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {amount!r}") from None
    if not value.is_finite() or value < 0:
        raise ValueError(f"Invalid amount: {amount!r}")
    scaled = (value * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_DOWN)
    return int(scaled)


def from_base_units(value: int, decimals: int) -> Decimal:
    return Decimal(value) / (Decimal(10) ** decimals)


def encode_balance_of(owner: str) -> str:
    return ERC20_BALANCE_OF_SELECTOR + _encode_address(owner)


def encode_allowance(owner: str, spender: str) -> str:
    return ERC20_ALLOWANCE_SELECTOR + _encode_address(owner) + _encode_address(spender)


def decode_uint256(result: str) -> int:
    """Decode an ``eth_call`` return value; empty results decode to 0."""
    data = (result or "0x").replace("0x", "")
    return int(data[:64], 16) if data else 0


class TransactionBuilder:
    """Builds the writes of an approve/deposit sequence."""

    @staticmethod
    def build_erc20_approve(
        chain_id: int,
        owner_address: str,
        token_address: str,
        spender_address: str,
        amount: int,
        description: str = "",
    ) -> PreparedTransaction:
        """
        Build an ERC20 approval for exactly ``amount`` base units.

        An amount of 0 is the allowance reset some tokens (USDT) require
        before a non-zero allowance can be changed.
        """
        calldata = (
            ERC20_APPROVE_SELECTOR +
            _encode_address(spender_address) +
            _encode_uint256(amount)
        )
        return PreparedTransaction(
            tx_type=TransactionType.APPROVE if amount else TransactionType.ALLOWANCE_RESET,
            chain_id=chain_id,
            from_address=owner_address,
            to_address=token_address,
            data=calldata,
            value=0,
            description=description or f"Approve {spender_address[:10]}... to spend {amount}",
        )

    @staticmethod
    def build_teller_deposit(
        chain_id: int,
        owner_address: str,
        teller_address: str,
        token_address: str,
        amount: int,
        min_mint: int = 0,
        description: str = "",
    ) -> PreparedTransaction:
        """Build ``deposit(depositAsset, depositAmount, minimumMint)`` on a vault teller."""
        calldata = (
            TELLER_DEPOSIT_SELECTOR +
            _encode_address(token_address) +
            _encode_uint256(amount) +
            _encode_uint256(min_mint)
        )
        return PreparedTransaction(
            tx_type=TransactionType.DEPOSIT,
            chain_id=chain_id,
            from_address=owner_address,
            to_address=teller_address,
            data=calldata,
            value=0,
            description=description or f"Deposit {amount} into {teller_address[:10]}...",
        )
