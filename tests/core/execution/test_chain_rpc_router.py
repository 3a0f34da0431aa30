"""Per-family RPC routing and the transfer state machine."""

import pytest

from altverse.core.chain_types import SOLANA_CHAIN_ID, ChainFamily
from altverse.core.execution.chain_rpc import ChainRpcRouter
from altverse.core.execution.models import OrchestratorState
from altverse.core.execution.orchestrator import TransferRun
from altverse.core.recovery.errors import InvalidTransitionError, RpcError


class TestChainRpcRouter:
    @pytest.mark.asyncio
    async def test_routes_evm_chains(self, rpc):
        rpc.set_balance(42161, "0xToken", "0xOwner", 7)
        router = ChainRpcRouter({ChainFamily.EVM: rpc})

        assert await router.get_balance(42161, "0xtoken", "0xowner") == 7
        assert router.client_for(1) is rpc

    @pytest.mark.asyncio
    async def test_receipt_wait_delegates(self, rpc):
        router = ChainRpcRouter({ChainFamily.EVM: rpc})

        receipt = await router.wait_for_receipt(1, "0xabc", confirmations=1, timeout=5)

        assert receipt.succeeded
        assert rpc.receipt_waits == ["0xabc"]

    @pytest.mark.asyncio
    async def test_missing_family(self, rpc):
        router = ChainRpcRouter({ChainFamily.EVM: rpc})

        with pytest.raises(RpcError, match="solana"):
            await router.get_balance(SOLANA_CHAIN_ID, "mint", "owner")


class TestTransferRun:
    def test_records_history(self):
        run = TransferRun()

        run.transition_to(OrchestratorState.CHAIN_VERIFIED)
        run.transition_to(OrchestratorState.BALANCE_CHECKED, reason="balance ok")

        assert run.state is OrchestratorState.BALANCE_CHECKED
        assert [t.to_state for t in run.history] == [
            OrchestratorState.CHAIN_VERIFIED,
            OrchestratorState.BALANCE_CHECKED,
        ]
        assert run.history[-1].reason == "balance ok"
        assert run.transfer_id.startswith("xfer_")

    def test_skipping_a_step_is_rejected(self):
        run = TransferRun()

        with pytest.raises(InvalidTransitionError):
            run.transition_to(OrchestratorState.DEPOSITED)
        assert run.state is OrchestratorState.IDLE

    def test_any_active_state_can_fail(self):
        run = TransferRun()
        run.transition_to(OrchestratorState.CHAIN_VERIFIED)

        run.transition_to(OrchestratorState.FAILED)

        assert run.state is OrchestratorState.FAILED
        with pytest.raises(InvalidTransitionError):
            run.transition_to(OrchestratorState.CHAIN_VERIFIED)
