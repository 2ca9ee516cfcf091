"""Tests for argument encoding, output decoding and signed submission."""

import json
from unittest.mock import AsyncMock, MagicMock

import nacl.signing
import pytest

from conftest import contract_metadata
from stealth_tip.contract import ContractClient
from stealth_tip.errors import ContractQueryError, ValidationError, WalletError
from stealth_tip.interface import ContractSchema
from stealth_tip.models import StreakState, TxStatus, TxUpdate
from stealth_tip.stealth import ss58_encode

CONTRACT = "XT4aydpP7aPLBxpMvM1bHrTAk9Dp8Qphaqk9FR7ugvHybFR"
ACCOUNT = b"\x05" * 32


def make_client(output=None):
    rpc = MagicMock()
    rpc.contract_call = AsyncMock(return_value=output)
    rpc.submit_extrinsic = AsyncMock(return_value="0xhash")

    async def watch(tx_hash, poll_interval_s):
        yield TxUpdate(TxStatus.IN_BLOCK, block_hash="0xb")
        yield TxUpdate(TxStatus.FINALIZED, block_hash="0xb")

    rpc.watch_extrinsic = watch
    schema = ContractSchema.from_metadata(contract_metadata(), "test")
    return ContractClient(rpc, schema, CONTRACT, 5, status_poll_interval_s=0), rpc


class TestQueries:
    @pytest.mark.asyncio
    async def test_stealth_balance_encodes_salt_as_hex(self, salt):
        client, rpc = make_client(output="2000000000000000000")

        amount = await client.get_stealth_balance(CONTRACT, "bob", salt)

        assert amount == 2 * 10**18
        contract, caller, selector, args = rpc.contract_call.await_args.args
        assert contract == CONTRACT
        assert caller == CONTRACT
        assert selector == client.schema.selector("get_stealth_balance")
        assert args == ["bob", "0x" + salt.hex()]

    @pytest.mark.asyncio
    async def test_byte_caller_is_sent_as_ss58(self):
        client, rpc = make_client(output=0)
        await client.get_jackpot_pool(ACCOUNT)
        assert rpc.contract_call.await_args.args[1] == ss58_encode(ACCOUNT, 5)

    @pytest.mark.asyncio
    async def test_optional_account_decoding(self):
        client, _ = make_client(output="0x" + ACCOUNT.hex())
        assert await client.get_username_owner(CONTRACT, "bob") == ACCOUNT

        client, _ = make_client(output=ss58_encode(ACCOUNT, 5))
        assert await client.get_last_jackpot_winner(CONTRACT) == ACCOUNT

        client, _ = make_client(output=None)
        assert await client.get_premium_owner(CONTRACT, "bob") is None

    @pytest.mark.asyncio
    async def test_streak_decoding(self):
        client, rpc = make_client(output=[1700000000000, 4])
        state = await client.get_streak(CONTRACT, ACCOUNT)
        assert state == StreakState(last_played_ms=1700000000000, count=4)
        assert rpc.contract_call.await_args.args[3] == ["0x" + ACCOUNT.hex()]

    @pytest.mark.asyncio
    async def test_admin_reads(self):
        client, _ = make_client(output=True)
        assert await client.get_fee_enabled(CONTRACT) is True
        client, _ = make_client(output="42")
        assert await client.get_accumulated_fees(CONTRACT) == 42
        assert await client.get_game_play_count(CONTRACT) == 42

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad", ["abc", "-5", None, [1]])
    async def test_undecodable_balance_is_query_error(self, bad):
        client, _ = make_client(output=bad)
        with pytest.raises(ContractQueryError):
            await client.get_jackpot_pool(CONTRACT)

    @pytest.mark.asyncio
    async def test_query_error_propagates(self):
        client, rpc = make_client()
        rpc.contract_call.side_effect = ContractQueryError("reverted")
        with pytest.raises(ContractQueryError):
            await client.get_jackpot_pool(CONTRACT)

    @pytest.mark.asyncio
    async def test_commands_cannot_be_queried(self):
        client, _ = make_client()
        with pytest.raises(ValidationError):
            await client.query("tip", CONTRACT, "bob", bytes(32))

    @pytest.mark.asyncio
    async def test_argument_count_checked(self):
        client, _ = make_client()
        with pytest.raises(ValidationError):
            await client.query("get_stealth_balance", CONTRACT, "bob")


class TestSubmit:
    @pytest.mark.asyncio
    async def test_signs_payload_and_streams_status(self, signer, salt):
        client, rpc = make_client()

        updates = [u async for u in client.submit("tip", ("bob", salt), 10**18, signer)]

        assert [u.status for u in updates] == [
            TxStatus.BROADCAST,
            TxStatus.IN_BLOCK,
            TxStatus.FINALIZED,
        ]
        payload, signature = rpc.submit_extrinsic.await_args.args
        assert payload["message"] == "tip"
        assert payload["args"] == ["bob", "0x" + salt.hex()]
        assert payload["value"] == str(10**18)
        assert payload["signer"] == ss58_encode(signer.address, 5)

        blob = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode()
        nacl.signing.VerifyKey(signer.address).verify(blob, bytes.fromhex(signature[2:]))

    @pytest.mark.asyncio
    async def test_value_on_non_payable_rejected(self, signer, salt):
        client, rpc = make_client()
        with pytest.raises(ValidationError):
            async for _ in client.submit("withdraw", ("bob", salt), 5, signer):
                pass
        rpc.submit_extrinsic.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_signature_refusal_is_wallet_error(self, salt):
        client, rpc = make_client()
        refusing = MagicMock()
        refusing.address = ACCOUNT
        refusing.sign = AsyncMock(side_effect=RuntimeError("Cancelled by user"))

        with pytest.raises(WalletError, match="Cancelled"):
            async for _ in client.submit("tip", ("bob", salt), 1, refusing):
                pass
        rpc.submit_extrinsic.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bool_argument(self, signer):
        client, rpc = make_client()
        async for _ in client.submit("set_fee_enabled", (True,), 0, signer):
            pass
        assert rpc.submit_extrinsic.await_args.args[0]["args"] == [True]
