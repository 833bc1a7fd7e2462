import pytest
from conftest import account, make_settings, submit_as
from privwealth.errors import NotConnected, ValidationError
from privwealth.services.runtime import build_runtime

@pytest.mark.asyncio
async def test_reset_needs_explicit_confirmation(runtime, alice):
    await submit_as(runtime, alice, 1)
    with pytest.raises(ValidationError):
        await runtime.resetter.reset()
    assert await runtime.ledger.get_participants() == [alice.identity]

@pytest.mark.asyncio
async def test_reset_requires_identity(runtime):
    with pytest.raises(NotConnected):
        await runtime.resetter.reset(confirm=True)

@pytest.mark.asyncio
async def test_reset_clears_everything_and_reader_caches(runtime, alice, bob):
    await submit_as(runtime, alice, 100)
    await submit_as(runtime, bob, 250)
    await runtime.leaderboard.trigger_comparison()
    await runtime.ledger.drain()
    await runtime.leaderboard.poll_winners()
    assert runtime.leaderboard.winners == [bob.identity]

    stamp = runtime.bus.stamp
    await runtime.resetter.reset(confirm=True)

    assert runtime.bus.stamp == stamp + 1
    assert await runtime.ledger.get_participants() == []
    assert await runtime.ledger.get_winners() == []
    assert runtime.participants.participants == []
    assert runtime.leaderboard.view().status == "empty"
    assert runtime.reveal.handle is None

@pytest.mark.asyncio
async def test_participant_can_submit_again_after_reset(runtime, alice):
    await submit_as(runtime, alice, 100)
    await runtime.resetter.reset(confirm=True)
    await runtime.submission.confirm_amount("7")
    await runtime.submission.submit()
    assert await runtime.ledger.get_participants() == [alice.identity]

@pytest.mark.asyncio
async def test_reset_discards_comparison_still_in_flight():
    rt = build_runtime(make_settings(local_block_time_ms=20, local_comparison_blocks=5))
    alice = account(rt, "alice")
    await submit_as(rt, alice, 10)
    await rt.leaderboard.trigger_comparison()
    await rt.resetter.reset(confirm=True)
    await rt.ledger.drain()
    assert await rt.ledger.get_winners() == []
