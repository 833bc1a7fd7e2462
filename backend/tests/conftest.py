import asyncio
import pytest
from privwealth.config import Settings
from privwealth.services.runtime import build_runtime
from privwealth.services.signer import LocalSigner

DESTINATION = "0x" + "ab" * 20

def make_settings(**overrides) -> Settings:
    base = dict(
        ledger_mode="local",
        contract_address=DESTINATION,
        chain_id=84532,
        local_block_time_ms=0,
        local_comparison_blocks=1,
        local_account_seeds=["alice", "bob", "carol"],
        local_network_key="test-network",
        comparison_max_wait_s=0,
        participants_poll_ms=10,
        winners_poll_ms=10,
        own_handle_poll_ms=10,
    )
    base.update(overrides)
    return Settings(**base)

@pytest.fixture
def cfg():
    return make_settings()

@pytest.fixture
def runtime(cfg):
    return build_runtime(cfg)

def account(runtime, seed: str) -> LocalSigner:
    return runtime.keyring.get(LocalSigner.from_seed(seed).identity)

@pytest.fixture
def alice(runtime):
    return account(runtime, "alice")

@pytest.fixture
def bob(runtime):
    return account(runtime, "bob")

class Gate:
    """Lets a test hold an async call open until it says so."""

    def __init__(self):
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def wait(self):
        self.entered.set()
        await self.release.wait()

async def submit_as(runtime, signer, amount):
    runtime.session.connect(signer)
    await runtime.submission.confirm_amount(str(amount))
    return await runtime.submission.submit()
