from __future__ import annotations
from dataclasses import dataclass, field
import structlog
from privwealth.config import Settings, settings as default_settings
from privwealth.services.confidential import LocalConfidentialService
from privwealth.services.gateway import EncryptionGateway, HttpEncryptionGateway, LocalEncryptionGateway
from privwealth.services.leaderboard import LeaderboardController
from privwealth.services.ledger import InMemoryLedger, Ledger, RpcLedger
from privwealth.services.participants import ParticipantsController
from privwealth.services.polling import PollingReader
from privwealth.services.reset import ResetController
from privwealth.services.reveal import RevealController
from privwealth.services.session import WalletSession
from privwealth.services.signer import LocalKeyring
from privwealth.services.submission import SubmissionController
from privwealth.services.update_bus import UpdateBus

log = structlog.get_logger()


@dataclass
class Runtime:
    """Everything one connected client needs, wired together."""
    settings: Settings
    keyring: LocalKeyring
    ledger: Ledger
    gateway: EncryptionGateway
    bus: UpdateBus
    session: WalletSession
    participants: ParticipantsController
    submission: SubmissionController
    reveal: RevealController
    leaderboard: LeaderboardController
    resetter: ResetController
    _closers: list = field(default_factory=list)

    @property
    def readers(self) -> list[PollingReader]:
        return [self.participants, self.reveal, self.leaderboard]

    async def start(self) -> None:
        for reader in self.readers:
            reader.start()
        log.info("runtime.started", mode=self.settings.ledger_mode)

    async def refresh_all(self) -> None:
        for reader in self.readers:
            await reader.refresh()

    async def stop(self) -> None:
        for reader in self.readers:
            await reader.stop()
        for close in self._closers:
            await close()
        self._closers.clear()
        log.info("runtime.stopped")


def build_runtime(
    cfg: Settings | None = None,
    *,
    ledger: Ledger | None = None,
    gateway: EncryptionGateway | None = None,
    keyring: LocalKeyring | None = None,
) -> Runtime:
    cfg = cfg or default_settings
    closers = []
    destination = cfg.contract_address.lower()

    if ledger is None or gateway is None:
        if cfg.ledger_mode == "rpc":
            rpc = RpcLedger(cfg.ledger_rpc_url, timeout=cfg.http_timeout_s)
            http = HttpEncryptionGateway(
                cfg.gateway_url, chain_id=cfg.chain_id, destination=destination, timeout=cfg.http_timeout_s
            )
            closers += [rpc.aclose, http.aclose]
            ledger, gateway = ledger or rpc, gateway or http
        else:
            service = LocalConfidentialService(cfg.local_network_key, cfg.chain_id)
            ledger = ledger or InMemoryLedger(
                service,
                destination=destination,
                block_time_s=cfg.local_block_time_ms / 1000,
                comparison_blocks=cfg.local_comparison_blocks,
            )
            gateway = gateway or LocalEncryptionGateway(service, destination)

    keyring = keyring or LocalKeyring.from_seeds(cfg.local_account_seeds)
    bus = UpdateBus()
    session = WalletSession()
    participants = ParticipantsController(ledger=ledger, bus=bus, interval_s=cfg.participants_poll_ms / 1000)
    return Runtime(
        settings=cfg,
        keyring=keyring,
        ledger=ledger,
        gateway=gateway,
        bus=bus,
        session=session,
        participants=participants,
        submission=SubmissionController(
            session=session,
            ledger=ledger,
            gateway=gateway,
            bus=bus,
            participants=participants,
            destination=destination,
            explorer_tx_url=cfg.explorer_tx_url,
        ),
        reveal=RevealController(
            session=session, ledger=ledger, gateway=gateway, bus=bus,
            interval_s=cfg.own_handle_poll_ms / 1000,
        ),
        leaderboard=LeaderboardController(
            session=session, ledger=ledger, bus=bus,
            interval_s=cfg.winners_poll_ms / 1000,
            max_wait_s=cfg.comparison_max_wait_s,
        ),
        resetter=ResetController(session=session, ledger=ledger, bus=bus),
        _closers=closers,
    )
