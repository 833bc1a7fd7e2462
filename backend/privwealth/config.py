from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "privwealth-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "Private Wealth")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")

    # Network / collaborators
    ledger_mode: str = os.getenv("LEDGER_MODE", "local")  # local|rpc
    ledger_rpc_url: str = os.getenv("LEDGER_RPC_URL", "http://127.0.0.1:8545/")
    gateway_url: str = os.getenv("GATEWAY_URL", "http://127.0.0.1:8546")
    chain_id: int = int(os.getenv("CHAIN_ID", "84532"))
    contract_address: str = os.getenv("CONTRACT_ADDRESS", "0x" + "5e" * 20)
    explorer_tx_url: str = os.getenv("EXPLORER_TX_URL", "https://sepolia.basescan.org/tx/{tx_hash}")
    http_timeout_s: float = float(os.getenv("HTTP_TIMEOUT_S", "10"))

    # Read-side polling, one interval per controller
    participants_poll_ms: int = int(os.getenv("PARTICIPANTS_POLL_MS", "2000"))
    winners_poll_ms: int = int(os.getenv("WINNERS_POLL_MS", "2000"))
    own_handle_poll_ms: int = int(os.getenv("OWN_HANDLE_POLL_MS", "2000"))
    comparison_max_wait_s: float = float(os.getenv("COMPARISON_MAX_WAIT_S", "30"))  # 0 = no bound

    # Reveal authorization
    reveal_auth_ttl_s: int = int(os.getenv("REVEAL_AUTH_TTL_S", "300"))

    # Local development network
    local_block_time_ms: int = int(os.getenv("LOCAL_BLOCK_TIME_MS", "500"))
    local_comparison_blocks: int = int(os.getenv("LOCAL_COMPARISON_BLOCKS", "3"))
    local_account_seeds: list[str] = os.getenv("LOCAL_ACCOUNT_SEEDS", "alice,bob,carol").split(",")
    local_network_key: str = os.getenv("LOCAL_NETWORK_KEY", "dev-network-key")

settings = Settings()
