# /cowfee/core/config.py
from typing import Dict, List, Literal

from pydantic import BaseModel, ConfigDict, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Keeper
    PRIVATE_KEY: SecretStr | None = None

    # Transaction execution
    MAX_GAS_INCREASE_PERCENTAGE: int = 100
    WAIT_TIME_FOR_MAX_GAS_PRICE_MS: int = 3600 * 1000
    TIMEOUT_BEFORE_INCREASING_GAS_PRICE_MS: int = 5 * 60 * 1000
    RECEIPT_POLL_INTERVAL_SECONDS: float = 2.0

    # Reads and external APIs
    MULTICALL_SIZE: int = 500
    ORDERBOOK_MAX_CONCURRENCY: int = 5
    ORDERBOOK_REQUESTS_PER_SECOND: int = 5
    HTTP_TIMEOUT_SECONDS: float = 30.0
    ETHPLORER_API_KEY: str = "freekey"

    # Operational Settings
    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: SecretStr | None = None
    # Serve Prometheus metrics on this port for the duration of the run
    METRICS_PORT: int | None = None

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


class NetworkDetails(BaseModel):
    rpc_url: str
    explorer: str
    chain_id: int
    # path segment of the order book API (https://api.cow.fi/<path>/api/v1)
    orderbook_path: str

    model_config = ConfigDict(frozen=True)


NETWORKS: Dict[str, NetworkDetails] = {
    "mainnet": NetworkDetails(rpc_url="https://eth.llamarpc.com", explorer="https://explorer.cow.fi", chain_id=1, orderbook_path="mainnet"),
    "gnosis": NetworkDetails(rpc_url="https://1rpc.io/gnosis", explorer="https://explorer.cow.fi/gc", chain_id=100, orderbook_path="xdai"),
    "arbitrum": NetworkDetails(rpc_url="https://arb1.arbitrum.io/rpc", explorer="https://explorer.cow.fi/arb1", chain_id=42161, orderbook_path="arbitrum_one"),
    "base": NetworkDetails(rpc_url="https://base.llamarpc.com", explorer="https://explorer.cow.fi/base", chain_id=8453, orderbook_path="base"),
    "sepolia": NetworkDetails(rpc_url="https://sepolia.drpc.org", explorer="https://explorer.cow.fi/sepolia", chain_id=11155111, orderbook_path="sepolia"),
    "avalanche": NetworkDetails(rpc_url="https://api.avax.network/ext/bc/C/rpc", explorer="https://explorer.cow.fi/avax", chain_id=43114, orderbook_path="avalanche"),
    "polygon": NetworkDetails(rpc_url="https://polygon-rpc.com", explorer="https://explorer.cow.fi/pol", chain_id=137, orderbook_path="polygon"),
    "lens": NetworkDetails(rpc_url="https://rpc.lens.xyz", explorer="https://explorer.cow.fi/lens", chain_id=232, orderbook_path="lens"),
    "bnb": NetworkDetails(rpc_url="https://bsc-dataseed.bnbchain.org", explorer="https://explorer.cow.fi/bnb", chain_id=56, orderbook_path="bnb"),
    "linea": NetworkDetails(rpc_url="https://rpc.linea.build", explorer="https://explorer.cow.fi/linea", chain_id=59144, orderbook_path="linea"),
    "plasma": NetworkDetails(rpc_url="https://rpc.plasma.to", explorer="https://explorer.cow.fi/plasma", chain_id=9745, orderbook_path="plasma"),
}

SUPPORTED_NETWORKS: List[str] = list(NETWORKS)

TokenListStrategy = Literal["explorer", "chain"]


class SweepConfig(BaseModel):
    """Everything a single sweep run needs, resolved from CLI flags and the module contract."""

    chain_id: int
    network: str
    rpc_url: str
    module: str
    max_orders: int = 250
    buy_amount_slippage_bps: int = 100
    token_list_strategy: TokenListStrategy = "explorer"
    lookback_range: int = 1000
    confirm_drip: bool = False

    # Optional overrides for the seed gas price, in wei
    max_fee_per_gas: int | None = None
    max_priority_fee_per_gas: int | None = None

    # Read from the fee module
    receiver: str
    wrapped_native_token: str
    vault_relayer: str
    gpv2_settlement: str
    keeper: str
    app_data: str
    target_safe: str
    min_out: int

    model_config = ConfigDict(frozen=True)

    @property
    def explorer(self) -> str:
        return NETWORKS[self.network].explorer


try:
    settings = Settings()
except Exception as e:
    # Late import to avoid circular dependency only for logging the failure
    try:
        from cowfee.core.logger import get_logger

        get_logger("cowfee.config").critical("FAILED_TO_LOAD_SETTINGS", error=str(e))
    except Exception:
        print("FAILED_TO_LOAD_SETTINGS", e)
    raise SystemExit(1)
