# config.py
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from eth_account import Account
from eth_utils import ValidationError

from utils.errors import ConfigError
from utils.helper import TOTAL_BPS

load_dotenv()

ZEROEX_API_BASE = "https://api.0x.org/"
ZEROEX_API_VERSION = "v2"

MAX_UINT256 = 2**256 - 1

REQUIRED_SECRETS = ("PRIVATE_KEY", "ZERO_EX_API_KEY", "ALCHEMY_HTTP_TRANSPORT_URL")

TOKEN_ABI = '''[
  {
    "type": "function",
    "name": "approve",
    "stateMutability": "nonpayable",
    "inputs": [
      {"name": "_spender", "type": "address"},
      {"name": "_value", "type": "uint256"}
    ],
    "outputs": [{"name": "", "type": "bool"}]
  },
  {
    "type": "function",
    "name": "allowance",
    "stateMutability": "view",
    "inputs": [
      {"name": "_owner", "type": "address"},
      {"name": "_spender", "type": "address"}
    ],
    "outputs": [{"name": "remaining", "type": "uint256"}]
  },
  {
    "type": "function",
    "name": "balanceOf",
    "stateMutability": "view",
    "inputs": [{"name": "_owner", "type": "address"}],
    "outputs": [{"name": "balance", "type": "uint256"}]
  },
  {
    "type": "function",
    "name": "decimals",
    "stateMutability": "view",
    "inputs": [],
    "outputs": [{"name": "", "type": "uint8"}]
  }
]'''


class SCROLL:
    CHAIN_ID = 534352
    CHAIN_NAME = "scroll"

    # Sell / buy pair used by the swap task
    WETH = "0x5300000000000000000000000000000000000004"
    WSTETH = "0xf610A9dfB7C89644979b4A0f27063E9e7d7Cda32"

    ZEROEX_API_PRICE = ZEROEX_API_BASE + "swap/permit2/price"
    ZEROEX_API_QUOTE = ZEROEX_API_BASE + "swap/permit2/quote"
    ZEROEX_API_SOURCES = ZEROEX_API_BASE + "swap/v1/sources"


def zeroex_headers(api_key: str) -> dict:
    return {
        "Content-Type": "application/json",
        "0x-api-key": api_key,
        "0x-version": ZEROEX_API_VERSION,
    }


@dataclass(frozen=True)
class Settings:
    private_key: str
    zeroex_api_key: str
    rpc_url: str
    sell_amount: str = "0.1"
    affiliate_address: Optional[str] = None
    affiliate_fee_bps: int = 100
    receipt_timeout: Optional[float] = None
    http_timeout: Optional[float] = None

    def __repr__(self) -> str:
        # Never print secrets
        return (
            f"Settings(rpc_url=<set>, sell_amount={self.sell_amount!r}, "
            f"affiliate_address={self.affiliate_address!r}, affiliate_fee_bps={self.affiliate_fee_bps})"
        )


def _optional_seconds(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number of seconds, got {raw!r}.")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}.")
    return value


def load_settings() -> Settings:
    """
    Read the process configuration from the environment (.env is already loaded).

    Raises ConfigError for the first missing secret, before any client or
    network connection is created.
    """
    secrets = {}
    for name in REQUIRED_SECRETS:
        value = os.getenv(name, "").strip()
        if not value:
            raise ConfigError(f"missing {name}.")
        secrets[name] = value

    private_key = secrets["PRIVATE_KEY"]
    if not private_key.startswith("0x"):
        private_key = "0x" + private_key
    try:
        Account.from_key(private_key)
    except (ValueError, ValidationError):
        # secret value stays out of the message
        raise ConfigError("PRIVATE_KEY is not a valid private key.") from None

    sell_amount = os.getenv("SELL_AMOUNT", "0.1").strip() or "0.1"
    try:
        amount = Decimal(sell_amount)
    except InvalidOperation:
        raise ConfigError(f"SELL_AMOUNT is not a number: {sell_amount!r}.")
    if not amount.is_finite() or amount <= 0:
        raise ConfigError(f"SELL_AMOUNT must be a positive number, got {sell_amount!r}.")

    fee_raw = os.getenv("AFFILIATE_FEE_BPS", "100").strip() or "100"
    try:
        affiliate_fee_bps = int(fee_raw)
    except ValueError:
        raise ConfigError(f"AFFILIATE_FEE_BPS must be an integer, got {fee_raw!r}.")
    if not 0 <= affiliate_fee_bps <= TOTAL_BPS:
        raise ConfigError(f"AFFILIATE_FEE_BPS must be between 0 and {TOTAL_BPS}, got {affiliate_fee_bps}.")

    return Settings(
        private_key=private_key,
        zeroex_api_key=secrets["ZERO_EX_API_KEY"],
        rpc_url=secrets["ALCHEMY_HTTP_TRANSPORT_URL"],
        sell_amount=sell_amount,
        affiliate_address=os.getenv("AFFILIATE_ADDRESS", "").strip() or None,
        affiliate_fee_bps=affiliate_fee_bps,
        receipt_timeout=_optional_seconds("RECEIPT_TIMEOUT"),
        http_timeout=_optional_seconds("HTTP_TIMEOUT"),
    )


MODULE_PATH = Path(__file__).resolve().parent / "modules"
