import io
import json
from unittest.mock import MagicMock

import pytest
import requests
from eth_account import Account
from hexbytes import HexBytes
from rich.console import Console

import config

# Hardhat's first dev account; never holds real funds
PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TAKER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
SETTLER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
PERMIT2 = "0x000000000022D473030F116dDEE9F6B43aC78BA3"

ENV_VARS = (
    "PRIVATE_KEY", "ZERO_EX_API_KEY", "ALCHEMY_HTTP_TRANSPORT_URL",
    "SELL_AMOUNT", "AFFILIATE_ADDRESS", "AFFILIATE_FEE_BPS",
    "RECEIPT_TIMEOUT", "HTTP_TIMEOUT",
)


def make_response(status: int, payload=None, text: str = None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp.url = "https://api.0x.org/test"
    if text is None:
        text = json.dumps(payload)
    resp._content = text.encode()
    return resp


def price_payload(fills=None, allowance_spender=None):
    payload = {
        "liquidityAvailable": True,
        "buyAmount": "84000000000000000",
        "sellAmount": "100000000000000000",
        "route": {"fills": fills if fills is not None else [
            {"from": config.SCROLL.WETH, "to": config.SCROLL.WSTETH, "source": "Uniswap", "proportionBps": "7500"},
            {"from": config.SCROLL.WETH, "to": config.SCROLL.WSTETH, "source": "Curve", "proportionBps": "2500"},
        ]},
        "issues": {"allowance": None, "balance": None, "simulationIncomplete": False},
    }
    if allowance_spender:
        payload["issues"]["allowance"] = {"actual": "0", "spender": allowance_spender}
    return payload


def permit2_eip712(amount="100000000000000000"):
    return {
        "types": {
            "PermitTransferFrom": [
                {"name": "permitted", "type": "TokenPermissions"},
                {"name": "spender", "type": "address"},
                {"name": "nonce", "type": "uint256"},
                {"name": "deadline", "type": "uint256"},
            ],
            "TokenPermissions": [
                {"name": "token", "type": "address"},
                {"name": "amount", "type": "uint256"},
            ],
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
        },
        "domain": {"name": "Permit2", "chainId": 534352, "verifyingContract": PERMIT2},
        "message": {
            "permitted": {"token": config.SCROLL.WETH, "amount": amount},
            "spender": SETTLER,
            "nonce": "2241959297937691820908574931991566",
            "deadline": "1733000000",
        },
        "primaryType": "PermitTransferFrom",
    }


def quote_payload(with_permit=True, buy_tax="0", sell_tax="0"):
    payload = {
        "liquidityAvailable": True,
        "buyAmount": "84000000000000000",
        "transaction": {
            "to": SETTLER,
            "data": "0x1fff991f000000000000000000000000f39fd6e51aad88f6f4ce6ab8827279cfffb92266",
            "gas": "288079",
            "gasPrice": "4000000",
            "value": "0",
        },
        "tokenMetadata": {
            "buyToken": {"buyTaxBps": buy_tax, "sellTaxBps": "0"},
            "sellToken": {"buyTaxBps": "0", "sellTaxBps": sell_tax},
        },
        "permit2": None,
    }
    if with_permit:
        payload["permit2"] = {"type": "Permit2", "hash": "0x" + "ab" * 32, "eip712": permit2_eip712()}
    return payload


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def full_env(clean_env):
    clean_env.setenv("PRIVATE_KEY", PRIVATE_KEY[2:])
    clean_env.setenv("ZERO_EX_API_KEY", "test-api-key")
    clean_env.setenv("ALCHEMY_HTTP_TRANSPORT_URL", "http://localhost:8545")
    return clean_env


@pytest.fixture
def recording_console():
    return Console(record=True, width=200, file=io.StringIO())


@pytest.fixture
def mock_w3():
    """Web3 double whose account module is the real eth-account, so signing is genuine."""
    w3 = MagicMock()
    w3.eth.account = Account
    w3.eth.get_block.return_value = {"baseFeePerGas": 10}
    w3.eth.max_priority_fee = 2
    w3.eth.send_raw_transaction.return_value = HexBytes("0x" + "cd" * 32)
    return w3
