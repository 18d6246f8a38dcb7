import json
import logging
import time
from contextlib import contextmanager
from typing import Optional, Union

import requests
from eth_abi import encode as abi_encode
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3Exception

import config
from utils.errors import ChainError

logger = logging.getLogger(__name__)


def encode_signature_length(signature: bytes) -> bytes:
    """Byte length of the signature as a 32-byte big-endian uint256."""
    return abi_encode(["uint256"], [len(signature)])


@contextmanager
def _chain_call(action: str, tx_hash: Optional[str] = None):
    try:
        yield
    except ContractLogicError as e:
        raise ChainError(f"{action} reverted: {e}", tx_hash=tx_hash) from e
    except (Web3Exception, requests.exceptions.RequestException) as e:
        raise ChainError(f"{action} failed: {e}", tx_hash=tx_hash) from e


class ChainClient:
    """
    Signing account plus RPC transport for one chain.

    Reads ERC-20 state, sends approvals, signs EIP-712 payloads, signs and
    broadcasts raw transactions, and waits for receipts. Every RPC failure
    surfaces as ChainError.
    """

    def __init__(self, rpc_url: str, private_key: str, chain_id: int,
                 w3: Optional[Web3] = None, receipt_timeout: Optional[float] = None,
                 token_abi: str = config.TOKEN_ABI):
        # web3's own request retry is off: a failed call aborts the run
        self.w3 = w3 or Web3(Web3.HTTPProvider(rpc_url, exception_retry_configuration=None))
        self.account = self.w3.eth.account.from_key(private_key)
        self.address = self.account.address
        self.chain_id = int(chain_id)
        self.receipt_timeout = receipt_timeout
        self.erc20_abi = json.loads(token_abi)

    # ---------- ERC20 ----------
    def _erc20(self, token_address: str):
        return self.w3.eth.contract(address=Web3.to_checksum_address(token_address), abi=self.erc20_abi)

    def token_decimals(self, token_address: str) -> int:
        with _chain_call(f"decimals() on {token_address}"):
            return int(self._erc20(token_address).functions.decimals().call())

    def token_balance(self, token_address: str) -> int:
        with _chain_call(f"balanceOf() on {token_address}"):
            return int(self._erc20(token_address).functions.balanceOf(self.address).call())

    def allowance(self, token_address: str, spender: str) -> int:
        with _chain_call(f"allowance() on {token_address}"):
            return int(self._erc20(token_address).functions.allowance(
                self.address, Web3.to_checksum_address(spender)
            ).call())

    def approve(self, token_address: str, spender: str, amount: int) -> HexBytes:
        """
        Simulate approve(spender, amount) from this account, then sign and
        broadcast it. Returns the transaction hash; does not wait.
        """
        fn = self._erc20(token_address).functions.approve(Web3.to_checksum_address(spender), int(amount))

        with _chain_call(f"approve simulation on {token_address}"):
            ok = fn.call({"from": self.address})
        if ok is False:
            raise ChainError(f"approve simulation on {token_address} returned false")

        with _chain_call(f"approve on {token_address}"):
            tx = fn.build_transaction({
                "from": self.address,
                "chainId": self.chain_id,
                "nonce": self.get_nonce(),
                **self._suggest_fees(),
            })
            signed = self.account.sign_transaction(tx)
            return self.w3.eth.send_raw_transaction(signed.raw_transaction)

    # ---------- Signing ----------
    def sign_typed_data(self, typed_data: dict) -> HexBytes:
        """EIP-712 signature (r || s || v, 65 bytes) over a full typed-data message."""
        signed = self.account.sign_typed_data(full_message=typed_data)
        return HexBytes(signed.signature)

    # ---------- Tx lifecycle ----------
    def get_nonce(self) -> int:
        with _chain_call("nonce lookup"):
            return int(self.w3.eth.get_transaction_count(self.address, "pending"))

    def send_transaction(self, to: str, data: Union[bytes, str], nonce: int, value: int = 0) -> HexBytes:
        """
        Sign a transaction locally and submit it with eth_sendRawTransaction.
        Gas is estimated by the node for the final calldata.
        """
        tx = {
            "chainId": self.chain_id,
            "from": self.address,
            "to": Web3.to_checksum_address(to),
            "data": HexBytes(data),
            "nonce": int(nonce),
            "value": int(value),
        }
        with _chain_call("swap transaction"):
            tx.update(self._suggest_fees())
            tx["gas"] = int(self.w3.eth.estimate_gas(tx))

            signed = self.account.sign_transaction(tx)
            return self.w3.eth.send_raw_transaction(signed.raw_transaction)

    def wait_for_receipt(self, tx_hash: HexBytes, start_delay: float = 2, max_delay: float = 8):
        """
        Poll for the receipt with a growing delay. Waits indefinitely unless
        receipt_timeout was configured.
        """
        start = time.time()
        delay = start_delay
        hash_hex = HexBytes(tx_hash).to_0x_hex()
        while True:
            try:
                return self.w3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                pass
            except (Web3Exception, requests.exceptions.RequestException) as e:
                raise ChainError(f"receipt lookup failed: {e}", tx_hash=hash_hex) from e
            if self.receipt_timeout is not None and time.time() - start > self.receipt_timeout:
                raise ChainError(f"Timed out waiting for receipt of {hash_hex}", tx_hash=hash_hex)
            time.sleep(delay)
            delay = min(max_delay, delay * 1.5)

    # ---------- Gas ----------
    def _suggest_fees(self) -> dict:
        block = self.w3.eth.get_block("latest")
        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            return {"gasPrice": int(self.w3.eth.gas_price)}
        tip = int(self.w3.eth.max_priority_fee)
        # Same headroom web3 applies by default: two base fees plus the tip
        return {"maxFeePerGas": 2 * int(base_fee) + tip, "maxPriorityFeePerGas": tip}
