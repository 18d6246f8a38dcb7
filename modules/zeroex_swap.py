import sys
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from hexbytes import HexBytes
from rich.console import Console
from rich.logging import RichHandler

import config
from modules.liquidity_sources import LiquiditySourceLister
from utils.chain import ChainClient, encode_signature_length
from utils.errors import AggregatorError, ChainError, ConfigError
from utils.helper import bps_to_percent, format_percent, parse_units
from utils.schemas import FirmQuote, PriceQuote, SwapRequest
from utils.zeroex_api import ZeroExClient

console = Console()


@dataclass(frozen=True)
class SwapOutcome:
    """tx_hash is None when the quote asked for no permit signature (nothing was sent)."""

    tx_hash: Optional[str] = None
    approval_tx_hash: Optional[str] = None

    @property
    def submitted(self) -> bool:
        return self.tx_hash is not None


def assemble_transaction_data(quote_data: str, signature: bytes) -> HexBytes:
    """Quote calldata, then the signature length as uint256, then the signature."""
    return HexBytes(b"".join([
        bytes(HexBytes(quote_data)),
        encode_signature_length(signature),
        bytes(signature),
    ]))


class SwapOrchestrator:
    """
    Runs one 0x Permit2 swap end to end:
    price -> allowance -> quote -> taxes -> permit signature -> submission.

    Each stage finishes before the next one starts, and any failure aborts
    the remaining stages.
    """

    def __init__(self, api: ZeroExClient, chain: ChainClient, console: Console = console):
        self.api = api
        self.chain = chain
        self.console = console
        self.logger = logging.getLogger(__name__)

    def execute_swap(self, request: SwapRequest) -> SwapOutcome:
        price = self.fetch_price(request)
        approval_tx_hash = self.resolve_allowance(request, price)
        quote = self.fetch_quote(request)
        self.report_taxes(quote)

        tx_data = self.sign_permit(quote)
        if tx_data is None:
            self.console.log("[yellow]Quote has no permit2.eip712 payload. No transaction submitted.[/yellow]")
            return SwapOutcome(approval_tx_hash=approval_tx_hash)

        tx_hash = self.submit(quote, tx_data)
        return SwapOutcome(tx_hash=tx_hash, approval_tx_hash=approval_tx_hash)

    # 1. Price
    def fetch_price(self, request: SwapRequest) -> PriceQuote:
        price = self.api.get_price(request)
        self.console.log(f"[bold green]Price fetched:[/bold green] sell {price.sell_amount} -> buy {price.buy_amount}")
        self.report_fills(price)

        balance = price.balance_issue
        if balance is not None:
            self.console.log(
                f"[bold yellow]Balance issue on {balance.token}: have {balance.actual}, need {balance.expected}[/bold yellow]"
            )
        return price

    def report_fills(self, price: PriceQuote) -> List[Tuple[str, Decimal]]:
        breakdown = [(fill.source, bps_to_percent(fill.proportion_bps)) for fill in price.fills]
        if breakdown:
            self.console.log("[bold blue]Liquidity Sources Breakdown:[/bold blue]")
            for source, pct in breakdown:
                self.console.log(f"{source}: {pct}%")
        return breakdown

    # 2. Allowance
    def resolve_allowance(self, request: SwapRequest, price: PriceQuote) -> Optional[str]:
        issue = price.allowance_issue
        if issue is None:
            self.console.log("[green]Allowance sufficient, no approval needed.[/green]")
            return None

        self.console.log(
            f"[yellow]Insufficient allowance for {issue.spender} (current {issue.actual}). Approving unlimited...[/yellow]"
        )
        tx_hash = self.chain.approve(request.sell_token, issue.spender, config.MAX_UINT256)
        tx_hex = tx_hash.to_0x_hex()
        self.console.log(f"[green]Approval transaction sent: {tx_hex}[/green]")

        receipt = self.chain.wait_for_receipt(tx_hash)
        if receipt["status"] != 1:
            raise ChainError(f"Approval transaction {tx_hex} failed on-chain", tx_hash=tx_hex)
        self.console.log(
            f"[bold green]Permit2 approval granted.[/bold green] block {receipt['blockNumber']}, gas used {receipt['gasUsed']}"
        )

        refreshed = self.chain.allowance(request.sell_token, issue.spender)
        self.console.log(f"[bold green]New Allowance: {refreshed}[/bold green]")
        return tx_hex

    # 3. Quote
    def fetch_quote(self, request: SwapRequest) -> FirmQuote:
        quote = self.api.get_quote(request)
        self.console.log(
            f"[bold green]Quote fetched:[/bold green] buy {quote.buy_amount}, to {quote.transaction.to}, "
            f"gas estimate {quote.transaction.gas}"
        )
        return quote

    # 4. Taxes
    def report_taxes(self, quote: FirmQuote) -> Optional[Tuple[Decimal, Decimal]]:
        buy_bps, sell_bps = quote.buy_tax_bps, quote.sell_tax_bps
        if not (buy_bps or sell_bps):
            return None
        self.console.log(f"[bold yellow]Buy Token Buy Tax: {format_percent(buy_bps)}[/bold yellow]")
        self.console.log(f"[bold yellow]Sell Token Sell Tax: {format_percent(sell_bps)}[/bold yellow]")
        return bps_to_percent(buy_bps), bps_to_percent(sell_bps)

    # 5. Permit signature
    def sign_permit(self, quote: FirmQuote) -> Optional[HexBytes]:
        eip712 = quote.eip712
        if eip712 is None:
            return None
        signature = self.chain.sign_typed_data(eip712.to_typed_data())
        self.logger.debug(f"Permit2 signature: {len(signature)} bytes")
        return assemble_transaction_data(quote.transaction.data, signature)

    # 6. Submission
    def submit(self, quote: FirmQuote, tx_data: HexBytes) -> str:
        nonce = self.chain.get_nonce()
        tx_hash = self.chain.send_transaction(
            to=quote.transaction.to,
            data=tx_data,
            nonce=nonce,
            value=quote.transaction.value,
        )
        tx_hex = tx_hash.to_0x_hex()
        self.console.log(f"[bold green]Transaction hash: {tx_hex}[/bold green]")
        return tx_hex


def build_request(settings: config.Settings, chain: ChainClient, chain_config=config.SCROLL) -> SwapRequest:
    """Sell settings.sell_amount of WETH for wstETH, scaled by WETH's on-chain decimals."""
    decimals = chain.token_decimals(chain_config.WETH)
    try:
        sell_amount = parse_units(settings.sell_amount, decimals)
    except ValueError as e:
        raise ConfigError(f"SELL_AMOUNT: {e}")

    return SwapRequest(
        chain_id=chain_config.CHAIN_ID,
        sell_token=chain_config.WETH,
        buy_token=chain_config.WSTETH,
        sell_amount=sell_amount,
        taker=chain.address,
        affiliate_address=settings.affiliate_address,
        affiliate_fee_bps=settings.affiliate_fee_bps,
    )


def report_sell_balance(chain: ChainClient, request: SwapRequest, console: Console = console) -> int:
    """Log the taker's sell-token balance and warn when it is short of the sell amount."""
    balance = chain.token_balance(request.sell_token)
    console.log(f"Sell token balance: {balance}")
    if balance < request.sell_amount:
        console.log(f"[bold yellow]Balance {balance} is below the sell amount {request.sell_amount}[/bold yellow]")
    return balance


def run(settings: config.Settings, chain_config=config.SCROLL, list_sources: bool = True) -> SwapOutcome:
    api = ZeroExClient(settings.zeroex_api_key, chain_config=chain_config, timeout=settings.http_timeout)
    chain = ChainClient(
        settings.rpc_url,
        settings.private_key,
        chain_config.CHAIN_ID,
        receipt_timeout=settings.receipt_timeout,
    )

    request = build_request(settings, chain, chain_config)
    console.log(f"[bold blue]Swapping {settings.sell_amount} WETH ({request.sell_amount}) from {chain.address}[/bold blue]")
    report_sell_balance(chain, request)

    outcome = SwapOrchestrator(api, chain).execute_swap(request)

    if list_sources:
        LiquiditySourceLister(api, chain_config).list_sources()
    return outcome


def main():
    """
    Entry point: load secrets, run the swap, then list the chain's liquidity sources.
    """
    logging.basicConfig(level=logging.INFO, handlers=[RichHandler(console=console)])
    try:
        settings = config.load_settings()
        run(settings)
    except (ConfigError, AggregatorError, ChainError) as e:
        console.log(f"[bold red]{type(e).__name__}: {e}[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
