import sys
import logging
from typing import List

from rich.console import Console
from rich.logging import RichHandler

import config
from utils.errors import AggregatorError, ConfigError
from utils.zeroex_api import ZeroExClient

console = Console()


class LiquiditySourceLister:
    """Lists the liquidity sources 0x can route through on one chain, in the order received."""

    def __init__(self, api: ZeroExClient, chain_config=config.SCROLL, console: Console = console):
        self.api = api
        self.chain_config = chain_config
        self.console = console

    def list_sources(self) -> List[str]:
        names = self.api.get_sources(self.chain_config.CHAIN_ID).names
        self.console.log(f"[bold blue]Liquidity sources for {self.chain_config.CHAIN_NAME.capitalize()} chain:[/bold blue]")
        for name in names:
            self.console.log(f"  {name}")
        return names


def run(settings: config.Settings, chain_config=config.SCROLL) -> List[str]:
    api = ZeroExClient(settings.zeroex_api_key, chain_config=chain_config, timeout=settings.http_timeout)
    return LiquiditySourceLister(api, chain_config).list_sources()


def main():
    logging.basicConfig(level=logging.INFO, handlers=[RichHandler(console=console)])
    try:
        settings = config.load_settings()
        run(settings)
    except (ConfigError, AggregatorError) as e:
        console.log(f"[bold red]{type(e).__name__}: {e}[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
