import json
import logging
from typing import Optional, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

import config
from utils.errors import AggregatorError
from utils.schemas import FirmQuote, PriceQuote, SourcesList, SwapRequest

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class ZeroExClient:
    """
    Thin client for the 0x swap API: permit2 price, permit2 quote and the
    liquidity source listing. Every failure surfaces as AggregatorError;
    nothing is retried.
    """

    def __init__(self, api_key: str, chain_config=config.SCROLL,
                 session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        self.chain_config = chain_config
        self.price_url = chain_config.ZEROEX_API_PRICE
        self.quote_url = chain_config.ZEROEX_API_QUOTE
        self.sources_url = chain_config.ZEROEX_API_SOURCES
        self.timeout = timeout

        self.session = session or requests.Session()
        self.session.headers.update(config.zeroex_headers(api_key))

    @staticmethod
    def build_query(request: SwapRequest) -> dict:
        params = {
            "chainId": str(request.chain_id),
            "sellToken": request.sell_token,
            "buyToken": request.buy_token,
            "sellAmount": str(request.sell_amount),
            "taker": request.taker,
            "affiliateAddress": request.affiliate_address,
            "affiliateFeeBps": str(request.affiliate_fee_bps) if request.affiliate_address else None,
        }
        # Remove empty keys
        return {k: v for k, v in params.items() if v not in [None, "", []]}

    def get_price(self, request: SwapRequest) -> PriceQuote:
        price = self._get(self.price_url, self.build_query(request), PriceQuote, "price")
        if not price.liquidity_available:
            raise AggregatorError("No liquidity available for this pair and amount (price).")
        return price

    def get_quote(self, request: SwapRequest) -> FirmQuote:
        quote = self._get(self.quote_url, self.build_query(request), FirmQuote, "quote")
        if not quote.liquidity_available:
            raise AggregatorError("No liquidity available for this pair and amount (quote).")
        return quote

    def get_sources(self, chain_id: int) -> SourcesList:
        return self._get(self.sources_url, {"chainId": str(chain_id)}, SourcesList, "sources")

    def _get(self, url: str, params: dict, model: Type[M], label: str) -> M:
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            logger.debug(f"Requested {label}: {response.url}")
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            body = e.response.text if e.response is not None else None
            raise AggregatorError(
                f"0x {label} request failed with HTTP {status}: {_error_detail(body)}",
                status_code=status,
                body=body,
            ) from e
        except requests.exceptions.RequestException as e:
            raise AggregatorError(f"0x {label} request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise AggregatorError(
                f"0x {label} response is not JSON",
                status_code=response.status_code,
                body=response.text,
            ) from e

        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise AggregatorError(
                f"Unexpected 0x {label} response shape: {e.error_count()} error(s)\n{e}",
                status_code=response.status_code,
                body=response.text,
            ) from e


def _error_detail(body: Optional[str]) -> str:
    """Pull the 0x error name/message out of an error body when there is one."""
    if not body:
        return "<empty body>"
    try:
        data = json.loads(body)
    except ValueError:
        return body[:300]
    if isinstance(data, dict):
        parts = [str(data[k]) for k in ("name", "message", "reason") if data.get(k)]
        if parts:
            return " - ".join(parts)
    return body[:300]
