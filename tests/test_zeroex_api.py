import logging
from unittest.mock import MagicMock

import pytest
import requests

import config
from conftest import SETTLER, TAKER, make_response, price_payload, quote_payload
from utils.errors import AggregatorError
from utils.schemas import SwapRequest
from utils.zeroex_api import ZeroExClient


def _request(**overrides):
    fields = dict(
        chain_id=config.SCROLL.CHAIN_ID,
        sell_token=config.SCROLL.WETH,
        buy_token=config.SCROLL.WSTETH,
        sell_amount=100000000000000000,
        taker=TAKER,
    )
    fields.update(overrides)
    return SwapRequest(**fields)


@pytest.fixture
def session():
    s = MagicMock()
    s.headers = {}
    return s


@pytest.fixture
def client(session):
    return ZeroExClient("test-api-key", session=session, timeout=5)


def test_session_carries_0x_headers(client, session):
    assert session.headers["0x-api-key"] == "test-api-key"
    assert session.headers["0x-version"] == "v2"
    assert session.headers["Content-Type"] == "application/json"


def test_build_query_without_affiliate():
    params = ZeroExClient.build_query(_request())
    assert params == {
        "chainId": "534352",
        "sellToken": config.SCROLL.WETH,
        "buyToken": config.SCROLL.WSTETH,
        "sellAmount": "100000000000000000",
        "taker": TAKER,
    }


def test_build_query_with_affiliate():
    params = ZeroExClient.build_query(_request(affiliate_address=SETTLER, affiliate_fee_bps=100))
    assert params["affiliateAddress"] == SETTLER
    assert params["affiliateFeeBps"] == "100"


def test_get_price(client, session):
    session.get.return_value = make_response(200, price_payload())

    price = client.get_price(_request())

    assert [f.source for f in price.fills] == ["Uniswap", "Curve"]
    url = session.get.call_args.args[0]
    assert url == "https://api.0x.org/swap/permit2/price"
    assert session.get.call_args.kwargs["params"]["sellAmount"] == "100000000000000000"
    assert session.get.call_args.kwargs["timeout"] == 5


def test_get_quote(client, session):
    session.get.return_value = make_response(200, quote_payload())

    quote = client.get_quote(_request())

    assert session.get.call_args.args[0] == "https://api.0x.org/swap/permit2/quote"
    assert quote.transaction.to == SETTLER
    assert quote.eip712.primary_type == "PermitTransferFrom"


def test_get_sources(client, session):
    session.get.return_value = make_response(200, {"sources": [{"name": "Uniswap_V3"}, {"name": "Ambient"}]})

    sources = client.get_sources(534352)

    assert sources.names == ["Uniswap_V3", "Ambient"]
    assert session.get.call_args.args[0] == "https://api.0x.org/swap/v1/sources"
    assert session.get.call_args.kwargs["params"] == {"chainId": "534352"}


def test_http_error_carries_status_and_detail(client, session):
    session.get.return_value = make_response(400, {"name": "INPUT_INVALID", "message": "Validation Failed"})

    with pytest.raises(AggregatorError) as exc:
        client.get_price(_request())

    assert exc.value.status_code == 400
    assert "INPUT_INVALID" in str(exc.value)
    assert "Validation Failed" in exc.value.body


def test_server_error(client, session):
    session.get.return_value = make_response(500, text="upstream exploded")
    with pytest.raises(AggregatorError) as exc:
        client.get_quote(_request())
    assert exc.value.status_code == 500
    assert "upstream exploded" in str(exc.value)


def test_transport_error(client, session):
    session.get.side_effect = requests.exceptions.ConnectionError("connection refused")
    with pytest.raises(AggregatorError, match="connection refused"):
        client.get_price(_request())
    assert session.get.call_count == 1


def test_non_json_body(client, session):
    session.get.return_value = make_response(200, text="<html>gateway</html>")
    with pytest.raises(AggregatorError, match="not JSON"):
        client.get_price(_request())


def test_unexpected_shape(client, session):
    payload = quote_payload()
    payload["transaction"] = {"data": "0x"}
    session.get.return_value = make_response(200, payload)

    with pytest.raises(AggregatorError, match="Unexpected 0x quote response shape"):
        client.get_quote(_request())


@pytest.mark.parametrize("method", ["get_price", "get_quote"])
def test_no_liquidity(client, session, method):
    session.get.return_value = make_response(200, {"liquidityAvailable": False, "zid": "0x1"})
    with pytest.raises(AggregatorError, match="No liquidity"):
        getattr(client, method)(_request())


def test_request_url_is_logged(client, session, caplog):
    caplog.set_level(logging.DEBUG, logger="utils.zeroex_api")
    session.get.return_value = make_response(200, price_payload())

    client.get_price(_request())

    assert "Requested price: https://api.0x.org/test" in caplog.text
