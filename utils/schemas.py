"""Request value object and the 0x response schemas.

Responses are validated at the API boundary: numeric strings are coerced to
int, unknown fields are ignored, and a missing required field or a wrong
type fails validation.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from web3 import Web3

from utils.helper import TOTAL_BPS


def _validate_address(value: str) -> str:
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ValueError(f"not a 20-byte hex address: {value!r}")
    return value


@dataclass(frozen=True)
class SwapRequest:
    """One swap: sell a fixed amount of sell_token for buy_token."""

    chain_id: int
    sell_token: str
    buy_token: str
    sell_amount: int  # smallest unit
    taker: str
    affiliate_address: Optional[str] = None
    affiliate_fee_bps: int = 100

    def __post_init__(self):
        if int(self.sell_amount) <= 0:
            raise ValueError(f"sell_amount must be > 0, got {self.sell_amount}")
        for name in ("sell_token", "buy_token", "taker"):
            _validate_address(getattr(self, name))
        if self.affiliate_address is not None:
            _validate_address(self.affiliate_address)
        if not 0 <= int(self.affiliate_fee_bps) <= TOTAL_BPS:
            raise ValueError(f"affiliate_fee_bps must be between 0 and {TOTAL_BPS}")


class ApiModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# ---------- /swap/permit2/price ----------

class Fill(ApiModel):
    source: str
    proportion_bps: int = Field(alias="proportionBps", ge=0, le=TOTAL_BPS)


class Route(ApiModel):
    fills: List[Fill] = Field(default_factory=list)


class AllowanceIssue(ApiModel):
    spender: str
    actual: int = 0

    @field_validator("spender")
    @classmethod
    def _check_spender(cls, v: str) -> str:
        return _validate_address(v)


class BalanceIssue(ApiModel):
    token: str
    actual: int
    expected: int


class Issues(ApiModel):
    allowance: Optional[AllowanceIssue] = None
    balance: Optional[BalanceIssue] = None


class PriceQuote(ApiModel):
    liquidity_available: bool = Field(default=True, alias="liquidityAvailable")
    buy_amount: Optional[int] = Field(default=None, alias="buyAmount")
    sell_amount: Optional[int] = Field(default=None, alias="sellAmount")
    route: Optional[Route] = None
    issues: Optional[Issues] = None

    @property
    def fills(self) -> List[Fill]:
        return self.route.fills if self.route else []

    @property
    def allowance_issue(self) -> Optional[AllowanceIssue]:
        return self.issues.allowance if self.issues else None

    @property
    def balance_issue(self) -> Optional[BalanceIssue]:
        return self.issues.balance if self.issues else None


# ---------- /swap/permit2/quote ----------

class QuoteTransaction(ApiModel):
    to: str
    data: str
    value: int = 0
    gas: Optional[int] = None

    @field_validator("to")
    @classmethod
    def _check_to(cls, v: str) -> str:
        return _validate_address(v)

    @field_validator("data")
    @classmethod
    def _check_data(cls, v: str) -> str:
        if not v.startswith("0x"):
            raise ValueError("transaction.data must be 0x-prefixed hex")
        try:
            bytes.fromhex(v[2:])
        except ValueError:
            raise ValueError("transaction.data is not valid hex")
        return v


class Eip712Payload(ApiModel):
    types: Dict[str, List[Dict[str, str]]]
    domain: Dict[str, Any]
    message: Dict[str, Any]
    primary_type: str = Field(alias="primaryType")

    def to_typed_data(self) -> dict:
        """
        The full EIP-712 message as eth-account expects it.

        The API sends uint256 values as decimal strings; they are turned into
        ints following the declared types so the struct hash matches the one
        the Permit2 contract computes.
        """
        data = self.model_dump(by_alias=True)
        if "EIP712Domain" in self.types:
            data["domain"] = _coerce_typed_value(self.types, "EIP712Domain", data["domain"])
        data["message"] = _coerce_typed_value(self.types, self.primary_type, data["message"])
        return data


def _coerce_typed_value(types: Dict[str, List[Dict[str, str]]], type_name: str, value: Any) -> Any:
    if type_name.endswith("]"):
        inner = type_name[:type_name.rindex("[")]
        return [_coerce_typed_value(types, inner, v) for v in value]
    if type_name in types:
        if not isinstance(value, dict):
            raise ValueError(f"expected an object for EIP-712 type {type_name}")
        out = dict(value)
        for field in types[type_name]:
            if field["name"] in out:
                out[field["name"]] = _coerce_typed_value(types, field["type"], out[field["name"]])
        return out
    if type_name.startswith(("uint", "int")) and isinstance(value, str):
        return int(value, 16) if value.startswith(("0x", "0X")) else int(value)
    return value


class Permit2(ApiModel):
    eip712: Optional[Eip712Payload] = None


class TokenTax(ApiModel):
    buy_tax_bps: Optional[int] = Field(default=None, alias="buyTaxBps")
    sell_tax_bps: Optional[int] = Field(default=None, alias="sellTaxBps")


class TokenMetadata(ApiModel):
    buy_token: Optional[TokenTax] = Field(default=None, alias="buyToken")
    sell_token: Optional[TokenTax] = Field(default=None, alias="sellToken")


class FirmQuote(ApiModel):
    liquidity_available: bool = Field(default=True, alias="liquidityAvailable")
    buy_amount: Optional[int] = Field(default=None, alias="buyAmount")
    transaction: Optional[QuoteTransaction] = None
    permit2: Optional[Permit2] = None
    token_metadata: Optional[TokenMetadata] = Field(default=None, alias="tokenMetadata")

    @model_validator(mode="after")
    def _transaction_when_liquid(self):
        if self.liquidity_available and self.transaction is None:
            raise ValueError("quote is missing 'transaction'")
        return self

    @property
    def eip712(self) -> Optional[Eip712Payload]:
        return self.permit2.eip712 if self.permit2 else None

    @property
    def buy_tax_bps(self) -> int:
        meta = self.token_metadata
        if meta and meta.buy_token and meta.buy_token.buy_tax_bps:
            return meta.buy_token.buy_tax_bps
        return 0

    @property
    def sell_tax_bps(self) -> int:
        meta = self.token_metadata
        if meta and meta.sell_token and meta.sell_token.sell_tax_bps:
            return meta.sell_token.sell_tax_bps
        return 0


# ---------- /swap/v1/sources ----------

class SourceEntry(ApiModel):
    name: str


class SourcesList(ApiModel):
    sources: List[Union[SourceEntry, str]]

    @property
    def names(self) -> List[str]:
        return [s.name if isinstance(s, SourceEntry) else s for s in self.sources]
