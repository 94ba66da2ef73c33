import math
import re
from dataclasses import dataclass
from typing import Annotated, Any, Dict, Literal, Mapping, Optional, Type, Union

import msgspec
from msgspec import UNSET, Meta, Struct, UnsetType

from .errors import InvalidFieldError

Side = Literal["Buy", "Sell"]
OrderType = Literal["Limit", "Market"]
TimeInForce = Literal["GoodTillCancel", "ImmediateOrCancel", "FillOrKill", "PostOnly"]
SortOrder = Literal["desc", "asc"]
KlineInterval = Literal["1", "3", "5", "15", "30", "60", "120", "240", "360", "720", "D", "W", "M", "Y"]

NonEmpty = Annotated[str, Meta(min_length=1)]
Qty = Annotated[int, Meta(ge=1)]
Price = Annotated[float, Meta(ge=0)]
Positive = Annotated[float, Meta(gt=0)]
Page = Annotated[int, Meta(ge=1)]
PageLimit = Annotated[int, Meta(ge=1, le=50)]
KlineLimit = Annotated[int, Meta(ge=1, le=200)]
Epoch = Annotated[int, Meta(ge=0)]

# filled in by the signing pipeline, never by the caller
RESERVED = frozenset({"api_key", "timestamp", "sign"})

# "... - at `$.qty`" or "Object missing required field `side`"
_FIELD_PATH = re.compile(r"\$\.(\w+)|field `(\w+)`")


class Params(Struct, forbid_unknown_fields=True, kw_only=True):
    """Base for request schemas. Optional fields default to UNSET so None is never accepted."""

    def __post_init__(self) -> None:
        # nan/inf are not rejected by Meta bounds
        for name, wire in zip(self.__struct_fields__, self.__struct_encode_fields__):
            value = getattr(self, name)
            if isinstance(value, float) and not math.isfinite(value):
                raise ValueError(f"Expected a finite number - at `$.{wire}`")


class EmptyParams(Params):
    pass


class SymbolParams(Params):
    symbol: NonEmpty


class OrderParams(Params):
    side: Side
    symbol: NonEmpty
    order_type: OrderType
    qty: Qty
    time_in_force: TimeInForce
    price: Union[Price, UnsetType] = UNSET
    close_on_trigger: Union[bool, UnsetType] = UNSET
    order_link_id: Union[NonEmpty, UnsetType] = UNSET

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.order_type == "Limit" and self.price is UNSET:
            raise ValueError("Limit orders require a price - at `$.price`")


class PlaceActiveOrder(OrderParams):
    take_profit: Union[Price, UnsetType] = UNSET
    stop_loss: Union[Price, UnsetType] = UNSET
    reduce_only: Union[bool, UnsetType] = UNSET


class PlaceConditionalOrder(OrderParams, kw_only=True):
    base_price: Price
    stop_px: Price


class ActiveOrderQuery(Params):
    order_id: Union[NonEmpty, UnsetType] = UNSET
    order_link_id: Union[NonEmpty, UnsetType] = UNSET
    symbol: Union[NonEmpty, UnsetType] = UNSET
    order: Union[SortOrder, UnsetType] = UNSET
    page: Union[Page, UnsetType] = UNSET
    limit: Union[PageLimit, UnsetType] = UNSET
    order_status: Union[NonEmpty, UnsetType] = UNSET


class CancelActiveOrder(Params):
    order_id: NonEmpty
    symbol: Union[NonEmpty, UnsetType] = UNSET


class ConditionalOrderQuery(Params):
    stop_order_id: Union[NonEmpty, UnsetType] = UNSET
    order_link_id: Union[NonEmpty, UnsetType] = UNSET
    symbol: Union[NonEmpty, UnsetType] = UNSET
    stop_order_status: Union[NonEmpty, UnsetType] = UNSET
    order: Union[SortOrder, UnsetType] = UNSET
    page: Union[Page, UnsetType] = UNSET
    limit: Union[PageLimit, UnsetType] = UNSET


class CancelConditionalOrder(Params):
    stop_order_id: NonEmpty
    symbol: Union[NonEmpty, UnsetType] = UNSET


class UpdateLeverage(Params):
    symbol: NonEmpty
    leverage: Positive


class UpdatePositionMargin(Params):
    symbol: NonEmpty
    margin: float


class ExecutionQuery(Params):
    symbol: NonEmpty
    order_id: Union[NonEmpty, UnsetType] = UNSET
    start_time: Union[Epoch, UnsetType] = UNSET
    page: Union[Page, UnsetType] = UNSET
    limit: Union[PageLimit, UnsetType] = UNSET


class KlineQuery(Params, rename={"from_": "from"}):
    symbol: NonEmpty
    interval: KlineInterval
    from_: Epoch
    limit: Union[KlineLimit, UnsetType] = UNSET


@dataclass(frozen=True)
class Operation:
    name: str
    method: str
    path: str
    schema: Type[Params] = EmptyParams

    def validate(self, params: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Check params against the schema; returns a plain copy to sign and send."""
        if params is None:
            params = {}
        if not isinstance(params, Mapping):
            raise InvalidFieldError(self.name, None, f"expected a mapping, got {type(params).__name__}")

        for key in params:
            if key in RESERVED:
                raise InvalidFieldError(self.name, key, "reserved for request signing")

        try:
            msgspec.convert(dict(params), self.schema, strict=True)
        except (msgspec.ValidationError, ValueError) as e:
            m = _FIELD_PATH.search(str(e))
            field = (m.group(1) or m.group(2)) if m else None
            raise InvalidFieldError(self.name, field, str(e)) from e

        return dict(params)


OPERATIONS: Dict[str, Operation] = {
    op.name: op
    for op in (
        # ---------- active orders ----------
        Operation("place_active_order", "POST", "/open-api/order/create", PlaceActiveOrder),
        Operation("get_active_orders", "GET", "/open-api/order/list", ActiveOrderQuery),
        Operation("cancel_active_order", "POST", "/open-api/order/cancel", CancelActiveOrder),
        # ---------- conditional orders ----------
        Operation("place_conditional_order", "POST", "/open-api/stop-order/create", PlaceConditionalOrder),
        Operation("get_conditional_orders", "GET", "/open-api/stop-order/list", ConditionalOrderQuery),
        Operation("cancel_conditional_order", "POST", "/open-api/stop-order/cancel", CancelConditionalOrder),
        # ---------- leverage / positions ----------
        Operation("get_leverage", "GET", "/user/leverage"),
        Operation("update_leverage", "POST", "/user/leverage/save", UpdateLeverage),
        Operation("get_positions", "GET", "/position/list"),
        Operation("update_position_margin", "POST", "/position/change-position-margin", UpdatePositionMargin),
        # ---------- funding ----------
        Operation("get_funding_rate", "GET", "/open-api/funding/prev-funding-rate", SymbolParams),
        Operation("get_prev_funding_rate", "GET", "/open-api/funding/prev-funding", SymbolParams),
        Operation("get_next_funding_rate", "GET", "/open-api/funding/predicted-funding", SymbolParams),
        # ---------- executions / market data ----------
        Operation("get_order_info", "GET", "/v2/private/execution/list", ExecutionQuery),
        Operation("get_symbols", "GET", "/v2/public/symbols"),
        Operation("get_kline", "GET", "/v2/public/kline/list", KlineQuery),
    )
}
