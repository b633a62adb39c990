import re
from typing import Dict, List, Optional, Tuple

# Canonical field -> accepted header aliases, checked in this order.
# 'type' is deliberately absent from 'side': it usually means Market/Limit/Stop.
ORDER_FIELD_ALIASES: Dict[str, List[str]] = {
    "symbol": ["symbol", "instrument", "asset", "ticker", "pair", "market", "name", "security"],
    "side": ["side", "direction", "action", "order_side", "orderside", "buy_sell", "buysell",
             "b/s", "trade_side", "tradeside"],
    "quantity": ["quantity", "qty", "size", "positionsize", "position_size", "contracts",
                 "amount", "volume", "lots", "units"],
    "fill_price": ["fill_price", "fillprice", "filled_price", "price", "execution_price",
                   "exec_price", "avg_price", "avgprice", "entry_price", "entryprice", "fill"],
    "placing_time": ["placing_time", "placingtime", "placing time", "entry_time", "entrytime",
                     "open_time", "opentime", "date", "datetime", "timestamp", "time",
                     "trade_date", "tradedate", "created", "created_at", "order_time",
                     "ordertime", "open_date", "opendate", "entry_date", "entrydate",
                     "trade_time", "tradetime"],
    "closing_time": ["closing_time", "closingtime", "closing time", "exit_time", "exittime",
                     "close_time", "closetime", "closed", "closed_at", "fill_time", "filltime",
                     "close_date", "closedate", "exit_date", "exitdate"],
    "commission": ["commission", "fees", "fee", "tradecost", "trade_cost", "brokerfee",
                   "broker_fee", "cost", "trading_fee", "comm"],
    "leverage": ["leverage", "lev", "multiplier"],
    "margin": ["margin", "margin_used", "marginused", "collateral"],
    "order_id": ["order_id", "orderid", "id", "trade_id", "tradeid", "ticket", "deal_id", "dealid"],
    "order_type": ["order_type", "ordertype", "exec_type", "exectype", "type"],
}

_SEPARATORS = re.compile(r"[\s\-_./]")


def normalize_field_name(name: str) -> str:
    return _SEPARATORS.sub("", name.lower()).strip()


# Pre-normalised once; the alias table itself stays human readable.
_NORMALIZED_ALIASES: List[Tuple[str, List[str]]] = [
    (field_name, [normalize_field_name(alias) for alias in aliases])
    for field_name, aliases in ORDER_FIELD_ALIASES.items()
]


def match_order_field(header: str) -> Optional[str]:
    """
    Resolve one CSV header to a canonical field name.
    Exact alias match over all fields first, then substring containment
    in either direction. Returns None when nothing matches.
    """
    normalized = normalize_field_name(header)
    if not normalized:
        return None

    for field_name, aliases in _NORMALIZED_ALIASES:
        if normalized in aliases:
            return field_name

    for field_name, aliases in _NORMALIZED_ALIASES:
        for alias in aliases:
            if alias in normalized or normalized in alias:
                return field_name

    return None


def map_headers(headers: List[str]) -> Tuple[Dict[str, str], List[str]]:
    """
    Map every header of a CSV to its canonical field.

    Returns (field_mappings, detected_fields): the header -> field dict in
    header order, and the distinct fields found in first-seen order.
    """
    field_mappings: Dict[str, str] = {}
    detected_fields: List[str] = []

    for header in headers:
        field_name = match_order_field(header)
        if field_name:
            field_mappings[header] = field_name
            if field_name not in detected_fields:
                detected_fields.append(field_name)

    return field_mappings, detected_fields
