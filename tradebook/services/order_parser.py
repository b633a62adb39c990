import csv
import io
import math
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional

from tradebook.config.logging import logger
from tradebook.core.exceptions import CSVStructureError
from tradebook.core.models import OrderParseResult, RawOrder, SkippedRow
from tradebook.services.field_mapper import map_headers

REQUIRED_FIELDS = ("symbol", "side", "quantity", "fill_price", "placing_time")

BUY_ALIASES = {"buy", "b", "long", "l", "bid"}
SELL_ALIASES = {"sell", "s", "short", "sh", "ask", "close"}

# Unix values above this are milliseconds, at or below it seconds.
MILLISECONDS_THRESHOLD = 1e12

_TIME_SUFFIX = r"(?:\s+(?P<hour>\d{1,2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))?)?"

# Tried in order after unix and ISO parsing have failed.
_DATE_PATTERNS = [
    # DD.MM.YYYY / DD/MM/YYYY
    re.compile(r"^(?P<day>\d{1,2})[./](?P<month>\d{1,2})[./](?P<year>\d{4})" + _TIME_SUFFIX),
    # MM/DD/YYYY
    re.compile(r"^(?P<month>\d{1,2})/(?P<day>\d{1,2})/(?P<year>\d{4})" + _TIME_SUFFIX),
    # YYYY-MM-DD
    re.compile(r"^(?P<year>\d{4})-(?P<month>\d{1,2})-(?P<day>\d{1,2})" + _TIME_SUFFIX),
    # YYYY/MM/DD
    re.compile(r"^(?P<year>\d{4})/(?P<month>\d{1,2})/(?P<day>\d{1,2})" + _TIME_SUFFIX),
]

_NUMERIC_NOISE = re.compile(r"[$€£¥,\s]")

ORDERS_TEMPLATE_CSV = """Symbol,Side,Type,Qty,Fill Price,Commission,Placing Time,Closing Time,Order ID,Leverage,Margin
EURUSD,Buy,Market,161290,1.16512,5.50,2025-12-05 09:15:00,2025-12-05 09:15:00,ORD001,1,1000
EURUSD,Sell,Market,161290,1.16580,5.50,2025-12-05 14:30:00,2025-12-05 14:30:00,ORD002,1,1000
GBPUSD,Sell,Limit,100000,1.27850,3.00,2025-12-05 10:00:00,2025-12-05 10:00:05,ORD003,1,800
GBPUSD,Buy,Market,100000,1.27650,3.00,2025-12-05 16:45:00,2025-12-05 16:45:00,ORD004,1,800
BTCUSD,Buy,Market,0.5,42500.00,12.50,2025-12-06 08:00:00,2025-12-06 08:00:00,ORD005,10,2125
BTCUSD,Sell,Market,0.5,43200.00,12.50,2025-12-06 20:00:00,2025-12-06 20:00:00,ORD006,10,2125
AAPL,Buy,Limit,100,175.50,1.00,2025-12-04 14:30:00,2025-12-04 14:30:05,ORD007,1,17550
AAPL,Sell,Market,100,178.25,1.00,2025-12-05 15:55:00,2025-12-05 15:55:00,ORD008,1,17550
TSLA,Sell,Market,50,250.00,0.50,2025-12-06 09:30:00,2025-12-06 09:30:00,ORD009,1,12500
TSLA,Buy,Market,50,245.00,0.50,2025-12-06 15:00:00,2025-12-06 15:00:00,ORD010,1,12500"""


def generate_orders_template() -> str:
    """Sample CSV showing the columns the importer understands."""
    return ORDERS_TEMPLATE_CSV


def normalize_side(value: str) -> Optional[str]:
    normalized = value.lower().strip()
    if normalized in BUY_ALIASES:
        return "buy"
    if normalized in SELL_ALIASES:
        return "sell"
    return None


def _as_utc(dt: datetime) -> datetime:
    # Naive timestamps are taken as UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_order_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Flexible timestamp parsing.

    Order of attempts: unix timestamp (seconds, or milliseconds above
    1e12), ISO 8601, then DD.MM.YYYY, DD/MM/YYYY, MM/DD/YYYY, YYYY-MM-DD
    and YYYY/MM/DD, each with an optional HH:MM[:SS]. Always returns an
    aware UTC datetime, or None when nothing fits.
    """
    if not value or not value.strip():
        return None

    trimmed = value.strip()

    try:
        number = float(trimmed)
    except ValueError:
        number = None
    if number is not None and math.isfinite(number) and number > 0:
        seconds = number / 1000 if number > MILLISECONDS_THRESHOLD else number
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            pass

    try:
        return _as_utc(datetime.fromisoformat(trimmed))
    except ValueError:
        pass

    for pattern in _DATE_PATTERNS:
        match = pattern.match(trimmed)
        if not match:
            continue
        parts = match.groupdict()
        try:
            return datetime(
                int(parts["year"]),
                int(parts["month"]),
                int(parts["day"]),
                int(parts["hour"] or 0),
                int(parts["minute"] or 0),
                int(parts["second"] or 0),
                tzinfo=timezone.utc,
            )
        except ValueError:
            # e.g. month 13 under DD/MM: let the next pattern try
            continue

    return None


def parse_order_numeric(value: Optional[str]) -> Optional[float]:
    """Strip currency symbols, thousands separators and whitespace, then parse."""
    if not value or not value.strip():
        return None
    cleaned = _NUMERIC_NOISE.sub("", value)
    try:
        number = float(cleaned)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _read_rows(text: str) -> List[tuple]:
    """(line_number, values) for every non-blank CSV record."""
    reader = csv.reader(io.StringIO(text), skipinitialspace=True)
    rows = []
    for values in reader:
        if not values or (len(values) == 1 and not values[0].strip()):
            continue
        rows.append((reader.line_num, [v.strip() for v in values]))
    return rows


def parse_orders_csv(text: str) -> OrderParseResult:
    """
    Parse a CSV of individual orders into RawOrder records.

    Invalid rows are reported in skipped_rows with a reason instead of
    raising. Only a CSV without a header and at least one data line is
    fatal (CSVStructureError).
    """
    stripped = text.strip()
    if len(stripped.splitlines()) < 2:
        raise CSVStructureError("CSV must have a header row and at least one data row")

    rows = _read_rows(stripped)
    _, headers = rows[0]
    field_mappings, detected_fields = map_headers(headers)

    missing = [f for f in REQUIRED_FIELDS if f not in detected_fields]
    if missing:
        logger.warning(f"No column detected for required fields: {', '.join(missing)}")

    # First header mapped to a field wins
    header_for_field: Dict[str, str] = {}
    for header, field_name in field_mappings.items():
        header_for_field.setdefault(field_name, header)

    def get_value(raw: Dict[str, str], field_name: str) -> Optional[str]:
        header = header_for_field.get(field_name)
        return raw.get(header) if header is not None else None

    orders: List[RawOrder] = []
    skipped_rows: List[SkippedRow] = []

    for row_number, values in rows[1:]:
        raw = {header: (values[i] if i < len(values) else "") for i, header in enumerate(headers)}

        symbol = (get_value(raw, "symbol") or "").strip().upper()
        side_value = get_value(raw, "side")
        side = normalize_side(side_value) if side_value else None
        quantity = parse_order_numeric(get_value(raw, "quantity"))
        fill_price = parse_order_numeric(get_value(raw, "fill_price"))
        placing_time = parse_order_datetime(get_value(raw, "placing_time"))

        if not symbol:
            skipped_rows.append(SkippedRow(row_number, "Missing symbol"))
            continue
        if not side:
            skipped_rows.append(SkippedRow(row_number, f"Invalid side: {side_value or 'missing'}"))
            continue
        if quantity is None or quantity <= 0:
            skipped_rows.append(SkippedRow(row_number, "Invalid quantity"))
            continue
        if fill_price is None or fill_price <= 0:
            skipped_rows.append(SkippedRow(row_number, "Invalid fill price"))
            continue
        if placing_time is None:
            skipped_rows.append(SkippedRow(row_number, "Invalid placing time"))
            continue

        orders.append(RawOrder(
            row_number=row_number,
            symbol=symbol,
            side=side,
            quantity=quantity,
            fill_price=fill_price,
            placing_time=placing_time,
            closing_time=parse_order_datetime(get_value(raw, "closing_time")),
            commission=parse_order_numeric(get_value(raw, "commission")),
            leverage=parse_order_numeric(get_value(raw, "leverage")),
            margin=parse_order_numeric(get_value(raw, "margin")),
            order_id=(get_value(raw, "order_id") or "").strip() or None,
            order_type=(get_value(raw, "order_type") or "").strip() or None,
            raw=raw,
        ))

    return OrderParseResult(
        orders=orders,
        skipped_rows=skipped_rows,
        field_mappings=field_mappings,
        detected_fields=detected_fields,
    )
