from datetime import datetime
from typing import Any, Dict, Optional

from tradebook.core.models import ExchangeConnection, Position, TradingMetrics


def _text(content: str) -> list:
    return [{"type": "text", "text": {"content": content}}]


def _date(value: Optional[datetime]) -> Dict[str, Any]:
    return {"date": {"start": value.isoformat()} if value else None}


class NotionMapper:
    """
    Converts domain models to Notion database properties and back.
    Property names must match the Notion databases exactly.

    Positions DB: Symbol(Title), User(Text), Side(Select), Entry Price,
    Exit Price, Quantity, PnL, Fees (Number), Entry Time, Exit Time (Date),
    Asset Class, Platform (Select), Exchange Source (Text),
    Exchange Verified, Open (Checkbox), MAE, MFE, R Multiple,
    Estimated Risk (Number), Metrics Calculated At (Date).
    """

    @staticmethod
    def get_prop(props: Dict[str, Any], name: str) -> Any:
        p = props.get(name, {})
        p_type = p.get("type")
        if not p_type:
            return None

        if p_type == "date":
            start = (p.get("date") or {}).get("start")
            return datetime.fromisoformat(start) if start else None
        elif p_type == "select":
            return (p.get("select") or {}).get("name")
        elif p_type == "number":
            return p.get("number")
        elif p_type == "checkbox":
            return bool(p.get("checkbox"))
        elif p_type in ("rich_text", "title"):
            t = p.get(p_type, [])
            return t[0].get("plain_text") if t else ""
        return None

    @staticmethod
    def position_to_props(position: Position) -> Dict[str, Any]:
        props = {
            "Symbol": {"title": _text(position.symbol)},
            "User": {"rich_text": _text(position.user_id)},
            "Side": {"select": {"name": position.side}},
            "Entry Price": {"number": position.entry_price},
            "Exit Price": {"number": position.exit_price},
            "Quantity": {"number": position.quantity},
            "PnL": {"number": position.pnl},
            "Fees": {"number": position.fees_total},
            "Entry Time": _date(position.entry_timestamp),
            "Exit Time": _date(position.exit_timestamp),
            "Exchange Verified": {"checkbox": position.is_exchange_verified},
            "Open": {"checkbox": position.open},
        }
        if position.asset_class:
            props["Asset Class"] = {"select": {"name": position.asset_class}}
        if position.platform:
            props["Platform"] = {"select": {"name": position.platform}}
        if position.exchange_source:
            props["Exchange Source"] = {"rich_text": _text(position.exchange_source)}
        return props

    @staticmethod
    def position_metrics_to_props(
        mae: Optional[float],
        mfe: Optional[float],
        r_multiple: float,
        estimated_risk: float,
        calculated_at: datetime,
    ) -> Dict[str, Any]:
        return {
            "MAE": {"number": mae},
            "MFE": {"number": mfe},
            "R Multiple": {"number": r_multiple},
            "Estimated Risk": {"number": estimated_risk},
            "Metrics Calculated At": _date(calculated_at),
        }

    @staticmethod
    def page_to_position(page: Dict[str, Any]) -> Position:
        props = page.get("properties", {})
        def get(name):
            return NotionMapper.get_prop(props, name)

        return Position(
            id=page.get("id"),
            user_id=get("User") or "",
            symbol=get("Symbol") or "",
            side=get("Side") or "",
            entry_price=get("Entry Price") or 0.0,
            entry_timestamp=get("Entry Time"),
            quantity=get("Quantity") or 0.0,
            exit_price=get("Exit Price"),
            exit_timestamp=get("Exit Time"),
            pnl=get("PnL"),
            fees_total=get("Fees") or 0.0,
            asset_class=get("Asset Class"),
            is_exchange_verified=bool(get("Exchange Verified")),
            exchange_source=get("Exchange Source") or None,
            platform=get("Platform"),
            open=bool(get("Open")),
            mae=get("MAE"),
            mfe=get("MFE"),
            r_multiple=get("R Multiple"),
            estimated_risk=get("Estimated Risk"),
            metrics_calculated_at=get("Metrics Calculated At"),
        )

    @staticmethod
    def metrics_to_props(metrics: TradingMetrics) -> Dict[str, Any]:
        return {
            "User": {"title": _text(metrics.user_id)},
            "Verified Trades": {"number": metrics.total_verified_trades},
            "Wins": {"number": metrics.total_wins},
            "Losses": {"number": metrics.total_losses},
            "Breakeven": {"number": metrics.total_breakeven},
            "Win Rate": {"number": metrics.win_rate},
            "Average R": {"number": metrics.average_r},
            "Total R": {"number": metrics.total_r},
            "Positive R %": {"number": metrics.positive_r_percentage},
            "R Variance": {"number": metrics.r_variance},
            "Accuracy Score": {"number": metrics.accuracy_score},
            "Verified": {"checkbox": metrics.is_verified},
            "API Status": {"select": {"name": metrics.api_status}},
            "Trades Processed": {"number": metrics.trades_processed},
            "Last API Sync": _date(metrics.last_api_sync_at),
            "Updated At": _date(metrics.updated_at),
        }

    @staticmethod
    def page_to_metrics(page: Dict[str, Any]) -> TradingMetrics:
        props = page.get("properties", {})
        def get(name):
            return NotionMapper.get_prop(props, name)

        return TradingMetrics(
            user_id=get("User") or "",
            total_verified_trades=int(get("Verified Trades") or 0),
            total_wins=int(get("Wins") or 0),
            total_losses=int(get("Losses") or 0),
            total_breakeven=int(get("Breakeven") or 0),
            win_rate=get("Win Rate"),
            average_r=get("Average R") or 0.0,
            total_r=get("Total R") or 0.0,
            positive_r_percentage=get("Positive R %") or 0.0,
            r_variance=get("R Variance") or 0.0,
            accuracy_score=get("Accuracy Score"),
            is_verified=bool(get("Verified")),
            api_status=get("API Status") or "disconnected",
            trades_processed=int(get("Trades Processed") or 0),
            last_api_sync_at=get("Last API Sync"),
            updated_at=get("Updated At"),
        )

    @staticmethod
    def page_to_connection(page: Dict[str, Any]) -> ExchangeConnection:
        props = page.get("properties", {})
        return ExchangeConnection(
            user_id=NotionMapper.get_prop(props, "User") or "",
            exchange=NotionMapper.get_prop(props, "Exchange") or "",
            status=NotionMapper.get_prop(props, "Status") or "",
            last_sync_at=NotionMapper.get_prop(props, "Last Sync"),
        )
