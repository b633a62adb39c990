import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
import requests
from notion_client import Client
from notion_client.errors import APIResponseError, HTTPResponseError, RequestTimeoutError

from tradebook.config.logging import get_logger
from tradebook.config.settings import settings
from tradebook.core.exceptions import ConfigurationError, DataDestinationError
from tradebook.core.models import ExchangeConnection, Position, TradingMetrics
from tradebook.infrastructure.base import TradeStore
from .mapper import NotionMapper

logger = get_logger("notion")

NOTION_API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
# Notion allows an average of 3 requests per second
NOTION_REQUEST_DELAY = 0.4

# Failures notion_client and its httpx transport raise on a write
NOTION_WRITE_ERRORS = (APIResponseError, HTTPResponseError, RequestTimeoutError, httpx.HTTPError)


class NotionTradeStore(TradeStore):
    """
    TradeStore backed by three Notion databases: positions, per-user
    metrics and (optionally) exchange connections.
    Queries go through the REST endpoint directly, writes through
    notion_client.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        positions_db_id: Optional[str] = None,
        metrics_db_id: Optional[str] = None,
        connections_db_id: Optional[str] = None,
        request_delay: float = NOTION_REQUEST_DELAY,
    ):
        self.token = token or (settings.NOTION_TOKEN if settings else None)
        if not self.token:
            raise ConfigurationError("NOTION_TOKEN is not set")
        self.positions_db_id = positions_db_id or (settings.NOTION_POSITIONS_DB_ID if settings else None)
        self.metrics_db_id = metrics_db_id or (settings.NOTION_METRICS_DB_ID if settings else None)
        self.connections_db_id = connections_db_id or (settings.NOTION_CONNECTIONS_DB_ID if settings else None)
        if not self.positions_db_id or not self.metrics_db_id:
            raise ConfigurationError("NOTION_POSITIONS_DB_ID and NOTION_METRICS_DB_ID must be set")

        self.client = Client(auth=self.token)
        self.request_delay = request_delay

    def _query_database(self, database_id: str, **kwargs) -> List[Dict[str, Any]]:
        """POST /databases/{id}/query, following next_cursor until exhausted."""
        url = f"{NOTION_API_URL}/databases/{database_id}/query"
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Notion-Version": NOTION_VERSION,
            "Content-Type": "application/json",
        }

        results: List[Dict[str, Any]] = []
        body = {**kwargs, "page_size": 100}
        while True:
            try:
                response = requests.post(url, headers=headers, json=body, timeout=30)
                response.raise_for_status()
                data = response.json()
            except requests.exceptions.RequestException as e:
                raise DataDestinationError(f"Notion query failed: {e}")

            results.extend(data.get("results", []))
            if not data.get("has_more"):
                return results
            body["start_cursor"] = data.get("next_cursor")

    def _user_filter(self, prop: str, user_id: str, prop_type: str = "rich_text") -> Dict[str, Any]:
        return {"property": prop, prop_type: {"equals": user_id}}

    def _create_page(self, database_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        try:
            page = self.client.pages.create(parent={"database_id": database_id}, properties=properties)
        except APIResponseError as e:
            if e.code != "rate_limited":
                raise DataDestinationError(f"Notion save error: {e}")
            logger.warning("Notion rate limit hit. Sleeping for 60 seconds...")
            time.sleep(60)
            try:
                page = self.client.pages.create(parent={"database_id": database_id}, properties=properties)
            except NOTION_WRITE_ERRORS as retry_error:
                raise DataDestinationError(f"Notion save error after retry: {retry_error}")
        except NOTION_WRITE_ERRORS as e:
            raise DataDestinationError(f"Notion save error: {e}")
        time.sleep(self.request_delay)
        return page

    def _update_page(self, page_id: str, properties: Dict[str, Any]):
        try:
            self.client.pages.update(page_id=page_id, properties=properties)
        except NOTION_WRITE_ERRORS as e:
            raise DataDestinationError(f"Notion update error for page {page_id}: {e}")
        time.sleep(self.request_delay)

    def list_positions(self, user_id: str) -> List[Position]:
        pages = self._query_database(self.positions_db_id, filter=self._user_filter("User", user_id))
        return [NotionMapper.page_to_position(p) for p in pages]

    def get_closed_positions(self, user_id: str) -> List[Position]:
        pages = self._query_database(
            self.positions_db_id,
            filter={"and": [
                self._user_filter("User", user_id),
                {"property": "Open", "checkbox": {"equals": False}},
                {"property": "Exit Price", "number": {"is_not_empty": True}},
            ]},
            sorts=[{"property": "Exit Time", "direction": "descending"}],
        )
        positions = [NotionMapper.page_to_position(p) for p in pages]
        return [p for p in positions if p.is_closed]

    def insert_positions(self, positions: List[Position]) -> List[Position]:
        created = []
        for position in positions:
            page = self._create_page(self.positions_db_id, NotionMapper.position_to_props(position))
            created.append(NotionMapper.page_to_position(page) if page.get("properties") else position)
        logger.info(f"Saved {len(created)} positions to Notion.")
        return created

    def update_position_metrics(
        self,
        position_id: str,
        mae: Optional[float],
        mfe: Optional[float],
        r_multiple: float,
        estimated_risk: float,
        calculated_at: datetime,
    ) -> None:
        props = NotionMapper.position_metrics_to_props(mae, mfe, r_multiple, estimated_risk, calculated_at)
        self._update_page(position_id, props)

    def get_exchange_connection(self, user_id: str) -> Optional[ExchangeConnection]:
        if not self.connections_db_id:
            logger.warning("NOTION_CONNECTIONS_DB_ID not set, treating user as disconnected.")
            return None

        pages = self._query_database(
            self.connections_db_id,
            filter={"and": [
                self._user_filter("User", user_id, "title"),
                {"property": "Status", "select": {"equals": "connected"}},
            ]},
        )
        if not pages:
            return None
        return NotionMapper.page_to_connection(pages[0])

    def _find_metrics_page(self, user_id: str) -> Optional[Dict[str, Any]]:
        pages = self._query_database(self.metrics_db_id, filter=self._user_filter("User", user_id, "title"))
        return pages[0] if pages else None

    def upsert_metrics(self, metrics: TradingMetrics) -> None:
        properties = NotionMapper.metrics_to_props(metrics)
        existing = self._find_metrics_page(metrics.user_id)
        if existing:
            self._update_page(existing["id"], properties)
        else:
            self._create_page(self.metrics_db_id, properties)
        logger.info(f"Saved trading metrics for user {metrics.user_id} to Notion.")

    def get_metrics(self, user_id: str) -> Optional[TradingMetrics]:
        page = self._find_metrics_page(user_id)
        return NotionMapper.page_to_metrics(page) if page else None
