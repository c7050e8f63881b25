"""
Angor indexer backend (Esplora-style REST API plus the Angor query endpoints).
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, TypeAdapter, ValidationError

from angorspend.backends.base import IndexerGateway
from angorspend.constants import DEFAULT_REQUEST_TIMEOUT
from angorspend.errors import BroadcastError, RemoteLookupError
from angorspend.models import (
    InvestmentRecord,
    OutspendRecord,
    ProjectRecord,
    TransactionRecord,
)

_PROJECTS = TypeAdapter(list[ProjectRecord])
_INVESTMENTS = TypeAdapter(list[InvestmentRecord])
_OUTSPENDS = TypeAdapter(list[OutspendRecord])


class HttpIndexer(IndexerGateway):
    """
    Indexer gateway over HTTP.

    Endpoints (relative to the network's base URL):
    - GET  query/Angor/projects?limit=L&offset=O
    - GET  query/Angor/projects/{project_id}/investments
    - GET  tx/{txid}
    - GET  tx/{txid}/outspends
    - POST tx (raw hex body, text/plain) -> txid
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def _get_json(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}/{endpoint}"
        logger.debug(f"GET {url} {params or ''}")

        try:
            response = await self.client.get(url, params=params)
            response.raise_for_status()
            return response.json()

        except httpx.HTTPError as e:
            raise RemoteLookupError(f"Indexer request failed: {endpoint} - {e}") from e
        except ValueError as e:
            raise RemoteLookupError(f"Indexer returned invalid JSON: {endpoint} - {e}") from e

    @staticmethod
    def _parse(adapter: TypeAdapter[Any] | type[BaseModel], data: Any, endpoint: str) -> Any:
        try:
            if isinstance(adapter, TypeAdapter):
                return adapter.validate_python(data)
            return adapter.model_validate(data)
        except ValidationError as e:
            raise RemoteLookupError(
                f"Unexpected response shape from {endpoint}: {e.error_count()} error(s): {e}"
            ) from e

    async def list_projects(self, limit: int, offset: int) -> list[ProjectRecord]:
        endpoint = "query/Angor/projects"
        data = await self._get_json(endpoint, params={"limit": limit, "offset": offset})
        if data is None:
            return []
        return self._parse(_PROJECTS, data, endpoint)

    async def list_investments(self, project_id: str) -> list[InvestmentRecord]:
        endpoint = f"query/Angor/projects/{project_id}/investments"
        data = await self._get_json(endpoint)
        if data is None:
            return []
        return self._parse(_INVESTMENTS, data, endpoint)

    async def get_transaction(self, txid: str) -> TransactionRecord:
        endpoint = f"tx/{txid}"
        data = await self._get_json(endpoint)
        if data is None:
            raise RemoteLookupError(f"Transaction {txid} not found")
        return self._parse(TransactionRecord, data, endpoint)

    async def get_outspends(self, txid: str) -> list[OutspendRecord]:
        endpoint = f"tx/{txid}/outspends"
        data = await self._get_json(endpoint)
        if data is None:
            raise RemoteLookupError(f"No spend status for transaction {txid}")
        return self._parse(_OUTSPENDS, data, endpoint)

    async def broadcast_transaction(self, tx_hex: str) -> str:
        url = f"{self.base_url}/tx"
        logger.info(f"Broadcasting transaction hex to {url}")

        try:
            response = await self.client.post(
                url, content=tx_hex, headers={"Content-Type": "text/plain"}
            )
        except httpx.HTTPError as e:
            raise BroadcastError(f"Broadcast request failed: {e}", tx_hex=tx_hex) from e

        body = response.text.strip()
        logger.debug(f"Broadcast response status: {response.status_code}, content: {body}")

        if response.is_error:
            raise BroadcastError(
                f"Broadcast rejected ({response.status_code}): {body}", tx_hex=tx_hex
            )
        if not body:
            raise BroadcastError("Broadcast returned an empty txid", tx_hex=tx_hex)

        logger.info(f"Broadcast transaction: {body}")
        return body

    async def close(self) -> None:
        await self.client.aclose()
