"""
Directory storage access via PostgREST API + service key.
Uses httpx for async HTTP calls instead of a direct PostgreSQL connection.
"""
from typing import Any

import httpx

from access_gateway.config import settings

_client: httpx.AsyncClient | None = None


async def init_db():
    global _client
    headers = {
        "Content-Type": "application/json",
        "Prefer": "return=representation",
    }
    if settings.postgrest_api_key:
        headers["apikey"] = settings.postgrest_api_key
        headers["Authorization"] = f"Bearer {settings.postgrest_api_key}"
    _client = httpx.AsyncClient(base_url=settings.postgrest_url, headers=headers, timeout=30)


async def close_db():
    global _client
    if _client:
        await _client.aclose()
        _client = None


def get_client() -> httpx.AsyncClient:
    assert _client is not None, "Database client not initialized"
    return _client


def sanitize_filter_value(value: str) -> str:
    """Strip characters with meaning in PostgREST filter syntax."""
    return "".join(ch for ch in value if ch not in ",()*\"\\")


class DB:
    """Database helper providing a simpler interface over PostgREST."""

    def __init__(self, client: httpx.AsyncClient | None = None):
        self.client = client or get_client()

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        order: str | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        params: dict[str, str] = {"select": columns}
        if filters:
            for key, val in filters.items():
                params[key] = val
        if order:
            params["order"] = order
        if limit:
            params["limit"] = str(limit)

        resp = await self.client.get(f"/{table}", params=params)
        resp.raise_for_status()
        return resp.json()

    async def select_one(self, table: str, columns: str = "*", filters: dict[str, Any] | None = None) -> dict | None:
        rows = await self.select(table, columns=columns, filters=filters, limit=1)
        return rows[0] if rows else None

    async def update(self, table: str, data: dict, filters: dict[str, str]) -> list[dict]:
        params = {}
        for key, val in filters.items():
            params[key] = val
        resp = await self.client.patch(f"/{table}", json=data, params=params)
        resp.raise_for_status()
        return resp.json()


def get_db() -> DB:
    return DB()
