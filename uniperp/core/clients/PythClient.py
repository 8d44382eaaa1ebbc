from __future__ import annotations

import time
from decimal import Decimal
from typing import Any

import httpx
from loguru import logger

from uniperp.core.constants.base import DEFAULT_HTTP_TIMEOUT, PRICE_DECIMALS
from uniperp.core.constants.contracts import PYTH_ETH_USD_FEED_ID

HERMES_BASE_URL = "https://hermes.pyth.network"


class PythClient:
    """Reads latest prices from the Pyth Hermes REST API."""

    def __init__(self, *, base_url: str = HERMES_BASE_URL) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(DEFAULT_HTTP_TIMEOUT)
        self.headers = {"Accept": "application/json"}

    async def _get(self, path: str, params: list[tuple[str, str]]) -> Any:
        url = f"{self.base_url}{path}"
        start = time.time()
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.get(url, params=params, headers=self.headers)
        elapsed = time.time() - start
        logger.debug(f"GET {url} -> {response.status_code} ({elapsed:.2f}s)")
        response.raise_for_status()
        return response.json()

    async def get_price(self, feed_id: str = PYTH_ETH_USD_FEED_ID) -> Decimal:
        """Latest price for ``feed_id`` as ``price * 10**expo``."""
        data = await self._get(
            "/api/latest_price_feeds", [("ids[]", feed_id)]
        )
        if not isinstance(data, list) or not data:
            raise ValueError(f"No Pyth price returned for feed {feed_id}")
        price = data[0].get("price") or {}
        try:
            return Decimal(int(price["price"])).scaleb(int(price["expo"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Malformed Pyth price payload: {data[0]!r}") from exc

    async def get_price_x18(self, feed_id: str = PYTH_ETH_USD_FEED_ID) -> int:
        price = await self.get_price(feed_id)
        return int(price.scaleb(PRICE_DECIMALS))


PYTH_CLIENT = PythClient()
