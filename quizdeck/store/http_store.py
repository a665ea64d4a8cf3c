"""Real-time store client that talks to the host's API server over HTTP.

Subscriptions poll the server and only report values that changed since the
last poll.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from quizdeck.constants.network_constants import HTTP_TIMEOUT_SECONDS
from quizdeck.constants.sync_constants import POLL_INTERVAL_SECONDS
from quizdeck.core.errors import ConnectivityError
from quizdeck.store.paths import split_path
from quizdeck.store.realtime import ChangeHandler, ErrorHandler, RealtimeStore, Unsubscribe

logger = logging.getLogger(__name__)

_UNSET = object()


class HttpRealtimeStore(RealtimeStore):
    """``RealtimeStore`` backed by the ``/store`` endpoints of the API server."""

    def __init__(
        self,
        base_url: str = "",
        *,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._owns_client = client is None
        self._poll_interval = poll_interval
        self._poll_tasks: set[asyncio.Task] = set()

    async def get(self, path: str) -> Any:
        response = await self._request("GET", path)
        try:
            body = response.json()
        except ValueError as exc:
            raise ConnectivityError(f"GET {path} returned a non-JSON body") from exc
        if not isinstance(body, dict):
            raise ConnectivityError(f"GET {path} returned an unexpected body")
        return body.get("value")

    async def set(self, path: str, value: Any) -> None:
        await self._request("PUT", path, {"value": value})

    async def update(self, path: str, fields: dict[str, Any]) -> None:
        await self._request("PATCH", path, {"fields": fields})

    def subscribe(
        self,
        path: str,
        on_change: ChangeHandler,
        on_error: ErrorHandler | None = None,
    ) -> Unsubscribe:
        task = asyncio.get_running_loop().create_task(self._poll(path, on_change, on_error))
        self._poll_tasks.add(task)
        task.add_done_callback(self._poll_tasks.discard)
        return task.cancel

    async def aclose(self) -> None:
        for task in list(self._poll_tasks):
            task.cancel()
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> httpx.Response:
        url = "/store/" + "/".join(split_path(path))
        try:
            response = await self._client.request(method, url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ConnectivityError(f"{method} {url} failed: {exc}") from exc
        return response

    async def _poll(self, path: str, on_change: ChangeHandler, on_error: ErrorHandler | None) -> None:
        last_value: Any = _UNSET
        failing = False
        while True:
            try:
                value = await self.get(path)
            except ConnectivityError as exc:
                if not failing:
                    logger.warning("Polling %s failed: %s", path, exc)
                    if on_error is not None:
                        on_error(exc)
                failing = True
            else:
                # A recovered poll re-delivers so the subscriber can clear its error state.
                if failing or value != last_value:
                    last_value = value
                    on_change(value)
                failing = False
            await asyncio.sleep(self._poll_interval)
