"""
Bus Client - Calls into the primary instance from a secondary invocation.

Every call is bounded by a finite timeout and may also be abandoned early
through a cancellation event. Transport failures, timeouts, cancellation
and error responses all surface as ``RemoteCallError``.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import aiohttp

from devicelink.core.commands.envelope import ActionEnvelope, encode
from devicelink.core.config_manager import DEFAULT_BUS_HOST, DEFAULT_BUS_PORT, DEFAULT_REMOTE_TIMEOUT
from devicelink.core.errors import RemoteCallError
from devicelink.core.logging_utils import get_module_logger

logger = get_module_logger("BusClient")

API_PREFIX = "/api/v1"


class BusClient:

    def __init__(
        self,
        host: str = DEFAULT_BUS_HOST,
        port: int = DEFAULT_BUS_PORT,
        timeout: float = DEFAULT_REMOTE_TIMEOUT,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        if timeout <= 0:
            raise ValueError("remote timeout must be positive")
        self.host = host
        self.port = port
        self.timeout = timeout
        self.cancel_event = cancel_event

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}{API_PREFIX}"

    # =========================================================================
    # Calls
    # =========================================================================

    async def ping(self) -> Dict[str, Any]:
        return await self._call("GET", "/ping")

    async def get_managed_objects(self) -> Dict[str, Dict[str, Any]]:
        return await self._call("GET", "/objects")

    async def activate(self, envelope: ActionEnvelope) -> Dict[str, Any]:
        """Deliver one envelope to the primary's action router."""
        logger.debug("Forwarding %s", envelope.describe())
        return await self._call(
            "POST",
            "/actions/device",
            data=encode(envelope),
            headers={"Content-Type": "application/json"},
        )

    async def call_app_action(self, name: str, payload: Any = None) -> Dict[str, Any]:
        return await self._call("POST", f"/actions/{name}", json=payload if payload is not None else {})

    # =========================================================================
    # Transport
    # =========================================================================

    async def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        request = asyncio.ensure_future(self._request(method, path, **kwargs))
        if self.cancel_event is None:
            return await request

        cancelled = asyncio.ensure_future(self.cancel_event.wait())
        try:
            done, _ = await asyncio.wait({request, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()

        if request not in done:
            request.cancel()
            try:
                await request
            except asyncio.CancelledError:
                pass
            raise RemoteCallError(f"{method} {path} cancelled")

        return request.result()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout)) as session:
                async with session.request(method, url, **kwargs) as resp:
                    data = await resp.json(content_type=None)
                    if resp.status >= 400:
                        raise RemoteCallError(_describe_error(method, path, resp.status, data))
                    return data
        except asyncio.TimeoutError as e:
            raise RemoteCallError(f"{method} {path} timed out after {self.timeout:g}s") from e
        except aiohttp.ClientError as e:
            raise RemoteCallError(f"{method} {path} failed: {e}") from e
        except ValueError as e:
            raise RemoteCallError(f"{method} {path} returned an invalid body: {e}") from e


def _describe_error(method: str, path: str, status: int, data: Any) -> str:
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return f"{method} {path} failed ({status} {error.get('code')}): {error.get('message')}"
    return f"{method} {path} failed with status {status}"
