"""
HTTP gateway: BoardGateway over the JSON API in server.py.

requests is blocking, so every call runs in a worker thread. Transport
errors and non-2xx responses both surface as GatewayError.
"""
import asyncio
import logging
from typing import Any, List, Mapping, Optional

import requests

from .errors import GatewayError
from .gateway import BoardGateway, TaskRecord
from .positions import RepositionEntry
from .schema import Board, Task

logger = logging.getLogger(__name__)


class HttpGateway(BoardGateway):
    """Talks to a boardsync server."""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if api_key:
            self.session.headers["X-API-Key"] = api_key

    def _request(self, method: str, path: str, payload: Optional[Any] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            r = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise GatewayError(f"{method} {path} failed: {e}") from e
        if not r.ok:
            try:
                detail = r.json().get("error", r.text)
            except ValueError:
                detail = r.text
            raise GatewayError(f"{method} {path} -> {r.status_code}: {detail}")
        if r.status_code == 204 or not r.content:
            return None
        return r.json()

    async def _call(self, method: str, path: str, payload: Optional[Any] = None) -> Any:
        return await asyncio.to_thread(self._request, method, path, payload)

    async def fetch_or_seed(self, board_id: str) -> Board:
        data = await self._call("GET", f"/api/boards/{board_id}")
        return Board.from_dict(data)

    async def create_task(self, board_id: str, record: TaskRecord) -> Task:
        data = await self._call("POST", f"/api/boards/{board_id}/tasks", record.to_dict())
        return Task.from_dict(data)

    async def update_task(self, task_id: str, patch: Mapping[str, Any]) -> Task:
        data = await self._call("PATCH", f"/api/tasks/{task_id}", dict(patch))
        return Task.from_dict(data)

    async def delete_task(self, task_id: str) -> None:
        await self._call("DELETE", f"/api/tasks/{task_id}")

    async def batch_reposition(self, entries: List[RepositionEntry], board_id: str) -> None:
        logger.debug(f"Repositioning {len(entries)} tasks on {board_id}")
        payload = {"entries": [e.to_dict() for e in entries]}
        await self._call("POST", f"/api/boards/{board_id}/reposition", payload)

    async def reset_board(self, board_id: str, demo: bool = True) -> Board:
        data = await self._call("POST", f"/api/boards/{board_id}/reset", {"demo": demo})
        return Board.from_dict(data)
