"""Polling client that keeps a chat view in sync with a room's message log.

Only one poll task is alive per loop. Selecting another room cancels the
previous task before the new one starts, and responses for a room that is no
longer selected are dropped.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 3.0


def _message_sort_key(m: dict):
    return (m.get("created_at") or "", m.get("id") or 0)


class Subscription:
    """Handle for the poll task bound to one selected room."""

    def __init__(self, room_id: int, task: asyncio.Task) -> None:
        self.room_id = room_id
        self._task = task
        self._cancelled = False

    @property
    def active(self) -> bool:
        return not self._cancelled and not self._task.done()

    def cancel(self) -> None:
        self._cancelled = True
        self._task.cancel()

    async def wait_closed(self) -> None:
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class ChatSyncLoop:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        on_messages: Callable[[list[dict]], None] | None = None,
        interval: float = DEFAULT_POLL_INTERVAL,
        base_path: str = "/admin/chat",
    ) -> None:
        self._client = client
        self._on_messages = on_messages
        self.interval = interval
        self._base = base_path.rstrip("/")
        self._subscription: Subscription | None = None
        self.room_id: int | None = None
        self.messages: list[dict] = []
        self._fetch_seq = 0
        self._applied_seq = 0

    @property
    def state(self) -> str:
        return "polling" if self._subscription and self._subscription.active else "idle"

    async def load_rooms(self) -> list[dict]:
        r = await self._client.get(f"{self._base}/rooms")
        r.raise_for_status()
        return r.json().get("rooms") or []

    def select_room(self, room_id: int) -> Subscription:
        """Start polling ``room_id``; must be called from a running event loop."""
        self.deselect()
        self.room_id = room_id
        task = asyncio.get_running_loop().create_task(self._poll(room_id))
        self._subscription = Subscription(room_id, task)
        return self._subscription

    def deselect(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        self.room_id = None
        self.messages = []

    async def close(self) -> None:
        sub = self._subscription
        self.deselect()
        if sub is not None:
            await sub.wait_closed()

    async def _poll(self, room_id: int) -> None:
        while True:
            try:
                await self.refresh(room_id)
            except Exception:
                logger.exception("chat_sync poll error room_id=%s", room_id)
            await asyncio.sleep(self.interval)

    async def refresh(self, room_id: int | None = None) -> list[dict] | None:
        """Fetch the full history once and replace the view list."""
        rid = self.room_id if room_id is None else room_id
        if rid is None:
            return None
        self._fetch_seq += 1
        seq = self._fetch_seq
        try:
            r = await self._client.get(f"{self._base}/messages/{rid}")
        except httpx.HTTPError as e:
            logger.warning("chat_sync fetch failed room_id=%s error=%s", rid, str(e)[:120])
            return None
        if r.status_code != 200:
            logger.warning("chat_sync fetch failed room_id=%s status=%s", rid, r.status_code)
            return None
        try:
            body = r.json()
        except ValueError:
            logger.warning("chat_sync fetch returned non-JSON body room_id=%s", rid)
            return None
        raw = body.get("messages", []) if isinstance(body, dict) else None
        if not isinstance(raw, list) or not all(isinstance(m, dict) for m in raw):
            logger.warning("chat_sync fetch returned unexpected payload room_id=%s", rid)
            return None
        # a slower, older fetch must not overwrite a newer snapshot
        if rid != self.room_id or seq < self._applied_seq:
            return None
        self._applied_seq = seq
        messages = sorted(raw, key=_message_sort_key)
        self.messages = messages
        if self._on_messages:
            self._on_messages(messages)
        return messages

    async def send_message(
        self,
        text: str,
        *,
        sender_username: str = "Admin",
        sender_email: str | None = None,
        is_staff: bool = True,
    ) -> dict | None:
        """Post to the selected room, then refetch right away."""
        if not text or not text.strip() or self.room_id is None:
            return None
        rid = self.room_id
        payload = {
            "message": text,
            "sender_username": sender_username,
            "sender_email": sender_email,
            "is_staff": is_staff,
        }
        try:
            r = await self._client.post(f"{self._base}/messages/{rid}", json=payload)
        except httpx.HTTPError as e:
            logger.warning("chat_sync send failed room_id=%s error=%s", rid, str(e)[:120])
            return None
        if r.status_code != 200:
            logger.warning("chat_sync send failed room_id=%s status=%s", rid, r.status_code)
            return None
        await self.refresh(rid)
        try:
            body = r.json()
        except ValueError:
            return None
        return body.get("message") if isinstance(body, dict) else None
