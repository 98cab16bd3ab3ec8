"""
Connectivity
============
Answers "is the device online right now?" for the sync coordinator.

Two sources, in priority order:
1. An explicit state pushed by the host platform (set_online). Mobile
   hosts forward their network-change events here.
2. A probe: GET against a configured URL with a short timeout. Any
   answer at all, even a 5xx, means the network is up.

With neither available the device is assumed online; the remote
transport's own failure handling covers the rest. A false "offline" only
delays sync, it never loses data.

Listeners registered with on_reconnect() are called on every
offline -> online transition.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

import httpx

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)

ReconnectListener = Callable[[], None]


class Connectivity:
    def __init__(
        self,
        probe_url: Optional[str] = None,
        probe_timeout: float = 2.0,
        online: Optional[bool] = None,
    ) -> None:
        self._probe_url = probe_url
        self._probe_timeout = probe_timeout
        self._online = online
        self._listeners: list[ReconnectListener] = []

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> Connectivity:
        settings = settings or get_settings()
        return cls(
            probe_url=settings.connectivity_probe_url,
            probe_timeout=settings.connectivity_probe_timeout_seconds,
        )

    @property
    def known_state(self) -> Optional[bool]:
        """Last pushed state, or None if the host never reported one."""
        return self._online

    def on_reconnect(self, listener: ReconnectListener) -> None:
        self._listeners.append(listener)

    def set_online(self, online: bool) -> None:
        was_online = self._online
        self._online = online
        if online and was_online is not True:
            logger.info("Connectivity restored")
            for listener in list(self._listeners):
                try:
                    listener()
                except Exception:
                    logger.exception("Reconnect listener failed")
        elif not online and was_online is not False:
            logger.info("Connectivity lost")

    async def is_online(self) -> bool:
        if self._online is not None:
            return self._online
        if not self._probe_url:
            return True
        return await self._probe()

    async def _probe(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self._probe_timeout) as client:
                await client.get(self._probe_url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.debug("Connectivity probe to %s failed: %s", self._probe_url, exc)
            return False
        return True
