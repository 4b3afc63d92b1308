"""Network quality monitor.

Estimates connection quality as offline / slow / fast and adapts operation
timing to it:

- ``online`` starts from the platform connectivity signal (any non-loopback
  interface reported up by psutil) and follows ``set_online`` events.
- While online, a lightweight HTTP probe runs every 30s; a round trip longer
  than 4s, or a failed probe, marks the connection slow.
- ``adjust`` is a pure function of the current estimate and a config.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

import httpx
import psutil

from loading_states.clock import DEFAULT_CLOCK, OperationClock
from loading_states.config import NETWORK, OperationConfig
from loading_states.exceptions import NetworkError
from loading_states.logging_config import get_logger
from loading_states.models import NetworkStatus

logger = get_logger(__name__)

Probe = Callable[[], Awaitable[Any]]
StatusListener = Callable[[NetworkStatus], None]


class ConnectionSpeed(Enum):
    """Coarse connection quality."""

    FAST = "fast"
    SLOW = "slow"
    OFFLINE = "offline"


def _is_loopback(interface: str) -> bool:
    name = interface.lower()
    return name == "lo" or name.startswith(("lo0", "loopback"))


def detect_online() -> bool:
    """Return True if any non-loopback network interface is up.

    If interface state cannot be read the connection is assumed online, so a
    platform quirk never disables timeouts.
    """
    try:
        stats = psutil.net_if_stats()
    except OSError as exc:
        logger.warning("Could not read network interfaces, assuming online: %s", exc)
        return True
    return any(stat.isup for name, stat in stats.items() if not _is_loopback(name))


class HttpProbe:
    """Latency probe: a cache-busted GET against a tiny endpoint."""

    def __init__(self, url: str = NETWORK.PROBE_URL, timeout: float = NETWORK.SLOW_THRESHOLD_SEC * 2) -> None:
        """Initialize the probe.

        Args:
            url: Endpoint to request; should return a small body
            timeout: Request timeout in seconds
        """
        self.url = url
        self.timeout = timeout

    async def __call__(self) -> int:
        """Perform one request.

        Returns:
            HTTP status code

        Raises:
            NetworkError: On connection failure, timeout or a 5xx response
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                response = await client.get(
                    self.url,
                    params={"_": uuid.uuid4().hex},
                    headers={"Cache-Control": "no-cache"},
                )
        except httpx.HTTPError as exc:
            raise NetworkError(f"Probe request failed: {exc}", url=self.url) from exc

        if response.status_code >= 500:
            raise NetworkError("Probe request failed", url=self.url, status_code=response.status_code)
        return response.status_code


class NetworkQualityMonitor:
    """Tracks connection quality and derives timing adjustments from it.

    Attributes:
        slow_threshold: Probe round trip (seconds) above which the connection is slow
        probe_interval: Seconds between probes while online
        connectivity_poll: Seconds between psutil connectivity checks when watching
    """

    def __init__(
        self,
        probe: Optional[Probe] = None,
        online: Optional[bool] = None,
        slow_threshold: float = NETWORK.SLOW_THRESHOLD_SEC,
        probe_interval: float = NETWORK.PROBE_INTERVAL_SEC,
        connectivity_poll: float = NETWORK.CONNECTIVITY_POLL_SEC,
        clock: OperationClock = DEFAULT_CLOCK,
        connectivity_check: Callable[[], bool] = detect_online,
    ) -> None:
        self.slow_threshold = slow_threshold
        self.probe_interval = probe_interval
        self.connectivity_poll = connectivity_poll
        self._probe = probe or HttpProbe()
        self._clock = clock
        self._connectivity_check = connectivity_check

        self._online = connectivity_check() if online is None else bool(online)
        self._speed = ConnectionSpeed.FAST if self._online else ConnectionSpeed.OFFLINE
        self._last_latency: Optional[float] = None
        self._checked_at: Optional[str] = None

        self._started = False
        self._probe_task: Optional[asyncio.Task] = None
        self._watch_task: Optional[asyncio.Task] = None
        self._listeners: List[StatusListener] = []

    # ==================== State ====================

    @property
    def online(self) -> bool:
        return self._online

    @property
    def speed(self) -> ConnectionSpeed:
        return self._speed

    @property
    def last_latency(self) -> Optional[float]:
        """Round trip of the last successful probe, in seconds."""
        return self._last_latency

    @property
    def is_probing(self) -> bool:
        return self._probe_task is not None and not self._probe_task.done()

    def status(self) -> NetworkStatus:
        return {
            "online": self._online,
            "speed": self._speed.value,
            "lastLatency": self._last_latency,
            "checkedAt": self._checked_at,
            "simplifyAnimations": self.should_simplify_animations(),
            "simpleSkeletons": self.should_use_simple_skeletons(),
        }

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Call ``listener(status)`` whenever online state or speed changes."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ==================== Policy ====================

    def adjust(self, config: OperationConfig) -> OperationConfig:
        """Adapt ``config`` to the current connection quality.

        - Offline: timeout disabled, shown immediately
        - Slow: shown sooner, timeout doubled, longer minimum duration
        - Fast: unchanged
        """
        if not self._online:
            return replace(config, timeout=0, show_delay=0)

        if self._speed is ConnectionSpeed.SLOW:
            return replace(
                config,
                show_delay=max(config.show_delay, NETWORK.SLOW_SHOW_DELAY_SEC),
                timeout=config.timeout * NETWORK.SLOW_TIMEOUT_FACTOR,
                min_duration=max(config.min_duration, NETWORK.SLOW_MIN_DURATION_SEC),
            )

        return config

    def should_simplify_animations(self) -> bool:
        return self._speed is ConnectionSpeed.SLOW

    def should_use_simple_skeletons(self) -> bool:
        return self._speed is ConnectionSpeed.SLOW

    # ==================== Measurement ====================

    async def measure(self) -> ConnectionSpeed:
        """Run one probe and update the speed estimate.

        Returns:
            The speed after the measurement (OFFLINE without probing when offline)
        """
        if not self._online:
            return self._speed

        started = self._clock.now()
        try:
            await self._probe()
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: generic-exception
            logger.info("Network probe failed, treating connection as slow: %s", exc)
            speed = ConnectionSpeed.SLOW
        else:
            self._last_latency = self._clock.now() - started
            speed = ConnectionSpeed.SLOW if self._last_latency > self.slow_threshold else ConnectionSpeed.FAST

        self._checked_at = datetime.now(timezone.utc).isoformat()
        # Connectivity may have dropped while the probe was in flight
        if self._online:
            self._set_speed(speed)
        return self._speed

    def set_online(self, online: bool) -> None:
        """Handle an online/offline event.

        Going offline stops probing; coming back online resumes it (when the
        monitor is started) and optimistically assumes a fast connection until
        the next probe says otherwise.
        """
        online = bool(online)
        if online == self._online:
            return

        self._online = online
        logger.info("Network is now %s", "online" if online else "offline")
        if online:
            self._set_speed(ConnectionSpeed.FAST)
            if self._started:
                self._start_probing()
        else:
            self._stop_probing()
            self._set_speed(ConnectionSpeed.OFFLINE)

    def refresh_connectivity(self) -> bool:
        """Re-read the platform connectivity signal and apply it."""
        self.set_online(self._connectivity_check())
        return self._online

    # ==================== Lifecycle ====================

    async def start(self, watch_connectivity: bool = False) -> None:
        """Begin periodic probing (while online).

        Args:
            watch_connectivity: Also poll psutil for online/offline changes
        """
        if self._started:
            return
        self._started = True
        if self._online:
            self._start_probing()
        if watch_connectivity:
            self._watch_task = self._clock.run_every(
                self.connectivity_poll, self._poll_connectivity, name="network-connectivity"
            )

    async def stop(self) -> None:
        """Stop probing and connectivity polling, waiting for the tasks to end."""
        self._started = False
        tasks = [task for task in (self._probe_task, self._watch_task) if task is not None]
        self._stop_probing()
        if self._watch_task is not None:
            self._watch_task.cancel()
            self._watch_task = None
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def __aenter__(self) -> "NetworkQualityMonitor":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    # ==================== Internals ====================

    async def _poll_connectivity(self) -> None:
        self.refresh_connectivity()

    def _start_probing(self) -> None:
        if self.is_probing:
            return
        self._probe_task = self._clock.run_every(self.probe_interval, self.measure, name="network-probe")

    def _stop_probing(self) -> None:
        if self._probe_task is not None:
            self._probe_task.cancel()
            self._probe_task = None

    def _set_speed(self, speed: ConnectionSpeed) -> None:
        if speed is self._speed:
            return
        logger.info("Connection speed changed: %s -> %s", self._speed.value, speed.value)
        self._speed = speed
        status = self.status()
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:  # noqa: generic-exception
                logger.exception("Network status listener failed")
