"""
SLA External Service Integrations
==================================

External services used by the SLA engine:
- YAML policy file with watchdog hot-reload
- Slack webhook mirroring of breach-severity notifications
- APScheduler for the periodic warning sweep
"""

import asyncio
import threading
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from helpdesk.config import NotificationType, settings
from helpdesk.core import ConfigurationException
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.sla.application.interfaces import INotificationService, ISLAPolicyProvider
from helpdesk.sla.domain import SLAPolicyConfig

logger = get_logger(__name__)


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for SLA policy file changes."""

    def __init__(self, config_manager: "SLAConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.config_path.resolve():
            logger.info("SLA policy file changed", extra={"path": event.src_path})
            self.config_manager.reload()


class SLAConfigManager(ISLAPolicyProvider):
    """
    Thread-safe SLA policy manager with hot-reload support.

    Uses watchdog to monitor the YAML file and reload the default target
    table without restarting the service. A broken edit keeps the last good
    configuration.
    """

    def __init__(self):
        self._config: Optional[SLAPolicyConfig] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> SLAPolicyConfig:
        """Initial configuration load."""
        self._path = Path(path)
        self._config = self._load_from_file(self._path)
        return self._config

    def _load_from_file(self, path: Path) -> SLAPolicyConfig:
        if not path.exists():
            logger.warning(
                "SLA policy file not found, using default targets",
                extra={"path": str(path)}
            )
            return SLAPolicyConfig()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        try:
            return SLAPolicyConfig(**data)
        except ValueError as e:
            raise ConfigurationException(
                f"Invalid SLA policy file {path}", {"error": str(e)}
            ) from e

    def reload(self) -> bool:
        """Reload configuration from file."""
        if self._path is None:
            return False

        try:
            new_config = self._load_from_file(self._path)
        except (ConfigurationException, yaml.YAMLError, OSError) as e:
            logger.error("Failed to reload SLA policy", extra={"error": str(e)})
            return False

        with self._lock:
            self._config = new_config
        logger.info("SLA policy reloaded")
        return True

    def start_watching(self) -> None:
        """
        Start watching the policy file for changes.

        Skipped when the file doesn't exist or the platform can't watch files.
        """
        if self._path is None:
            raise RuntimeError("Config not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(
                "SLA policy file doesn't exist, skipping file watch",
                extra={"path": str(self._path)}
            )
            return

        try:
            self._observer = Observer()
            self._observer.schedule(
                ConfigFileHandler(self, self._path),
                str(self._path.parent),
                recursive=False
            )
            self._observer.start()
            logger.info("Started watching SLA policy file", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning("File watching not available, using static policy", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    def get_config(self) -> SLAPolicyConfig:
        with self._lock:
            if self._config is None:
                raise RuntimeError("SLA policy not loaded")
            return self._config


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if self._clock() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = self._clock()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class SlackClient:
    """
    Slack webhook client with circuit breaker and retry logic.

    Handles sending SLA notifications to a Slack channel with:
    - Circuit breaker to prevent cascade failures
    - Exponential backoff retry
    - Timeout handling
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        channel: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_delay: Callable[[int], Awaitable[None]] = None
    ):
        self._webhook_url = webhook_url if webhook_url is not None else settings.slack_webhook_url
        self._channel = channel or settings.slack_channel
        self._timeout = timeout_seconds or settings.slack_timeout_seconds
        self._http_client = http_client
        self._retry_delay = retry_delay or (lambda attempt: asyncio.sleep(2 ** attempt))
        self._circuit_breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60)

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    def build_message(
        self,
        kind: NotificationType,
        title: str,
        message: str,
        link: Optional[str]
    ) -> Dict[str, Any]:
        """Build a Slack Block Kit message."""
        text = f"<{link}|{title}>" if link else title
        return {
            "channel": self._channel,
            "text": title,
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": title[:150], "emoji": True}
                },
                {
                    "type": "section",
                    "text": {"type": "mrkdwn", "text": f"{text}\n{message}"}
                },
                {
                    "type": "context",
                    "elements": [{"type": "mrkdwn", "text": f"Kind: {kind.value}"}]
                },
            ],
        }

    async def send(self, payload: Dict[str, Any], max_retries: int = 3) -> bool:
        """
        Post a payload to the Slack webhook.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.enabled:
            logger.debug("Slack webhook URL not configured, skipping")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning("Circuit breaker open, skipping Slack notification")
            return False

        for attempt in range(max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=payload)
                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    return True
                logger.warning(
                    "Slack webhook returned non-200",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )
            except httpx.HTTPError as e:
                logger.error(
                    "Slack notification failed",
                    extra={"error": str(e), "attempt": attempt + 1}
                )

            if attempt < max_retries - 1:
                await self._retry_delay(attempt)

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


class SlackMirroredNotificationService(INotificationService):
    """
    Notification service that also posts breach-severity notifications to Slack.

    The wrapped service is the source of truth; Slack delivery is
    best-effort and never fails the notification.
    """

    def __init__(self, inner: INotificationService, slack_client: SlackClient):
        self._inner = inner
        self._slack = slack_client

    async def notify_user(
        self,
        user_id: str,
        kind: NotificationType,
        title: str,
        message: str,
        link: Optional[str] = None,
        data: Optional[dict[str, Any]] = None
    ) -> None:
        await self._inner.notify_user(user_id, kind, title, message, link, data)

        if kind == NotificationType.TICKET_SLA_BREACH and self._slack.enabled:
            await self._slack.send(self._slack.build_message(kind, title, message, link))


class SLAScheduler:
    """
    Wrapper for APScheduler running the periodic SLA sweep.

    Manages the lifecycle of the scheduler and its single job.
    """

    def __init__(self, interval_seconds: int = 300):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func: Callable[[], Awaitable[Any]]) -> None:
        """Start the scheduler with the given job function."""
        if self._running:
            logger.warning("SLA scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id="sla_warning_scan",
            name="SLA Warning Scan",
            misfire_grace_time=60,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info("SLA scheduler started", extra={"interval_seconds": self.interval_seconds})

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=True)

        self._running = False
        logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
