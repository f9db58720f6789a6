"""
Alert Notifiers
Fan-out of alert events to notification channels.

Flow:
1. Engine hands a triggered event to the dispatcher
2. Dispatcher picks enabled notifiers that support the event type/severity
3. Each notifier sends; failures are logged and counted, never raised
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests

from .models import AlertEvent, AlertSeverity, AlertType

logger = logging.getLogger(__name__)


class Notifier:
    """
    Base class for a notification channel.

    Subclasses implement `notify` and raise on delivery failure.
    Empty capability sets mean "everything".
    """

    def __init__(
        self,
        name: str,
        alert_types: Optional[Iterable[AlertType]] = None,
        severities: Optional[Iterable[AlertSeverity]] = None,
        enabled: bool = True
    ):
        self.name = name
        self.alert_types = set(alert_types or [])
        self.severities = set(severities or [])
        self.enabled = enabled

    def supports(self, alert_type: AlertType, severity: AlertSeverity) -> bool:
        if self.alert_types and alert_type not in self.alert_types:
            return False
        if self.severities and severity not in self.severities:
            return False
        return True

    def notify(self, event: AlertEvent) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, enabled={self.enabled})"


class LogNotifier(Notifier):
    """Writes alerts to the log; level follows severity"""

    LEVELS = {
        AlertSeverity.LOW: logging.INFO,
        AlertSeverity.MEDIUM: logging.WARNING,
        AlertSeverity.HIGH: logging.ERROR,
        AlertSeverity.CRITICAL: logging.CRITICAL,
    }

    def __init__(self, name: str = "log", **kwargs):
        super().__init__(name, **kwargs)
        self._logger = logging.getLogger("alerts.notifications")

    def notify(self, event: AlertEvent) -> None:
        self._logger.log(
            self.LEVELS.get(event.severity, logging.WARNING),
            "[%s] %s (%s): %s value=%s threshold=%s",
            event.severity.value,
            event.rule_name,
            event.alert_type.value,
            event.message,
            event.metric_value,
            event.threshold,
        )


class WebhookNotifier(Notifier):
    """POSTs the event as JSON"""

    def __init__(
        self,
        url: str,
        name: str = "webhook",
        timeout: float = 5.0,
        headers: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
        **kwargs
    ):
        super().__init__(name, **kwargs)
        self.url = url
        self.timeout = timeout
        self.headers = headers or {}
        self._session = session or requests.Session()

    def notify(self, event: AlertEvent) -> None:
        response = self._session.post(
            self.url,
            json=event.to_dict(),
            headers=self.headers,
            timeout=self.timeout,
        )
        response.raise_for_status()


class CallbackNotifier(Notifier):
    """Calls an in-process function"""

    def __init__(self, callback: Callable[[AlertEvent], Any], name: str = "callback", **kwargs):
        super().__init__(name, **kwargs)
        self._callback = callback

    def notify(self, event: AlertEvent) -> None:
        self._callback(event)


# =============================================================================
# Dispatcher
# =============================================================================

class NotificationDispatcher:
    """
    Delivers events to every registered notifier.

    With `workers` > 0, `submit` hands delivery to a thread pool so the
    triggering thread never waits on a slow channel.
    """

    def __init__(self, notifiers: Optional[List[Notifier]] = None, workers: int = 0):
        self._notifiers: Dict[str, Notifier] = {}
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="notify") if workers > 0 else None
        self._stats = {
            "dispatched": 0,
            "delivered": 0,
            "failures": 0,
            "skipped": 0,
        }
        for notifier in notifiers or []:
            self.add_notifier(notifier)

    def add_notifier(self, notifier: Notifier) -> None:
        with self._lock:
            self._notifiers[notifier.name] = notifier
        logger.info("Notifier registered: %s", notifier)

    def remove_notifier(self, name: str) -> bool:
        with self._lock:
            return self._notifiers.pop(name, None) is not None

    def get_notifiers(self) -> List[Notifier]:
        with self._lock:
            return list(self._notifiers.values())

    def _bump(self, key: str, n: int = 1) -> None:
        with self._lock:
            self._stats[key] += n

    def dispatch(self, event: AlertEvent) -> bool:
        """
        Deliver synchronously.

        Returns:
            True if at least one notifier succeeded
        """
        self._bump("dispatched")
        delivered = False

        for notifier in self.get_notifiers():
            if not notifier.enabled or not notifier.supports(event.alert_type, event.severity):
                self._bump("skipped")
                continue
            try:
                notifier.notify(event)
                delivered = True
                self._bump("delivered")
            except Exception as e:
                self._bump("failures")
                logger.warning("Notifier %s failed for alert %s: %s", notifier.name, event.id, e)

        if not delivered:
            logger.debug("Alert %s was not delivered to any notifier", event.id)
        return delivered

    def submit(self, event: AlertEvent) -> None:
        """Deliver in the worker pool, or inline when there is none"""
        if self._executor is None:
            self.dispatch(event)
            return
        future = self._executor.submit(self.dispatch, event)
        future.add_done_callback(self._on_done)

    def _on_done(self, future) -> None:
        exc = future.exception()
        if exc is not None:
            self._bump("failures")
            logger.error("Notification dispatch crashed: %s", exc)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                **self._stats,
                "notifiers": [n.name for n in self._notifiers.values()],
                "async": self._executor is not None,
            }
