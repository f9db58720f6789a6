"""
Redis Persistence
Best-effort mirror of samples, rules, events and suppressions.

Responsibilities:
- Write samples and alert state to Redis with TTLs
- Reload rules and suppressions on startup

NOT responsible for:
- Serving queries (the in-memory store does that)
- Retrying (a failed write is logged, counted and dropped)

Keys:
    metrics:aggregation:data:<name>:<yyyy-mm-dd HH:MM:SS>   hash, TTL = retention
    monitoring:alert:rules                                   hash id → JSON
    monitoring:alert:events:<yyyy-mm-dd>                     hash id → JSON, TTL = retention
    monitoring:alert:suppressions                            hash rule id → JSON
    monitoring:alert:statistics                              JSON string
"""

import json
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

import redis
from redis.exceptions import RedisError

from alerts.models import AlertEvent, AlertRule, AlertStatistics, AlertSuppression
from core.errors import TransientIOError
from core.models import MetricSample

logger = logging.getLogger(__name__)

METRIC_DATA_PREFIX = "metrics:aggregation:data:"
ALERT_RULES_KEY = "monitoring:alert:rules"
ALERT_EVENTS_PREFIX = "monitoring:alert:events:"
ALERT_SUPPRESSIONS_KEY = "monitoring:alert:suppressions"
ALERT_STATISTICS_KEY = "monitoring:alert:statistics"

KEY_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
KEY_DATE_FORMAT = "%Y-%m-%d"


class RedisPersistence:
    """
    Redis side channel.

    `save_*` methods run synchronously and raise TransientIOError.
    `submit` runs them on the worker pool (or inline with workers=0)
    and turns failures into a log line plus a counter.
    """

    def __init__(self, client, retention: timedelta = timedelta(days=7), workers: int = 2):
        self._client = client
        self._ttl = max(1, int(retention.total_seconds()))
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="persist") if workers > 0 else None
        # Alert state writes: one worker, submission order
        self._ordered_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="persist-state") if workers > 0 else None
        self._lock = threading.Lock()
        self._stats = {
            "writes": 0,
            "failures": 0,
        }

    @classmethod
    def from_url(cls, url: str, retention: timedelta = timedelta(days=7), workers: int = 2) -> "RedisPersistence":
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        return cls(client, retention=retention, workers=workers)

    # =========================================================================
    # Async Submission
    # =========================================================================

    def submit(self, fn: Callable[..., Any], *args, ordered: bool = False) -> Optional[Future]:
        """
        Run a write off the hot path; never raises.

        ordered=True writes run one at a time in submission order.
        """
        executor = self._ordered_executor if ordered else self._executor
        if executor is None:
            self._safe(fn, *args)
            return None
        return executor.submit(self._safe, fn, *args)

    def _safe(self, fn: Callable[..., Any], *args) -> Any:
        try:
            result = fn(*args)
            with self._lock:
                self._stats["writes"] += 1
            return result
        except TransientIOError as e:
            self._failed()
            logger.warning("Persistence write %s failed: %s", getattr(fn, "__name__", fn), e)
            return None
        except Exception as e:
            # Unserializable payloads and other bugs: still never reach the caller
            self._failed()
            logger.error("Persistence write %s crashed: %s", getattr(fn, "__name__", fn), e, exc_info=True)
            return None

    def _failed(self) -> None:
        with self._lock:
            self._stats["failures"] += 1

    def _call(self, operation: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        try:
            return fn(*args, **kwargs)
        except RedisError as e:
            raise TransientIOError(f"Redis {operation} failed: {e}", detail={"operation": operation})

    # =========================================================================
    # Writes
    # =========================================================================

    def save_sample(self, sample: MetricSample) -> None:
        key = f"{METRIC_DATA_PREFIX}{sample.name}:{sample.timestamp.strftime(KEY_TIME_FORMAT)}"
        mapping = {
            "name": sample.name,
            "value": str(sample.value),
            "timestamp": sample.timestamp.isoformat(),
            "tags": json.dumps(sample.tags),
        }
        self._call("hset", self._client.hset, key, mapping=mapping)
        self._call("expire", self._client.expire, key, self._ttl)

    def save_rule(self, rule: AlertRule) -> None:
        self._call("hset", self._client.hset, ALERT_RULES_KEY, rule.id, json.dumps(rule.to_dict()))

    def delete_rule(self, rule_id: str) -> None:
        self._call("hdel", self._client.hdel, ALERT_RULES_KEY, rule_id)

    def save_event(self, event: AlertEvent) -> None:
        key = f"{ALERT_EVENTS_PREFIX}{event.triggered_at.strftime(KEY_DATE_FORMAT)}"
        self._call("hset", self._client.hset, key, event.id, json.dumps(event.to_dict()))
        self._call("expire", self._client.expire, key, self._ttl)

    def save_suppression(self, suppression: AlertSuppression) -> None:
        self._call(
            "hset", self._client.hset,
            ALERT_SUPPRESSIONS_KEY, suppression.rule_id, json.dumps(suppression.to_dict())
        )

    def delete_suppression(self, rule_id: str) -> None:
        self._call("hdel", self._client.hdel, ALERT_SUPPRESSIONS_KEY, rule_id)

    def save_statistics(self, statistics: AlertStatistics) -> None:
        self._call("set", self._client.set, ALERT_STATISTICS_KEY, json.dumps(statistics.to_dict()))

    # =========================================================================
    # Reads (startup only)
    # =========================================================================

    def _load_hash(self, key: str) -> Dict[str, Any]:
        raw = self._call("hgetall", self._client.hgetall, key) or {}
        decoded = {}
        for field, value in raw.items():
            try:
                decoded[field] = json.loads(value)
            except (json.JSONDecodeError, TypeError) as e:
                logger.warning("Skipping malformed entry %s in %s: %s", field, key, e)
        return decoded

    def load_rules(self) -> List[AlertRule]:
        rules = []
        for rule_id, data in self._load_hash(ALERT_RULES_KEY).items():
            try:
                rules.append(AlertRule.from_dict(data))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning("Skipping unreadable rule %s: %s", rule_id, e)
        return rules

    def load_suppressions(self) -> List[AlertSuppression]:
        suppressions = []
        for rule_id, data in self._load_hash(ALERT_SUPPRESSIONS_KEY).items():
            try:
                suppressions.append(AlertSuppression.from_dict(data))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning("Skipping unreadable suppression for %s: %s", rule_id, e)
        return suppressions

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except RedisError:
            return False

    def close(self) -> None:
        for executor in (self._executor, self._ordered_executor):
            if executor is not None:
                executor.shutdown(wait=True)
        self._executor = None
        self._ordered_executor = None
        close = getattr(self._client, "close", None)
        if close is not None:
            close()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {**self._stats, "ttl_seconds": self._ttl, "async": self._executor is not None}
