"""
In-process counters exported as Prometheus text.

Counters are process-global and label-keyed; tests reset them through
METRICS.reset(). Only counters are kept: every quantity this service reports
is a count of requests, registry calls, relay outcomes or resolutions.
"""

from __future__ import annotations

import re
import threading
from typing import Dict, Iterable, List, Optional, Tuple

LabelKey = Tuple[str, ...]


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\"", "\\\"").replace("\n", "\\n")


class Counter:
    def __init__(self, name: str, description: str, label_names: Optional[Iterable[str]] = None):
        self.name = name
        self.description = description
        self.label_names = tuple(label_names or ())
        self._values: Dict[LabelKey, float] = {}
        self._lock = threading.Lock()

    def _key(self, labels: Optional[Dict[str, str]]) -> LabelKey:
        labels = labels or {}
        unknown = set(labels) - set(self.label_names)
        if unknown:
            raise ValueError(f"{self.name}: unknown labels {sorted(unknown)}")
        return tuple(str(labels.get(name, "")) for name in self.label_names)

    def inc(self, labels: Optional[Dict[str, str]] = None, amount: float = 1.0) -> None:
        key = self._key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + float(amount)

    def value(self, labels: Optional[Dict[str, str]] = None) -> float:
        key = self._key(labels)
        with self._lock:
            return self._values.get(key, 0.0)

    def total(self) -> float:
        with self._lock:
            return sum(self._values.values())

    def samples(self) -> List[Tuple[LabelKey, float]]:
        with self._lock:
            return sorted(self._values.items())

    def render(self) -> List[str]:
        lines = [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} counter"]
        for key, value in self.samples():
            if self.label_names:
                pairs = ",".join(f'{n}="{_escape(v)}"' for n, v in zip(self.label_names, key))
                lines.append(f"{self.name}{{{pairs}}} {value}")
            else:
                lines.append(f"{self.name} {value}")
        return lines

    def reset(self) -> None:
        with self._lock:
            self._values.clear()


class MetricsRegistry:
    def __init__(self):
        self._counters: Dict[str, Counter] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, description: str, label_names: Optional[Iterable[str]] = None) -> Counter:
        with self._lock:
            existing = self._counters.get(name)
            if existing is None:
                existing = self._counters[name] = Counter(name, description, label_names)
            return existing

    def export_prometheus(self) -> str:
        with self._lock:
            counters = list(self._counters.values())
        lines: List[str] = []
        for counter in counters:
            lines.extend(counter.render())
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        with self._lock:
            counters = list(self._counters.values())
        for counter in counters:
            counter.reset()


METRICS = MetricsRegistry()

http_requests_total = METRICS.counter(
    "http_requests_total", "HTTP requests served, by route and status.", ["method", "path", "status"]
)
registry_requests_total = METRICS.counter(
    "registry_requests_total", "Calls made to the connection registry.", ["operation", "status"]
)
proxy_requests_total = METRICS.counter(
    "proxy_requests_total", "Forwarded upstream responses, by relay mode.", ["content_type", "status"]
)
proxy_stream_chunks_total = METRICS.counter(
    "proxy_stream_chunks_total", "Event-stream chunks relayed downstream."
)
billing_resolutions_total = METRICS.counter(
    "billing_resolutions_total", "Billing session resolutions, by outcome.", ["outcome"]
)


# hex/uuid ids and registry-style prefixed ids (conn_..., usr_...)
_ID_SEGMENT = re.compile(r"^(\d+|[0-9a-fA-F-]{8,}|[a-z]+_[0-9A-Za-z]+)$")


def normalize_path(path: str) -> str:
    """Collapse id-like path segments to :id to bound label cardinality."""
    segments = [":id" if _ID_SEGMENT.match(s) else s for s in path.split("/") if s]
    return "/" + "/".join(segments)
