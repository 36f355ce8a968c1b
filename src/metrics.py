"""In-process metrics with Prometheus text exposition.

Counters, gauges and histograms register themselves in a module-level
registry when created.  ``generate_metrics_text()`` renders every
registered metric in the Prometheus text format, so a host process can
serve it on a ``/metrics`` endpoint or dump it to a log.
"""

from collections import defaultdict
from threading import Lock
from typing import Dict, Iterable, List, Tuple

LabelKey = Tuple[str, ...]


class Metric:
    """Base class holding the name, help text and label names."""

    kind = "untyped"

    def __init__(self, name: str, description: str, label_names: Iterable[str] = ()):
        self.name = name
        self.description = description
        self.label_names = list(label_names)
        self._lock = Lock()
        _METRIC_REGISTRY.append(self)

    def _key(self, labels: Dict[str, str]) -> LabelKey:
        return tuple(str(labels.get(k, "")) for k in self.label_names)

    def _render_labels(self, key: LabelKey, extra: str = "") -> str:
        pairs = [f'{name}="{value}"' for name, value in zip(self.label_names, key)]
        if extra:
            pairs.append(extra)
        return "{" + ",".join(pairs) + "}" if pairs else ""

    def _header(self) -> List[str]:
        return [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} {self.kind}"]

    def to_prometheus(self) -> List[str]:
        raise NotImplementedError


class Counter(Metric):
    """Monotonic counter: ``COUNTER.inc(reason="EmptyCart")``."""

    kind = "counter"

    def __init__(self, name: str, description: str, label_names: Iterable[str] = ()):
        super().__init__(name, description, label_names)
        self._values: Dict[LabelKey, float] = defaultdict(float)

    def inc(self, amount: float = 1, **labels: str) -> None:
        if amount < 0:
            raise ValueError("Counters can only increase")
        with self._lock:
            self._values[self._key(labels)] += amount

    def value(self, **labels: str) -> float:
        with self._lock:
            return self._values.get(self._key(labels), 0)

    def to_prometheus(self) -> List[str]:
        lines = self._header()
        with self._lock:
            for key, value in self._values.items():
                lines.append(f"{self.name}{self._render_labels(key)} {value}")
        return lines


class Gauge(Metric):
    """Value that can go up and down."""

    kind = "gauge"

    def __init__(self, name: str, description: str, label_names: Iterable[str] = ()):
        super().__init__(name, description, label_names)
        self._values: Dict[LabelKey, float] = {}

    def set(self, value: float, **labels: str) -> None:
        with self._lock:
            self._values[self._key(labels)] = float(value)

    def value(self, **labels: str) -> float:
        with self._lock:
            return self._values.get(self._key(labels), 0.0)

    def to_prometheus(self) -> List[str]:
        lines = self._header()
        with self._lock:
            for key, value in self._values.items():
                lines.append(f"{self.name}{self._render_labels(key)} {value}")
        return lines


class Histogram(Metric):
    """Bucketed observations; buckets are upper bounds, ``+Inf`` is implicit."""

    kind = "histogram"

    def __init__(self, name: str, description: str, label_names: Iterable[str], buckets: Iterable[float]):
        super().__init__(name, description, label_names)
        self.buckets = sorted(float(b) for b in buckets)
        self._counts: Dict[LabelKey, List[int]] = defaultdict(lambda: [0] * len(self.buckets))
        self._sums: Dict[LabelKey, float] = defaultdict(float)
        self._totals: Dict[LabelKey, int] = defaultdict(int)

    def observe(self, value: float, **labels: str) -> None:
        key = self._key(labels)
        with self._lock:
            counts = self._counts[key]
            for idx, upper in enumerate(self.buckets):
                if value <= upper:
                    counts[idx] += 1
            self._totals[key] += 1
            self._sums[key] += float(value)

    def count(self, **labels: str) -> int:
        with self._lock:
            return self._totals.get(self._key(labels), 0)

    def to_prometheus(self) -> List[str]:
        lines = self._header()
        with self._lock:
            for key, total in self._totals.items():
                # counts are already cumulative: observe() bumps every bucket >= value
                for upper, cumulative in zip(self.buckets, self._counts[key]):
                    bucket_labels = self._render_labels(key, 'le="' + str(upper) + '"')
                    lines.append(f"{self.name}_bucket{bucket_labels} {cumulative}")
                inf_labels = self._render_labels(key, 'le="+Inf"')
                lines.append(f"{self.name}_bucket{inf_labels} {total}")
                lines.append(f"{self.name}_sum{self._render_labels(key)} {self._sums[key]}")
                lines.append(f"{self.name}_count{self._render_labels(key)} {total}")
        return lines


_METRIC_REGISTRY: List[Metric] = []


def generate_metrics_text() -> bytes:
    """Render all registered metrics in Prometheus text format."""
    lines: List[str] = []
    for metric in _METRIC_REGISTRY:
        lines.extend(metric.to_prometheus())
    return "\n".join(lines).encode("utf-8")


# -----------------------------------------------------------------------------
# Metrics recorded by the checkout engine and its collaborators.
# -----------------------------------------------------------------------------

CHECKOUT_DURATION_SECONDS = Histogram(
    name="checkout_duration_seconds",
    description="Duration of checkout attempts in seconds",
    label_names=["payment_method"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0],
)

CHECKOUT_COMMITTED_TOTAL = Counter(
    name="checkout_committed_total",
    description="Checkouts that committed, labelled by payment method",
    label_names=["payment_method"],
)

CHECKOUT_ABORT_TOTAL = Counter(
    name="checkout_abort_total",
    description="Checkouts that aborted, labelled by reason",
    label_names=["reason"],
)

LOYALTY_POINTS_TOTAL = Counter(
    name="loyalty_points_total",
    description="Loyalty points moved, labelled by direction (earned/redeemed/reversed)",
    label_names=["direction"],
)

PARTIAL_COMMIT_TOTAL = Counter(
    name="partial_commit_total",
    description="Commits whose compensation could not be fully applied",
)

CASHIER_LINE_LENGTH = Gauge(
    name="cashier_line_length",
    description="Customers waiting per cashier station",
    label_names=["station"],
)
