"""A small in-process metrics model: counters and histograms with label sets."""

from __future__ import annotations

import bisect
import math
import re
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar

DEF_BUCKETS: Tuple[float, ...] = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
EXEMPLAR_MAX_RUNES = 128

_METRIC_NAME_RE = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")
_LABEL_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_BUCKET_LABEL = "le"


@dataclass
class CounterOpts:
    """Options that name and describe a counter."""

    name: str = ""
    help: str = ""
    namespace: str = ""
    subsystem: str = ""
    const_labels: Dict[str, str] = field(default_factory=dict)


@dataclass
class HistogramOpts:
    """Options that name and describe a histogram and its buckets."""

    name: str = ""
    help: str = ""
    namespace: str = ""
    subsystem: str = ""
    const_labels: Dict[str, str] = field(default_factory=dict)
    buckets: Optional[Sequence[float]] = None
    native_histogram_bucket_factor: float = 0.0
    native_histogram_zero_threshold: float = 0.0
    native_histogram_max_bucket_number: int = 0
    native_histogram_min_reset_duration: float = 0.0
    native_histogram_max_zero_threshold: float = 0.0


@dataclass(frozen=True)
class Desc:
    """The immutable description of a metric family."""

    fq_name: str
    help: str
    const_labels: Tuple[Tuple[str, str], ...] = ()
    variable_labels: Tuple[str, ...] = ()


def _build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    if not name:
        return ""
    return "_".join(part for part in (namespace, subsystem, name) if part)


def _check_label_name(name: str) -> None:
    if not _LABEL_NAME_RE.match(name) or name.startswith("__"):
        raise ValueError(f"{name!r} is not a valid label name")


def _new_desc(
    namespace: str,
    subsystem: str,
    name: str,
    help_text: str,
    const_labels: Mapping[str, str],
    variable_labels: Iterable[str],
) -> Desc:
    fq_name = _build_fq_name(namespace, subsystem, name)
    if not _METRIC_NAME_RE.match(fq_name):
        raise ValueError(f"{fq_name!r} is not a valid metric name")
    variable_labels = tuple(variable_labels)
    names = list(const_labels) + list(variable_labels)
    for label in names:
        _check_label_name(label)
    if len(set(names)) != len(names):
        raise ValueError(f"duplicate label names in description of {fq_name}")
    return Desc(
        fq_name,
        help_text,
        tuple(sorted((str(k), str(v)) for k, v in const_labels.items())),
        variable_labels,
    )


def _check_exemplar(labels: Optional[Mapping[str, str]]) -> Optional[Dict[str, str]]:
    if labels is None:
        return None
    runes = 0
    for name, value in labels.items():
        _check_label_name(name)
        runes += len(name) + len(value)
    if runes > EXEMPLAR_MAX_RUNES:
        raise ValueError(
            f"exemplar labels have {runes} runes, exceeding the limit of {EXEMPLAR_MAX_RUNES}"
        )
    return dict(labels)


class _Metric:
    def __init__(self, desc: Desc, label_values: Sequence[str]) -> None:
        self.desc = desc
        self.label_values = tuple(label_values)
        self.exemplar: Optional[Tuple[Dict[str, str], float]] = None
        self._lock = threading.Lock()

    @property
    def labels(self) -> Dict[str, str]:
        """Constant and variable labels of this metric."""
        labels = dict(self.desc.const_labels)
        labels.update(zip(self.desc.variable_labels, self.label_values))
        return labels


class Counter(_Metric):
    """A monotonically increasing value."""

    def __init__(self, desc: Desc, label_values: Sequence[str] = ()) -> None:
        super().__init__(desc, label_values)
        self.value = 0.0

    def inc(self) -> None:
        """Increase the counter by one."""
        self.add_with_exemplar(1, None)

    def add_with_exemplar(self, value: float, exemplar: Optional[Mapping[str, str]]) -> None:
        """Add ``value`` and, when labels are given, record them as the exemplar."""
        if value < 0:
            raise ValueError("counter cannot decrease in value")
        labels = _check_exemplar(exemplar)
        with self._lock:
            self.value += value
            if labels is not None:
                self.exemplar = (labels, float(value))


class Histogram(_Metric):
    """Counts observations into cumulative buckets."""

    def __init__(self, desc: Desc, label_values: Sequence[str], buckets: Sequence[float]) -> None:
        super().__init__(desc, label_values)
        self.upper_bounds: Tuple[float, ...] = tuple(buckets)
        self._counts = [0] * (len(self.upper_bounds) + 1)
        self.sample_count = 0
        self.sample_sum = 0.0

    def observe(self, value: float) -> None:
        """Record one observation."""
        self.observe_with_exemplar(value, None)

    def observe_with_exemplar(self, value: float, exemplar: Optional[Mapping[str, str]]) -> None:
        """Record one observation and, when labels are given, its exemplar."""
        labels = _check_exemplar(exemplar)
        if math.isnan(value):
            index = len(self.upper_bounds)
        else:
            index = bisect.bisect_left(self.upper_bounds, value)
        with self._lock:
            self._counts[index] += 1
            self.sample_count += 1
            self.sample_sum += value
            if labels is not None:
                self.exemplar = (labels, float(value))

    @property
    def buckets(self) -> Dict[float, int]:
        """Cumulative counts keyed by upper bound, ending with +Inf."""
        with self._lock:
            counts = list(self._counts)
        result: Dict[float, int] = {}
        total = 0
        for bound, count in zip(self.upper_bounds + (math.inf,), counts):
            total += count
            result[bound] = total
        return result


def _check_buckets(buckets: Optional[Sequence[float]]) -> Tuple[float, ...]:
    bounds = list(DEF_BUCKETS if buckets is None else buckets)
    if bounds and math.isinf(bounds[-1]) and bounds[-1] > 0:
        bounds.pop()
    for lower, upper in zip(bounds, bounds[1:]):
        if not lower < upper:
            raise ValueError(f"histogram buckets must be in increasing order: {lower} >= {upper}")
    return tuple(float(b) for b in bounds)


_M = TypeVar("_M", bound=_Metric)


class _Children(Generic[_M]):
    """Thread-safe store of child metrics keyed by label values."""

    def __init__(self, desc: Desc, factory: Callable[[Tuple[str, ...]], _M]) -> None:
        self._desc = desc
        self._factory = factory
        self._items: Dict[Tuple[str, ...], _M] = {}
        self._lock = threading.Lock()

    def get(self, values: Sequence[str]) -> _M:
        expected = len(self._desc.variable_labels)
        if len(values) != expected:
            raise ValueError(
                f"inconsistent label cardinality: expected {expected} label values "
                f"but got {len(values)} in {tuple(values)!r}"
            )
        key = tuple(str(v) for v in values)
        with self._lock:
            child = self._items.get(key)
            if child is None:
                child = self._factory(key)
                self._items[key] = child
            return child

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def values(self) -> List[_M]:
        with self._lock:
            return list(self._items.values())


class CounterVec:
    """Counters partitioned by label values."""

    def __init__(self, opts: CounterOpts, label_names: Sequence[str]) -> None:
        self.desc = _new_desc(
            opts.namespace, opts.subsystem, opts.name, opts.help, opts.const_labels, label_names
        )
        self._children: _Children[Counter] = _Children(self.desc, lambda values: Counter(self.desc, values))

    def with_label_values(self, *values: str) -> Counter:
        """Return the counter for these label values, creating it if needed."""
        return self._children.get(values)

    def reset(self) -> None:
        """Drop every child counter."""
        self._children.clear()

    def describe(self) -> List[Desc]:
        """Return the descriptions of the metrics this vector can collect."""
        return [self.desc]

    def collect(self) -> List[Counter]:
        """Return the child counters that exist so far."""
        return self._children.values()


class HistogramVec:
    """Histograms partitioned by label values."""

    def __init__(self, opts: HistogramOpts, label_names: Sequence[str]) -> None:
        label_names = tuple(label_names)
        if _BUCKET_LABEL in label_names or _BUCKET_LABEL in opts.const_labels:
            raise ValueError(f"{_BUCKET_LABEL!r} is not allowed as label name in histograms")
        self.desc = _new_desc(
            opts.namespace, opts.subsystem, opts.name, opts.help, opts.const_labels, label_names
        )
        self.opts = opts
        self._buckets = _check_buckets(opts.buckets)
        self._children: _Children[Histogram] = _Children(
            self.desc, lambda values: Histogram(self.desc, values, self._buckets)
        )

    def with_label_values(self, *values: str) -> Histogram:
        """Return the histogram for these label values, creating it if needed."""
        return self._children.get(values)

    def reset(self) -> None:
        """Drop every child histogram."""
        self._children.clear()

    def describe(self) -> List[Desc]:
        """Return the descriptions of the metrics this vector can collect."""
        return [self.desc]

    def collect(self) -> List[Histogram]:
        """Return the child histograms that exist so far."""
        return self._children.values()