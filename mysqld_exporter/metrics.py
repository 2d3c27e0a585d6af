"""Metric descriptors, the per-scrape sample sink and its prometheus_client bridge.

Descriptors are interned process-wide by fully-qualified name so that every
scrape, concurrent or not, reuses the same instance and the same label set.
"""
import logging
import re
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock

from prometheus_client.core import (
    CounterMetricFamily,
    GaugeMetricFamily,
    HistogramMetricFamily,
    UntypedMetricFamily,
)
from prometheus_client.utils import floatToGoString

from .errors import DescriptorConflict

NAMESPACE = 'mysql'

COUNTER = 'counter'
GAUGE = 'gauge'
UNTYPED = 'untyped'
HISTOGRAM = 'histogram'
METRIC_TYPES = (COUNTER, GAUGE, UNTYPED, HISTOGRAM)

_NAME_RE = re.compile(r'^[a-zA-Z_:][a-zA-Z0-9_:]*$')
_LABEL_RE = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]*$')


@dataclass(frozen=True)
class Desc:
    fq_name: str
    help: str
    label_names: tuple = ()
    type: str = UNTYPED


@dataclass(frozen=True)
class Sample:
    desc: Desc
    label_values: tuple
    value: float
    # Histograms only: ((upper_bound, cumulative_count), ...) and the total count.
    buckets: tuple = None
    count: int = None


def build_fq_name(*parts):
    return '_'.join(p for p in parts if p)


class DescRegistry:
    """Interns descriptors by name and rejects conflicting redefinitions."""

    def __init__(self):
        self._descs = {}
        self._lock = Lock()

    def get(self, fq_name, help_text, label_names=(), metric_type=UNTYPED):
        if metric_type not in METRIC_TYPES:
            raise ValueError(f"Unknown metric type {metric_type!r} for {fq_name}")
        # Counters are exposed with a _total suffix.
        if metric_type == COUNTER and not fq_name.endswith('_total'):
            fq_name += '_total'
        if not _NAME_RE.match(fq_name):
            raise ValueError(f"Invalid metric name: {fq_name!r}")
        label_names = tuple(label_names)
        for label in label_names:
            if not _LABEL_RE.match(label) or label.startswith('__'):
                raise ValueError(f"Invalid label name {label!r} for {fq_name}")

        with self._lock:
            existing = self._descs.get(fq_name)
            if existing is not None:
                if existing.label_names != label_names or existing.type != metric_type:
                    raise DescriptorConflict(
                        f"metric {fq_name} was registered as {existing.type}{list(existing.label_names)} "
                        f"and is now requested as {metric_type}{list(label_names)}"
                    )
                return existing
            desc = Desc(fq_name, help_text, label_names, metric_type)
            self._descs[fq_name] = desc
            return desc

    def __len__(self):
        return len(self._descs)


DESCRIPTORS = DescRegistry()


def new_desc(subsystem, name, help_text, label_names=(), metric_type=UNTYPED):
    """Descriptor named mysql_<subsystem>_<name>."""
    return DESCRIPTORS.get(build_fq_name(NAMESPACE, subsystem, name), help_text, label_names, metric_type)


class MetricSink:
    """Thread-safe collection of samples produced during one scrape.

    Once closed, further samples are dropped; that is how samples from
    scrapers still running after the deadline are kept out of the response.
    """

    def __init__(self):
        self._samples = []
        self._lock = Lock()
        self._closed = False
        self.dropped = 0

    def emit(self, desc, value, *label_values):
        if desc.type == HISTOGRAM:
            raise ValueError(f"{desc.fq_name} is a histogram; use emit_histogram")
        self._add(Sample(desc, self._labels(desc, label_values), float(value)))

    def emit_histogram(self, desc, buckets, count, total, *label_values):
        if desc.type != HISTOGRAM:
            raise ValueError(f"{desc.fq_name} is not a histogram")
        buckets = tuple((float(ub), int(c)) for ub, c in buckets)
        self._add(Sample(desc, self._labels(desc, label_values), float(total), buckets, int(count)))

    @staticmethod
    def _labels(desc, label_values):
        if len(label_values) != len(desc.label_names):
            raise ValueError(
                f"{desc.fq_name} expects {len(desc.label_names)} label values, got {len(label_values)}"
            )
        return tuple('' if v is None else str(v) for v in label_values)

    def _add(self, sample):
        with self._lock:
            if self._closed:
                self.dropped += 1
                return
            self._samples.append(sample)

    def close(self):
        with self._lock:
            self._closed = True
        if self.dropped:
            logging.debug(f"Dropped {self.dropped} samples emitted after the sink was closed")

    @property
    def closed(self):
        return self._closed

    def samples(self):
        with self._lock:
            return list(self._samples)

    def __len__(self):
        with self._lock:
            return len(self._samples)


def _family(desc):
    labels = list(desc.label_names)
    if desc.type == COUNTER:
        return CounterMetricFamily(desc.fq_name, desc.help, labels=labels)
    if desc.type == GAUGE:
        return GaugeMetricFamily(desc.fq_name, desc.help, labels=labels)
    if desc.type == HISTOGRAM:
        return HistogramMetricFamily(desc.fq_name, desc.help, labels=labels)
    return UntypedMetricFamily(desc.fq_name, desc.help, labels=labels)


class SinkCollector:
    """prometheus_client collector exposing the samples of one or more sinks."""

    def __init__(self, *sinks):
        self.sinks = sinks

    def collect(self):
        families = OrderedDict()
        for sink in self.sinks:
            for sample in sink.samples():
                family = families.get(sample.desc.fq_name)
                if family is None:
                    family = families[sample.desc.fq_name] = _family(sample.desc)
                labels = list(sample.label_values)
                if sample.desc.type == HISTOGRAM:
                    buckets = [(floatToGoString(ub), c) for ub, c in sample.buckets]
                    buckets.append(('+Inf', sample.count))
                    family.add_metric(labels, buckets, sample.value)
                else:
                    family.add_metric(labels, sample.value)
        return iter(families.values())
