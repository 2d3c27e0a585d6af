"""Row-to-metric decoders shared by the scrapers.

* ``StatusDecoder``: two-column (name, value) rows such as SHOW GLOBAL STATUS.
* ``FixedSchemaDecoder``: columns declared up front as labels or typed values.
* ``WideRowDecoder``: leading label columns, one sample per remaining column.
* ``assemble_histogram``: cumulative buckets from (bound, count, total) rows.
* ``TextParser``: regular-expression rules over SHOW ENGINE ... STATUS text.
"""
import datetime
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal

from .logconfig import parse_duration
from .metrics import COUNTER, GAUGE, UNTYPED, DESCRIPTORS, build_fq_name, new_desc

PICO_SECONDS = 1e12

_INVALID_NAME_CHARS = re.compile(r'[^a-zA-Z0-9_]')
_LOG_FILE_NUMBER = re.compile(r'^.+\.(\d+)$')
_TRUE_WORDS = ('yes', 'on', 'primary')
_FALSE_WORDS = ('no', 'off', 'disabled', 'connecting', 'non-primary', 'disconnected')
_TIME_FORMATS = ('%b %d %H:%M:%S %Y', '%Y-%m-%d %H:%M:%S')
# Zone abbreviations are read as UTC.
_TRAILING_ZONE = re.compile(r'^(\w{3} \d{2} \d{2}:\d{2}:\d{2} \d{4}) [A-Z]{2,5}$')


def valid_name(name):
    return _INVALID_NAME_CHARS.sub('_', name).lower()


def parse_status(data):
    """Turn a status or variable value into a float, or None when it is not numeric.

    Accepts booleans spelled as words, timestamps, and binary log file names
    (mysql-bin.000123 -> 123).
    """
    if data is None:
        return None
    if isinstance(data, bool):
        return 1.0 if data else 0.0
    if isinstance(data, (int, float, Decimal)):
        return float(data)
    if isinstance(data, datetime.datetime):
        return data.timestamp()
    if isinstance(data, (bytes, bytearray)):
        data = data.decode('utf-8', 'replace')

    text = str(data).strip()
    lowered = text.lower()
    if lowered in _TRUE_WORDS:
        return 1.0
    if lowered in _FALSE_WORDS:
        return 0.0
    zoned = _TRAILING_ZONE.match(text)
    stamp = zoned.group(1) if zoned else text
    for fmt in _TIME_FORMATS:
        try:
            parsed = datetime.datetime.strptime(stamp, fmt)
        except ValueError:
            continue
        return parsed.replace(tzinfo=datetime.timezone.utc).timestamp()
    try:
        return float(text)
    except ValueError:
        pass
    match = _LOG_FILE_NUMBER.match(text)
    if match:
        return float(match.group(1))
    return None


def to_text(value):
    if value is None:
        return ''
    if isinstance(value, (bytes, bytearray)):
        return value.decode('utf-8', 'replace')
    return str(value)


# (a) key/value rows

@dataclass(frozen=True)
class StatusRule:
    """Route keys matching pattern to desc; regex groups become label values.

    A rule without desc drops the matching keys.
    """
    pattern: re.Pattern
    desc: object = None


@dataclass(frozen=True)
class InfoRoute:
    """Collect text values of keys into one info sample labelled by them."""
    desc: object
    keys: tuple


class StatusDecoder:
    """Decoder for (name, value) rows.

    Names are normalized by ``normalize`` (lowercased and sanitized by
    default) and renamed through ``renames`` (a sequence of (old prefix, new
    prefix) pairs). Rules are tried in order; unmatched numeric values become
    ``<subsystem>_<name>`` with the type from ``types`` or ``default_type``.
    """

    def __init__(self, subsystem, help_format, default_type=UNTYPED, types=None, rules=(),
                 renames=(), info=None, normalize=valid_name, key_column=0):
        self.subsystem = subsystem
        self.key_column = key_column
        self.help_format = help_format
        self.default_type = default_type
        self.types = types or {}
        self.rules = tuple(rules)
        self.renames = tuple(renames)
        self.info = info
        self.normalize = normalize

    def key(self, name):
        key = self.normalize(to_text(name))
        for old, new in self.renames:
            if key.startswith(old):
                return new + key[len(old):]
        return key

    def decode(self, rows, sink):
        info_values = {}
        emitted = 0
        for row in rows:
            if len(row) < self.key_column + 2:
                logging.debug(f"Skipping short {self.subsystem} row: {row!r}")
                continue
            key = self.key(row[self.key_column])
            raw = row[-1]
            if self.info is not None and key in self.info.keys:
                info_values[key] = to_text(raw)
            value = parse_status(raw)
            if value is None:
                continue
            if self._route(key, value, sink):
                emitted += 1
                continue
            desc = new_desc(self.subsystem, key, self.help_format % key, (),
                            self.types.get(key, self.default_type))
            sink.emit(desc, value)
            emitted += 1

        if self.info is not None and info_values and all(k in info_values for k in self.info.keys):
            sink.emit(self.info.desc, 1, *(info_values[k] for k in self.info.keys))
        return emitted

    def _route(self, key, value, sink):
        for rule in self.rules:
            match = rule.pattern.match(key)
            if match:
                if rule.desc is not None:
                    sink.emit(rule.desc, value, *match.groups())
                return True
        return False


# (b) declared columns

LABEL = 'LABEL'
DISCARD = 'DISCARD'
MAPPED = 'MAPPEDMETRIC'
DURATION = 'DURATION'
COUNTER_USAGE = 'COUNTER'
GAUGE_USAGE = 'GAUGE'
USAGES = (LABEL, DISCARD, MAPPED, DURATION, COUNTER_USAGE, GAUGE_USAGE)

_USAGE_TYPES = {COUNTER_USAGE: COUNTER, GAUGE_USAGE: GAUGE, MAPPED: GAUGE, DURATION: GAUGE}


@dataclass(frozen=True)
class Column:
    name: str
    usage: str
    help: str = ''
    metric: str = None
    mapping: dict = field(default=None, compare=False, hash=False)
    divisor: float = 1.0

    def __post_init__(self):
        if self.usage not in USAGES:
            raise ValueError(f"column {self.name}: unknown usage {self.usage!r}")


class FixedSchemaDecoder:
    """Decoder for a statically declared column layout.

    Metric names are ``<family>_<column>``. Declared columns missing from
    the result set are ignored (a missing label column yields an empty
    label); undeclared columns become untyped metrics.
    """

    def __init__(self, family, columns):
        self.family = family
        self.columns = {c.name.lower(): c for c in columns}
        self.label_names = tuple(c.name.lower() for c in columns if c.usage == LABEL)
        self.descs = {}
        for column in columns:
            metric_type = _USAGE_TYPES.get(column.usage)
            if metric_type is None:
                continue
            metric = column.metric or column.name.lower()
            if column.usage == DURATION and not column.metric:
                metric += "_milliseconds"
            name = build_fq_name(family, metric)
            self.descs[column.name.lower()] = DESCRIPTORS.get(
                name, column.help or f"Column {column.name} of {family}", self.label_names, metric_type,
            )

    def decode(self, rows, sink):
        columns = [c.lower() for c in rows.columns]
        positions = {name: i for i, name in enumerate(columns)}
        emitted = 0
        for row in rows:
            labels = tuple(
                to_text(row[positions[name]]) if name in positions else '' for name in self.label_names
            )
            for i, name in enumerate(columns):
                column = self.columns.get(name)
                if column is not None and column.usage in (LABEL, DISCARD):
                    continue
                if column is None:
                    value = parse_status(row[i])
                    if value is None:
                        continue
                    desc = DESCRIPTORS.get(build_fq_name(self.family, valid_name(name)),
                                           f"Unsupported column {name} of {self.family}",
                                           self.label_names, UNTYPED)
                    sink.emit(desc, value, *labels)
                    emitted += 1
                    continue
                if column.usage == MAPPED:
                    value = (column.mapping or {}).get(to_text(row[i]))
                elif column.usage == DURATION:
                    value = duration_milliseconds(row[i])
                else:
                    value = parse_status(row[i])
                if value is None:
                    logging.debug(f"{self.family}: column {name} value {row[i]!r} is not numeric")
                    continue
                sink.emit(self.descs[name], value / column.divisor, *labels)
                emitted += 1
        return emitted


def duration_milliseconds(raw):
    """Milliseconds from a duration such as '10s' or '250ms'; -1 means unset."""
    text = to_text(raw).strip()
    if not text or text == '-1':
        return None
    try:
        return parse_duration(text) * 1000
    except ValueError:
        logging.error(f"Failed converting duration {text!r} to a metric")
        return None


# (c) leading labels, one metric per remaining column

@dataclass(frozen=True)
class WideColumn:
    desc: object
    divisor: float = 1.0
    extra_labels: tuple = ()


class WideRowDecoder:
    """The first ``len(label_names)`` columns are labels; each later column maps
    through ``columns`` (keyed by lowercased column name) to a WideColumn, or
    a list of WideColumns. Unknown numeric columns become untyped metrics
    when ``unknown`` is given as a (subsystem, name prefix) pair.
    """

    def __init__(self, label_names, columns, unknown=None,
                 unknown_help="Unsupported metric from column %s"):
        self.label_names = tuple(label_names)
        self.columns = {name.lower(): (column if isinstance(column, (list, tuple)) else (column,))
                        for name, column in columns.items()}
        self.unknown = unknown
        self.unknown_help = unknown_help

    def decode(self, rows, sink):
        width = len(self.label_names)
        names = [c.lower() for c in rows.columns]
        emitted = 0
        for row in rows:
            if len(row) < width or len(row) != len(names):
                logging.debug(f"Skipping malformed row: {row!r}")
                continue
            labels = tuple(to_text(v) for v in row[:width])
            for name, raw in zip(names[width:], row[width:]):
                value = parse_status(raw)
                if value is None:
                    continue
                targets = self.columns.get(name)
                if targets is None:
                    if self.unknown is None:
                        continue
                    subsystem, prefix = self.unknown
                    targets = (WideColumn(new_desc(subsystem, prefix + valid_name(name),
                                                 self.unknown_help % name.upper(),
                                                 self.label_names, UNTYPED)),)
                for column in targets:
                    sink.emit(column.desc, value / column.divisor, *labels, *column.extra_labels)
                    emitted += 1
        return emitted


# (d) histograms

def assemble_histogram(rows):
    """Return (buckets, count, sum) for (upper_bound, count, total) rows.

    Buckets are cumulative and strictly increasing in upper bound. A row that
    is not fully numeric (such as the 'TOO LONG' overflow row) or out of order
    ends the histogram; what was accumulated so far is kept.
    """
    buckets = []
    count = 0
    total = 0.0
    for row in rows:
        try:
            upper = float(to_text(row[0]).strip())
            n = int(float(to_text(row[1]).strip()))
            elapsed = float(to_text(row[2]).strip())
        except (IndexError, ValueError):
            logging.debug(f"Histogram stops at row {row!r}")
            break
        if buckets and upper <= buckets[-1][0]:
            logging.debug(f"Histogram stops at out-of-order bound {upper}")
            break
        count += n
        total += elapsed
        buckets.append((upper, count))
    return buckets, count, total


# (e) free text

@dataclass(frozen=True)
class TextRule:
    """pattern's groups feed metrics: (group index, desc, label values) triples."""
    pattern: re.Pattern
    metrics: tuple
    section: str = None


_SECTION_RE = re.compile(r'^-{3,}\n(.+?)\n-{3,}$', re.MULTILINE)


def split_sections(text):
    """Split monitor output into (title, body) pairs on dash-underlined headings."""
    sections = []
    last_end, last_title = 0, ''
    for match in _SECTION_RE.finditer(text):
        sections.append((last_title, text[last_end:match.start()]))
        last_title, last_end = match.group(1).strip(), match.end()
    sections.append((last_title, text[last_end:]))
    return sections


class TextParser:
    def __init__(self, rules):
        self.rules = tuple(rules)

    def parse(self, text):
        """Return (desc, value, label values) triples; unmatched lines are ignored."""
        results = []
        for title, body in split_sections(text):
            for line in body.splitlines():
                line = line.strip()
                if not line:
                    continue
                for rule in self.rules:
                    if rule.section is not None and rule.section != title:
                        continue
                    match = rule.pattern.search(line)
                    if not match:
                        continue
                    for group, desc, labels in rule.metrics:
                        try:
                            value = float(match.group(group))
                        except (TypeError, ValueError):
                            continue
                        results.append((desc, value, tuple(labels)))
        return results

    def decode(self, text, sink):
        results = self.parse(text)
        for desc, value, labels in results:
            sink.emit(desc, value, *labels)
        return len(results)
