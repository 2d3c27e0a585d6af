"""Collector configuration: which scrapers run and with which arguments.

Three layers are merged, lowest first: the registry defaults, the CLI flags
the user set explicitly, and the YAML file::

    collect:
      - name: info_schema.processlist
        enabled: true
        args:
          - name: min_time
            value: 5
"""
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from threading import Lock

import yaml
from prometheus_client import Gauge

from .args import Arg, value_type
from .errors import ConfigError

RELOAD_SUCCESS = Gauge(
    'mysqld_exporter_config_last_reload_successful',
    'Whether the last configuration reload attempt was successful.',
    ['type'],
)
RELOAD_TIMESTAMP = Gauge(
    'mysqld_exporter_config_last_reload_success_timestamp_seconds',
    'Timestamp of the last successful configuration reload.',
    ['type'],
)


@dataclass(frozen=True)
class Collector:
    name: str
    enabled: bool = None
    args: tuple = ()

    def merge(self, other):
        """Fields set in other win; unset fields keep this collector's values."""
        enabled = other.enabled if other.enabled is not None else self.enabled
        merged = {arg.name: arg for arg in self.args}
        for arg in other.args:
            merged[arg.name] = arg
        return Collector(self.name, enabled, tuple(merged.values()))

    def arg(self, name):
        for arg in self.args:
            if arg.name == name:
                return arg
        return None


@dataclass(frozen=True)
class Config:
    collectors: tuple = field(default_factory=tuple)

    def collector(self, name):
        for entry in self.collectors:
            if entry.name == name:
                return entry
        return None

    def merge(self, other):
        merged = {}
        for entry in self.collectors:
            merged[entry.name] = entry
        for entry in other.collectors:
            base = merged.get(entry.name)
            merged[entry.name] = base.merge(entry) if base is not None else entry
        return Config(tuple(merged.values()))

    def enabled_names(self):
        return [c.name for c in self.collectors if c.enabled]

    def validate(self):
        seen = set()
        for entry in self.collectors:
            if not entry.name:
                raise ConfigError("collector with empty name")
            if entry.name in seen:
                raise ConfigError(f"duplicate collector {entry.name}")
            seen.add(entry.name)
            if entry.enabled is not None and not isinstance(entry.enabled, bool):
                raise ConfigError(f"collector {entry.name} enabled must be a bool, got {entry.enabled!r}")
            arg_names = set()
            for arg in entry.args:
                if not arg.name:
                    raise ConfigError(f"collector {entry.name} has an arg with empty name")
                if arg.name in arg_names:
                    raise ConfigError(f"collector {entry.name} has duplicate arg {arg.name}")
                arg_names.add(arg.name)
                if value_type(arg.value) is None:
                    raise ConfigError(
                        f"collector {entry.name} arg {arg.name} value {arg.value!r} "
                        f"must be a bool, int or string"
                    )
        return self

    @classmethod
    def from_dict(cls, data):
        if not data:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError("config must be a mapping with a 'collect' list")
        unknown = set(data) - {'collect'}
        if unknown:
            raise ConfigError(f"unknown config keys: {sorted(unknown)}")
        entries = data.get('collect') or []
        if not isinstance(entries, list):
            raise ConfigError("'collect' must be a list")
        collectors = []
        for item in entries:
            if not isinstance(item, dict):
                raise ConfigError(f"collector entry must be a mapping, got {item!r}")
            args = []
            for raw in item.get('args') or []:
                if not isinstance(raw, dict) or 'value' not in raw:
                    raise ConfigError(f"collector {item.get('name')} arg must have a name and a value, got {raw!r}")
                args.append(Arg(raw.get('name') or '', raw['value']))
            collectors.append(Collector(item.get('name') or '', item.get('enabled'), tuple(args)))
        return cls(tuple(collectors))

    @classmethod
    def from_yaml(cls, text):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML: {e}")
        return cls.from_dict(data).validate()

    @classmethod
    def from_file(cls, path):
        path = Path(path)
        logging.info(f"Loading collector config from: {path}")
        try:
            text = path.read_text()
        except OSError as e:
            raise ConfigError(f"cannot read config file {path}: {e}")
        return cls.from_yaml(text)

    @classmethod
    def from_registry(cls, registry):
        """The defaults layer: every registered scraper with its current enabled flag."""
        return cls(tuple(Collector(name, registry.is_enabled(name)) for name in registry.names()))


EMPTY = Config()


def merge(*configs):
    result = EMPTY
    for config in configs:
        result = result.merge(config)
    return result


class Reloader:
    """Publishes the object returned by ``loader``.

    ``current`` is a plain attribute read. ``reload`` is exclusive; if the
    loader raises, the previous object stays published and the error is
    re-raised as a ConfigError.
    """

    def __init__(self, kind, loader, initial=None):
        self.kind = kind
        self._loader = loader
        self._current = initial
        self._lock = Lock()

    def current(self):
        return self._current

    def reload(self):
        with self._lock:
            try:
                loaded = self._loader()
            except Exception as e:
                RELOAD_SUCCESS.labels(self.kind).set(0)
                logging.error(f"Failed to reload {self.kind}: {e}")
                if isinstance(e, ConfigError):
                    raise
                raise ConfigError(f"failed to reload {self.kind}: {e}") from e
            self._current = loaded
            RELOAD_SUCCESS.labels(self.kind).set(1)
            RELOAD_TIMESTAMP.labels(self.kind).set(time.time())
            logging.info(f"Reloaded {self.kind}")
            return loaded
