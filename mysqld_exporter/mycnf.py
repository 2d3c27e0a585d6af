"""Credentials from a MySQL option file (.my.cnf).

``[client]`` is the default auth module. ``[client.<alias>]`` sections take
any key they do not set from ``[client]``. Values may reference environment
variables, e.g. ``password = ${MYSQLD_EXPORTER_PASSWORD}``.
"""
import configparser
import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path

from .dsn import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DSN,
    UNIX_PREFIX,
    build_tls_context,
    register_tls_config,
    split_host_port,
)
from .errors import MycnfError

DEFAULT_SECTION = 'client'
PASSWORD_ENV = 'MYSQLD_EXPORTER_PASSWORD'

_TRUE = ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class MycnfSection:
    name: str
    user: str = ''
    password: str = ''
    host: str = ''
    port: int = 0
    socket: str = ''
    ssl_ca: str = ''
    ssl_cert: str = ''
    ssl_key: str = ''
    tls: str = ''
    tls_skip_verify: bool = False

    def form_dsn(self, target=''):
        """DSN for this section, pointed at target when one is given."""
        if not self.user:
            raise MycnfError(f"no configuration found: section [{self.name}] has no user")

        if target.startswith(UNIX_PREFIX):
            dsn = DSN(self.user, self.password, 'unix', socket=target[len(UNIX_PREFIX):])
        elif target:
            host, port = split_host_port(target)
            dsn = DSN(self.user, self.password, 'tcp', host=host, port=port)
        elif self.socket:
            dsn = DSN(self.user, self.password, 'unix', socket=self.socket)
        else:
            dsn = DSN(self.user, self.password, 'tcp', host=self.host or DEFAULT_HOST,
                      port=self.port or DEFAULT_PORT)

        tls = 'skip-verify' if self.tls_skip_verify else self.tls
        if self.ssl_ca:
            tls = 'custom' if self.name == DEFAULT_SECTION else f"custom-{self.name}"
            register_tls_config(tls, build_tls_context(
                self.ssl_ca, self.ssl_cert, self.ssl_key, skip_verify=self.tls_skip_verify,
            ))
        return replace(dsn, tls=tls)


def _parse_bool(value):
    # A bare key (no '=') means true.
    return value is None or value.strip().lower() in _TRUE


def _section_from_items(name, items):
    port = items.get('port')
    if port:
        try:
            port = int(port)
        except ValueError:
            raise MycnfError(f"section [{name}]: invalid port {port!r}")
    skip = items.get('ssl-skip-verification', items.get('tls-skip-verify', False))
    return MycnfSection(
        name=name,
        user=items.get('user') or '',
        password=items.get('password') or '',
        host=items.get('host') or '',
        port=port or 0,
        socket=items.get('socket') or '',
        ssl_ca=items.get('ssl-ca') or '',
        ssl_cert=items.get('ssl-cert') or '',
        ssl_key=items.get('ssl-key') or '',
        tls=items.get('tls') or '',
        tls_skip_verify=skip if isinstance(skip, bool) else _parse_bool(skip),
    )


class Mycnf:
    """Parsed option file; sections are resolved on lookup."""

    def __init__(self, sections):
        self._sections = sections

    @classmethod
    def from_string(cls, text, defaults=None, source='<string>'):
        parser = configparser.ConfigParser(allow_no_value=True, interpolation=None, strict=False)
        try:
            parser.read_string(text, source=source)
        except configparser.Error as e:
            raise MycnfError(f"failed to parse {source}: {e}")

        raw = {}
        for name in parser.sections():
            items = {}
            for key, value in parser.items(name):
                items[key.strip().lower().replace('_', '-')] = (
                    os.path.expandvars(value.strip()) if value is not None else None
                )
            raw[name] = items

        client = raw.setdefault(DEFAULT_SECTION, {})
        for key, value in (defaults or {}).items():
            if value not in (None, '') and not client.get(key):
                client[key] = value
        if not client.get('password') and os.environ.get(PASSWORD_ENV):
            client['password'] = os.environ[PASSWORD_ENV]

        sections = {}
        for name, items in raw.items():
            if name != DEFAULT_SECTION and name.startswith(DEFAULT_SECTION + '.'):
                merged = dict(client)
                merged.update({k: v for k, v in items.items() if v not in (None, '')})
                items = merged
            sections[name] = _section_from_items(name, items)
        return cls(sections)

    @classmethod
    def load(cls, path, defaults=None):
        """Read path; a missing file leaves only the defaults from flags and environment."""
        path = Path(path).expanduser()
        if not path.exists():
            logging.warning(f"MySQL option file {path} does not exist; using flag and environment defaults")
            return cls.from_string('', defaults, source=str(path))
        try:
            text = path.read_text()
        except OSError as e:
            raise MycnfError(f"failed to read {path}: {e}")
        mycnf = cls.from_string(text, defaults, source=str(path))
        logging.info(f"Loaded MySQL option file {path} with sections {mycnf.section_names()}")
        return mycnf

    def section_names(self):
        return list(self._sections)

    def section(self, name=DEFAULT_SECTION):
        section = self._sections.get(name or DEFAULT_SECTION)
        if section is None:
            raise MycnfError(f"could not find section [{name}]")
        return section

    def form_dsn(self, target='', section=DEFAULT_SECTION):
        return self.section(section).form_dsn(target)


def flag_defaults(address='', username='', tls_skip_verify=False):
    """Translate --mysqld.address / --mysqld.username into [client] defaults."""
    defaults = {}
    if address:
        if address.startswith(UNIX_PREFIX):
            defaults['socket'] = address[len(UNIX_PREFIX):]
        else:
            host, port = split_host_port(address)
            defaults['host'] = host
            defaults['port'] = str(port)
    if username:
        defaults['user'] = username
    if tls_skip_verify:
        defaults['ssl-skip-verification'] = 'true'
    return defaults
