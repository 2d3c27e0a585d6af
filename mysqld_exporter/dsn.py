"""Connection strings.

A DSN is written ``user:password@net(address)/dbname?param=value``, the form
used by DATA_SOURCE_NAME, and turned into pymysql.connect() keyword arguments.
Named TLS contexts (``tls=custom``) are looked up in a process-wide table.
"""
import logging
import re
import ssl
from dataclasses import dataclass, field, replace
from threading import Lock
from urllib.parse import parse_qsl, urlencode

from .errors import DSNError

DEFAULT_PORT = 3306
DEFAULT_HOST = 'localhost'
UNIX_PREFIX = 'unix://'

TLS_MODES = ('true', 'false', 'skip-verify', 'preferred')

_tls_configs = {}
_tls_lock = Lock()


def register_tls_config(name, context):
    if name in TLS_MODES:
        raise DSNError(f"TLS config name {name!r} is reserved")
    with _tls_lock:
        _tls_configs[name] = context


def get_tls_config(name):
    with _tls_lock:
        return _tls_configs.get(name)


def build_tls_context(ca='', cert='', key='', skip_verify=False):
    """SSLContext trusting the CA bundle, optionally presenting a client keypair."""
    try:
        context = ssl.create_default_context(cafile=ca or None)
        if cert or key:
            context.load_cert_chain(cert, key or None)
    except (OSError, ssl.SSLError) as e:
        raise DSNError(f"failed to load TLS material (ca={ca!r}, cert={cert!r}, key={key!r}): {e}")
    if skip_verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def split_host_port(target):
    """Split 'host[:port]' or '[v6addr]:port'; the port defaults to 3306."""
    if target.startswith('['):
        m = re.match(r'^\[([^\]]*)\](?::(.*))?$', target)
        if not m:
            raise DSNError(f"invalid target {target!r}")
        host, port = m.group(1), m.group(2)
    elif target.count(':') == 1:
        host, port = target.split(':')
    else:
        # Bare IPv6 addresses carry no port.
        host, port = target, None

    if port is None or port == '':
        port = DEFAULT_PORT
    else:
        if not port.isdigit() or int(port) > 65535:
            raise DSNError(f"invalid port {port!r} in target {target!r}")
        port = int(port)
    return host or DEFAULT_HOST, port


@dataclass(frozen=True)
class DSN:
    user: str = ''
    password: str = ''
    net: str = 'tcp'
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    socket: str = ''
    database: str = ''
    tls: str = ''
    params: tuple = field(default_factory=tuple)

    @property
    def address(self):
        if self.net == 'unix':
            return self.socket
        if ':' in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    def format(self, mask_password=False):
        userinfo = ''
        if self.user or self.password:
            userinfo = self.user
            if self.password:
                userinfo += ':' + ('***' if mask_password else self.password)
            userinfo += '@'
        query = []
        if self.tls:
            query.append(('tls', self.tls))
        query.extend(sorted(self.params))
        text = f"{userinfo}{self.net}({self.address})/{self.database}"
        if query:
            text += '?' + urlencode(query)
        return text

    def __str__(self):
        return self.format()

    def redacted(self):
        return self.format(mask_password=True)

    def with_params(self, **params):
        merged = dict(self.params)
        merged.update({k: str(v) for k, v in params.items()})
        return replace(self, params=tuple(sorted(merged.items())))

    def ssl_context(self):
        """SSLContext for the tls mode, or None for a plaintext connection."""
        mode = self.tls
        if not mode or mode == 'false':
            return None
        if mode == 'true':
            return ssl.create_default_context()
        if mode in ('skip-verify', 'preferred'):
            # pymysql falls back to plaintext when the server does not offer TLS.
            context = ssl.create_default_context()
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
            return context
        context = get_tls_config(mode)
        if context is None:
            raise DSNError(f"unknown TLS config {mode!r}")
        return context

    def connect_kwargs(self, connect_timeout=None, read_timeout=None):
        kwargs = {
            'user': self.user,
            'password': self.password,
            'charset': 'utf8mb4',
            'autocommit': True,
        }
        if self.database:
            kwargs['database'] = self.database
        if self.net == 'unix':
            kwargs['unix_socket'] = self.socket
        else:
            kwargs['host'] = self.host
            kwargs['port'] = self.port
        if connect_timeout:
            kwargs['connect_timeout'] = connect_timeout
        if read_timeout:
            kwargs['read_timeout'] = read_timeout
            kwargs['write_timeout'] = read_timeout
        context = self.ssl_context()
        if context is not None:
            kwargs['ssl'] = context
        return kwargs


def parse_dsn(text):
    """Parse ``[user[:password]@][net[(addr)]]/dbname[?params]``."""
    slash = text.rfind('/')
    if slash < 0:
        raise DSNError("invalid DSN: missing the slash separating the database name")
    head, tail = text[:slash], text[slash + 1:]
    database, _, query = tail.partition('?')

    user = password = ''
    at = head.rfind('@')
    if at >= 0:
        userinfo, head = head[:at], head[at + 1:]
        user, _, password = userinfo.partition(':')

    net, address = 'tcp', ''
    if head:
        m = re.match(r'^([a-z]+)(?:\((.*)\))?$', head)
        if not m:
            raise DSNError(f"invalid DSN: bad network address {head!r}")
        net, address = m.group(1), m.group(2) or ''
    if net not in ('tcp', 'unix'):
        raise DSNError(f"invalid DSN: unsupported network {net!r}")

    params = dict(parse_qsl(query, keep_blank_values=True))
    tls = params.pop('tls', '')
    if net == 'unix':
        if not address:
            raise DSNError("invalid DSN: unix network requires a socket path")
        return DSN(user, password, 'unix', socket=address, database=database, tls=tls,
                   params=tuple(sorted(params.items())))
    host, port = split_host_port(address) if address else (DEFAULT_HOST, DEFAULT_PORT)
    dsn = DSN(user, password, 'tcp', host=host, port=port, database=database, tls=tls,
              params=tuple(sorted(params.items())))
    logging.debug(f"Parsed DSN: {dsn.redacted()}")
    return dsn


def dsn_for_target(base, target):
    """Point base at target while keeping credentials and TLS settings."""
    if not target:
        return base
    if target.startswith(UNIX_PREFIX):
        return replace(base, net='unix', socket=target[len(UNIX_PREFIX):], host=DEFAULT_HOST, port=DEFAULT_PORT)
    host, port = split_host_port(target)
    return replace(base, net='tcp', host=host, port=port, socket='')
