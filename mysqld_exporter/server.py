"""Serving the Flask app with gunicorn, plus the web config file."""
import logging
import ssl
from dataclasses import dataclass, field
from pathlib import Path

import bcrypt
import yaml
from gunicorn.app.base import BaseApplication

import gunicorn_config

from .errors import ConfigError

WEB_CONFIG_KEYS = ('tls_server_config', 'basic_auth_users', 'http_server_config')
BCRYPT_PREFIXES = ('$2a$', '$2b$', '$2y$')


@dataclass
class WebConfig:
    """gunicorn TLS settings and the bcrypt hashes of the basic auth users."""
    tls: dict = field(default_factory=dict)
    users: dict = field(default_factory=dict)


def gunicorn_bind(listen_address):
    """':9104' -> '0.0.0.0:9104'; anything else is passed through."""
    if listen_address.startswith(':'):
        return '0.0.0.0' + listen_address
    return listen_address


def tls_options(tls):
    if not tls:
        return {}
    cert_file, key_file = tls.get('cert_file'), tls.get('key_file')
    if not cert_file or not key_file:
        raise ConfigError("tls_server_config requires both cert_file and key_file")
    options = {'certfile': cert_file, 'keyfile': key_file}
    for name in (cert_file, key_file):
        if not Path(name).is_file():
            raise ConfigError(f"TLS file {name} does not exist")
    if tls.get('client_ca_file'):
        options['ca_certs'] = tls['client_ca_file']
        options['cert_reqs'] = ssl.CERT_REQUIRED
    logging.info(f"TLS enabled with certificate {cert_file}")
    return options


def basic_auth_users(path, users):
    if not users:
        return {}
    if not isinstance(users, dict):
        raise ConfigError(f"basic_auth_users in {path} must map user names to bcrypt hashes")
    hashes = {}
    for user, hashed in users.items():
        hashed = str(hashed or '')
        if not hashed.startswith(BCRYPT_PREFIXES):
            raise ConfigError(f"basic_auth_users: password of {user} is not a bcrypt hash")
        hashes[str(user)] = hashed
    logging.info(f"HTTP basic authentication is enabled for {len(hashes)} users")
    return hashes


def load_web_config(path):
    """Read the web config YAML file (tls_server_config, basic_auth_users)."""
    if not path:
        return WebConfig()
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read web config {path}: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"web config {path} must be a mapping")
    unknown = set(data) - set(WEB_CONFIG_KEYS)
    if unknown:
        raise ConfigError(f"unknown web config keys: {sorted(unknown)}")
    return WebConfig(
        tls=tls_options(data.get('tls_server_config') or {}),
        users=basic_auth_users(path, data.get('basic_auth_users')),
    )


def check_password(users, username, password):
    """True when password matches the bcrypt hash stored for username."""
    hashed = users.get(username)
    if hashed is None or password is None:
        return False
    # $2y$ (htpasswd) and $2b$ hashes are computed the same way.
    if hashed.startswith('$2y$'):
        hashed = '$2b$' + hashed[4:]
    try:
        return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))
    except ValueError:
        logging.error(f"Invalid bcrypt hash configured for user {username}")
        return False


def default_options():
    """Settings declared in gunicorn_config.py."""
    return {k: v for k, v in vars(gunicorn_config).items() if not k.startswith('_')}


class ExporterApplication(BaseApplication):
    def __init__(self, app, options=None):
        self.options = options or {}
        self.application = app
        super().__init__()

    def load_config(self):
        config = {key: value for key, value in self.options.items()
                  if key in self.cfg.settings and value is not None}
        for key, value in config.items():
            self.cfg.set(key.lower(), value)

    def load(self):
        return self.application


def serve(app, listen_address, workers=None, threads=None, tls=None):
    options = default_options()
    options['bind'] = gunicorn_bind(listen_address)
    if workers:
        options['workers'] = workers
    if threads:
        options['threads'] = threads
    options.update(tls or {})
    logging.info(f"Listening on {options['bind']} with {options.get('workers')} workers")
    ExporterApplication(app, options).run()
