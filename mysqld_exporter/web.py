"""HTTP endpoints: landing page, /metrics, /probe and POST /-/reload."""
import gzip
import logging
import math
import os
import platform
import time
from dataclasses import dataclass, field
from threading import Lock

from flask import Flask, Response, request
from prometheus_client import REGISTRY, CollectorRegistry, Gauge, generate_latest

from . import __version__
from .config import Config, merge
from .dsn import dsn_for_target, parse_dsn
from .errors import ConfigError, DSNError, MycnfError
from .exporter import EngineMetrics, Exporter
from .metrics import DESCRIPTORS, GAUGE, MetricSink, SinkCollector
from .mycnf import DEFAULT_SECTION
from .scrapers.custom_query import RESOLUTION_SCRAPERS
from .server import check_password

CONTENT_TYPE = 'text/plain; version=0.0.4; charset=utf-8; escaping=underscores'
TIMEOUT_HEADER = 'X-Prometheus-Scrape-Timeout-Seconds'
DATA_SOURCE_NAME_ENV = 'DATA_SOURCE_NAME'
AUTH_CHALLENGE = 'Basic realm="mysqld_exporter", charset="UTF-8"'

BUILD_INFO = Gauge(
    'mysqld_exporter_build_info',
    'A metric with a constant 1 value labeled by version and pyversion.',
    ['version', 'pyversion'],
)

PROBE_SUCCESS = DESCRIPTORS.get('probe_success', 'Whether the probe of the target succeeded.', (), GAUGE)
PROBE_DURATION = DESCRIPTORS.get('probe_duration_seconds', 'Time the probe took, in seconds.', (), GAUGE)

LANDING_PAGE = """<html>
<head><title>MySQLd Exporter</title></head>
<body>
<h1>MySQLd Exporter</h1>
<p><a href="{path}">Metrics</a></p>
<p><a href="/probe?target=localhost:3306">Probe localhost:3306</a></p>
</body>
</html>
"""


@dataclass
class AppState:
    """Everything the handlers share across requests.

    ``config`` and ``mycnf`` are Reloaders; each request reads whatever they
    currently publish.
    """
    registry: object
    config: object
    mycnf: object
    connections: object
    telemetry_path: str = '/metrics'
    timeout_offset: float = 0.25
    data_source_name: str = field(default_factory=lambda: os.environ.get(DATA_SOURCE_NAME_ENV, ''))
    metrics_engine: EngineMetrics = field(default_factory=EngineMetrics)
    probe_engine: EngineMetrics = field(default_factory=EngineMetrics)
    basic_auth_users: dict = field(default_factory=dict)
    # One scrape at a time per custom query resolution (collect[]=custom_query.hr and so on).
    resolution_locks: dict = field(default_factory=lambda: {s.name: Lock() for s in RESOLUTION_SCRAPERS})

    def effective_config(self):
        return merge(Config.from_registry(self.registry), self.config.current())


def make_text_response(body_text, status=200, content_type=CONTENT_TYPE):
    """Create a text/plain response, gzip-compressed when the client accepts it."""
    body_bytes = body_text.encode('utf-8') if isinstance(body_text, str) else body_text

    accept_enc = request.headers.get('Accept-Encoding', '') or ''
    logging.debug(f"Client Accept-Encoding header: '{accept_enc}'")
    if 'gzip' in accept_enc.lower():
        compressed = gzip.compress(body_bytes)
        logging.debug(f"Compressed response: {len(body_bytes)} -> {len(compressed)} bytes")
        resp = Response(compressed, status=status)
        resp.headers['Content-Encoding'] = 'gzip'
        resp.headers['Content-Type'] = content_type
        resp.headers['Content-Length'] = str(len(compressed))
        return resp

    resp = Response(body_bytes, status=status)
    resp.headers['Content-Type'] = content_type
    resp.headers['Content-Length'] = str(len(body_bytes))
    return resp


def scrape_timeout(header_value, offset):
    """Seconds the scrape may take, from the Prometheus timeout header, or None."""
    if not header_value:
        return None
    try:
        timeout = float(header_value)
    except ValueError:
        logging.error(f"Failed to parse timeout from Prometheus header: {header_value!r}")
        return None
    if not math.isfinite(timeout):
        logging.error(f"Ignoring non-finite timeout from Prometheus header: {header_value!r}")
        return None
    if offset >= timeout:
        logging.error(f"Timeout offset ({offset}) should be lower than prometheus scrape timeout ({timeout})")
        return timeout
    return timeout - offset


def requested_collectors(state, config):
    """The collect[] filter of the request; (names, None) or (None, error message)."""
    names = request.args.getlist('collect[]')
    if not names:
        return None, None
    enabled = set(config.enabled_names())
    for name in names:
        if state.registry.lookup(name) is None:
            return None, f"unknown collector: {name}"
        if name not in enabled:
            return None, f"collector is not enabled: {name}"
    logging.debug(f"Collect query: {names}")
    return set(names), None


def acquire_resolutions(state, filter_set):
    """Take the locks of the custom query resolutions in collect[]; None if one is already held."""
    acquired = []
    for name in sorted(filter_set or ()):
        lock = state.resolution_locks.get(name)
        if lock is None:
            continue
        if not lock.acquire(blocking=False):
            logging.warning(f"Received {name} request while previous still in progress: "
                            "returning 429 Too Many Requests")
            for held in acquired:
                held.release()
            return None
        acquired.append(lock)
    return acquired


def render(*sinks, include_default=False):
    registry = CollectorRegistry(auto_describe=False)
    registry.register(SinkCollector(*sinks))
    output = generate_latest(registry)
    if include_default:
        output += generate_latest(REGISTRY)
    return output


def prepare_scrape(state):
    """(config, collect[] filter) for this request, or an error response."""
    config = state.effective_config()
    filter_set, error = requested_collectors(state, config)
    if error:
        logging.warning(error)
        return None, make_text_response(error, status=400)
    return (config, filter_set), None


def run_scrape(state, dsn, plan, engine, target=''):
    """Build fresh scrapers and scrape dsn; returns ((up, sink, engine_sink), None) or (None, error response)."""
    config, filter_set = plan
    try:
        scrapers = state.registry.build(config)
    except ConfigError as e:
        logging.error(f"Cannot build scrapers: {e}")
        return None, make_text_response(str(e), status=500)

    timeout = scrape_timeout(request.headers.get(TIMEOUT_HEADER), state.timeout_offset)
    sink, engine_sink = MetricSink(), MetricSink()
    exporter = Exporter(dsn, scrapers, state.connections, engine, timeout=timeout,
                        target=target, filter_set=filter_set)
    locks = acquire_resolutions(state, filter_set)
    if locks is None:
        return None, make_text_response("429 Too Many Requests", status=429)
    try:
        up = exporter.scrape(sink, engine_sink)
    finally:
        for lock in locks:
            lock.release()
    return (up, sink, engine_sink), None


def create_app(state):
    app = Flask(__name__)
    app.config['EXPORTER_STATE'] = state
    BUILD_INFO.labels(__version__, platform.python_version()).set(1)

    if state.basic_auth_users:
        @app.before_request
        def require_basic_auth():
            auth = request.authorization
            if auth is not None and auth.type == 'basic' and check_password(
                    state.basic_auth_users, auth.username, auth.password):
                return None
            logging.debug(f"Unauthorized request for {request.path} from {request.remote_addr}")
            response = make_text_response("Unauthorized", status=401)
            response.headers['WWW-Authenticate'] = AUTH_CHALLENGE
            return response

    @app.route('/')
    def index():
        return Response(LANDING_PAGE.format(path=state.telemetry_path), mimetype='text/html')

    def metrics():
        plan, error_response = prepare_scrape(state)
        if error_response is not None:
            return error_response
        try:
            if state.data_source_name:
                dsn = parse_dsn(state.data_source_name)
            else:
                dsn = state.mycnf.current().form_dsn('', DEFAULT_SECTION)
        except (MycnfError, DSNError) as e:
            logging.error(f"Error forming dsn: {e}")
            return make_text_response(f"Error forming dsn: {e}", status=400)

        result, error_response = run_scrape(state, dsn, plan, state.metrics_engine)
        if error_response is not None:
            return error_response
        _, sink, engine_sink = result
        return make_text_response(render(sink, engine_sink, include_default=True))

    app.add_url_rule(state.telemetry_path, 'metrics', metrics)

    @app.route('/probe')
    def probe():
        start = time.monotonic()
        target = request.args.get('target', '')
        if not target:
            return make_text_response("target is required", status=400)
        auth_module = request.args.get('auth_module') or DEFAULT_SECTION
        plan, error_response = prepare_scrape(state)
        if error_response is not None:
            return error_response

        if state.data_source_name:
            try:
                dsn = dsn_for_target(parse_dsn(state.data_source_name), target)
            except DSNError as e:
                logging.error(f"Error forming dsn for {target}: {e}")
                return make_text_response(f"Error forming dsn for {target}", status=400)
        else:
            try:
                section = state.mycnf.current().section(auth_module)
            except MycnfError as e:
                logging.error(f"Error parsing config section [{auth_module}]: {e}")
                return make_text_response(f"Error parsing config section [{auth_module}]", status=400)
            try:
                dsn = section.form_dsn(target)
            except (MycnfError, DSNError) as e:
                logging.error(f"Error forming dsn for {target}: {e}")
                return make_text_response(f"Error forming dsn for {target}", status=400)

        result, error_response = run_scrape(state, dsn, plan, state.probe_engine, target=target)
        if error_response is not None:
            return error_response
        up, sink, engine_sink = result

        probe_sink = MetricSink()
        probe_sink.emit(PROBE_SUCCESS, 1 if up else 0)
        probe_sink.emit(PROBE_DURATION, time.monotonic() - start)
        return make_text_response(render(sink, engine_sink, probe_sink))

    @app.route('/-/reload', methods=['POST'])
    def reload():
        try:
            state.config.reload()
            state.mycnf.reload()
        except ConfigError as e:
            return make_text_response(f"failed to reload config: {e}", status=500)
        return make_text_response("OK")

    return app
