"""Command line entry point."""
import logging
import os
import sys

import click
from click.core import ParameterSource

from . import __version__
from .args import BOOL, INT, Arg
from .config import EMPTY, Collector, Config, Reloader, merge
from .db import ConnectionManager
from .dsn import parse_dsn
from .errors import ConfigError, DSNError, MycnfError
from .exporter import session_statements
from .logconfig import LOG_LEVELS, parse_duration, setup_logging
from .mycnf import Mycnf, flag_defaults
from .scrapers import default_registry
from .server import load_web_config, serve
from .web import DATA_SOURCE_NAME_ENV, AppState, create_app

REGISTRY = default_registry()
REGISTRY.freeze()

_ARG_TYPES = {BOOL: click.BOOL, INT: click.INT}


def collect_param(scraper_name):
    return 'collect__' + scraper_name.replace('.', '__')


def collect_arg_param(scraper_name, arg_name):
    return collect_param(scraper_name) + '___' + arg_name


def collector_options(registry):
    """--collect.<name>/--no-collect.<name> and --collect.<name>.<arg> for every scraper."""
    def decorator(f):
        for scraper in reversed(registry.all()):
            for definition in reversed(getattr(scraper, 'arg_defs', ())):
                f = click.option(
                    f"--collect.{scraper.name}.{definition.name}",
                    collect_arg_param(scraper.name, definition.name),
                    type=_ARG_TYPES.get(definition.type, str),
                    default=definition.default,
                    show_default=True,
                    help=definition.help,
                )(f)
            f = click.option(
                f"--collect.{scraper.name}/--no-collect.{scraper.name}",
                collect_param(scraper.name),
                default=bool(scraper.default_enabled),
                show_default=True,
                help=scraper.help,
            )(f)
        return f
    return decorator


def flags_config(ctx, registry, params, collect_all=False):
    """The CLI layer: only flags given on the command line, plus --collect.all."""
    collectors = []
    for scraper in registry.all():
        key = collect_param(scraper.name)
        enabled = None
        if ctx.get_parameter_source(key) == ParameterSource.COMMANDLINE:
            enabled = params[key]
        elif collect_all:
            enabled = True
        args = []
        for definition in getattr(scraper, 'arg_defs', ()):
            arg_key = collect_arg_param(scraper.name, definition.name)
            if ctx.get_parameter_source(arg_key) == ParameterSource.COMMANDLINE:
                args.append(Arg(definition.name, params[arg_key]))
        if enabled is not None or args:
            collectors.append(Collector(scraper.name, enabled, tuple(args)))
    return Config(tuple(collectors)).validate()


def config_loader(registry, flags, config_file):
    def load():
        file_config = Config.from_file(config_file) if config_file else EMPTY
        layered = merge(flags, file_config)
        effective = merge(Config.from_registry(registry), layered)
        # Unknown scrapers and bad args fail the load, not the next scrape.
        registry.build(effective)
        logging.info(f"Enabled scrapers: {effective.enabled_names()}")
        return layered
    return load


def mycnf_loader(path, defaults):
    def load():
        return Mycnf.load(path, defaults)
    return load


@click.command(context_settings={'help_option_names': ['-h', '--help'], 'max_content_width': 120})
@click.version_option(version=__version__, prog_name='mysqld_exporter')
@click.option('--web.listen-address', 'listen_address', default=':9104', show_default=True,
              help='Address to listen on for web interface and telemetry.')
@click.option('--web.telemetry-path', 'telemetry_path', default='/metrics', show_default=True,
              help='Path under which to expose metrics.')
@click.option('--web.config.file', 'web_config_file', default='',
              help='Path to a web config file enabling TLS or basic authentication.')
@click.option('--web.workers', 'web_workers', type=int, default=None, help='Number of gunicorn workers.')
@click.option('--web.threads', 'web_threads', type=int, default=None, help='Threads per gunicorn worker.')
@click.option('--timeout-offset', 'timeout_offset', type=float, default=0.25, show_default=True,
              help='Offset to subtract from timeout in seconds.')
@click.option('--config.my-cnf', 'my_cnf', default=os.path.join('~', '.my.cnf'), show_default=True,
              help='Path to .my.cnf file to read MySQL credentials from.')
@click.option('--config.file', 'config_file', default='', help='Path to a YAML file selecting collectors.')
@click.option('--mysqld.address', 'mysqld_address', default='localhost:3306', show_default=True,
              help='Address to use for connecting to MySQL.')
@click.option('--mysqld.username', 'mysqld_username', default='', help='Username to use for connecting to MySQL.')
@click.option('--tls.insecure-skip-verify', 'tls_insecure_skip_verify', is_flag=True,
              help='Ignore certificate and server verification when using a tls connection.')
@click.option('--exporter.lock_wait_timeout', 'lock_wait_timeout', type=int, default=2, show_default=True,
              help='Set a lock_wait_timeout (in seconds) on the connection to avoid long metadata locking.')
@click.option('--exporter.log_slow_filter', 'log_slow_filter', is_flag=True,
              help='Add a log_slow_filter to avoid slow query logging of scrapes. NOTE: Not supported by Oracle MySQL.')
@click.option('--exporter.global-conn-pool', 'global_conn_pool', is_flag=True,
              help='Use a connection pool per DSN shared across scrapes.')
@click.option('--exporter.max-open-conns', 'max_open_conns', type=int, default=3, show_default=True,
              help='Maximum number of open connections to the database.')
@click.option('--exporter.max-idle-conns', 'max_idle_conns', type=int, default=3, show_default=True,
              help='Maximum number of connections in the idle connection pool.')
@click.option('--exporter.conn-max-lifetime', 'conn_max_lifetime', default='1m', show_default=True,
              help='Maximum amount of time a connection may be reused.')
@click.option('--collect.all', 'collect_all', is_flag=True, help='Collect all metrics.')
@click.option('--log.level', 'log_level', type=click.Choice(list(LOG_LEVELS)), default='info', show_default=True,
              help='Only log messages with the given severity or above.')
@click.option('--log.timezone', 'log_timezone', default='system', show_default=True,
              help="Timezone for log timestamps ('system' for the host zone).")
@collector_options(REGISTRY)
@click.pass_context
def main(ctx, **params):
    """Prometheus exporter for MySQL server metrics."""
    setup_logging(params['log_level'], params['log_timezone'])
    logging.info(f"Starting mysqld_exporter version {__version__}")

    try:
        max_lifetime = parse_duration(params['conn_max_lifetime'])
    except ValueError as e:
        logging.error(f"Invalid --exporter.conn-max-lifetime: {e}")
        sys.exit(1)

    try:
        flags = flags_config(ctx, REGISTRY, params, params['collect_all'])
        config = Reloader('config', config_loader(REGISTRY, flags, params['config_file']))
        config.reload()

        defaults = flag_defaults(params['mysqld_address'], params['mysqld_username'],
                                 params['tls_insecure_skip_verify'])
        mycnf = Reloader('mycnf', mycnf_loader(params['my_cnf'], defaults))
        if os.environ.get(DATA_SOURCE_NAME_ENV):
            dsn = parse_dsn(os.environ[DATA_SOURCE_NAME_ENV])
            logging.info(f"Using {DATA_SOURCE_NAME_ENV} {dsn.redacted()}; .my.cnf sections are not consulted")
        else:
            mycnf.reload()

        web_config = load_web_config(params['web_config_file'])
    except (ConfigError, MycnfError, DSNError) as e:
        logging.error(f"Error loading configuration: {e}")
        sys.exit(1)

    connections = ConnectionManager(
        global_pool=params['global_conn_pool'],
        max_open=params['max_open_conns'],
        max_idle=params['max_idle_conns'],
        max_lifetime=max_lifetime,
        session_statements=session_statements(params['lock_wait_timeout'], params['log_slow_filter']),
    )
    state = AppState(
        registry=REGISTRY,
        config=config,
        mycnf=mycnf,
        connections=connections,
        telemetry_path=params['telemetry_path'],
        timeout_offset=params['timeout_offset'],
        basic_auth_users=web_config.users,
    )
    try:
        serve(create_app(state), params['listen_address'], params['web_workers'], params['web_threads'],
              web_config.tls)
    finally:
        connections.close()


if __name__ == '__main__':
    main()
