import pytest
from click.testing import CliRunner

from mysqld_exporter import __version__
from mysqld_exporter.args import Arg
from mysqld_exporter.cli import REGISTRY, collect_arg_param, collect_param, main

MYCNF = "[client]\nuser = exporter\npassword = pw\n"


@pytest.fixture
def served(monkeypatch):
    calls = []

    def fake_serve(app, listen_address, workers=None, threads=None, web_config=None):
        calls.append({
            'state': app.config['EXPORTER_STATE'],
            'listen_address': listen_address,
            'workers': workers,
            'threads': threads,
            'web_config': web_config,
        })

    monkeypatch.setattr('mysqld_exporter.cli.serve', fake_serve)
    monkeypatch.delenv('DATA_SOURCE_NAME', raising=False)
    return calls


@pytest.fixture
def my_cnf(tmp_path):
    path = tmp_path / '.my.cnf'
    path.write_text(MYCNF)
    return path


def invoke(my_cnf, *args):
    base = ['--config.my-cnf', str(my_cnf), '--log.timezone', 'UTC']
    return CliRunner().invoke(main, base + list(args))


def test_param_names():
    assert collect_param('info_schema.processlist') == 'collect__info_schema__processlist'
    assert collect_arg_param('info_schema.processlist', 'min_time') == 'collect__info_schema__processlist___min_time'


def test_version():
    result = CliRunner().invoke(main, ['--version'])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_defaults(served, my_cnf):
    result = invoke(my_cnf)
    assert result.exit_code == 0, result.output
    call, = served
    state = call['state']
    assert call['listen_address'] == ':9104'
    assert call['web_config'] == {}
    assert state.config.current().collectors == ()
    assert str(state.mycnf.current().form_dsn()) == 'exporter:pw@tcp(localhost:3306)/'
    assert state.data_source_name == ''
    assert state.registry is REGISTRY


def test_only_explicit_flags_enter_the_flag_layer(served, my_cnf):
    result = invoke(
        my_cnf,
        '--no-collect.global_status',
        '--collect.info_schema.processlist',
        '--collect.info_schema.processlist.min_time', '5',
        '--collect.heartbeat.utc', 'true',
        '--web.listen-address', ':9200',
    )
    assert result.exit_code == 0, result.output
    state = served[0]['state']
    layer = state.config.current()
    assert layer.collector('global_status').enabled is False
    processlist = layer.collector('info_schema.processlist')
    assert processlist.enabled is True
    assert processlist.args == (Arg('min_time', 5),)
    heartbeat = layer.collector('heartbeat')
    assert heartbeat.enabled is None
    assert heartbeat.args == (Arg('utc', True),)
    assert layer.collector('global_variables') is None

    enabled = state.effective_config().enabled_names()
    assert 'info_schema.processlist' in enabled
    assert 'global_status' not in enabled
    assert 'global_variables' in enabled
    assert served[0]['listen_address'] == ':9200'


def test_collect_all(served, my_cnf):
    result = invoke(my_cnf, '--collect.all', '--no-collect.heartbeat')
    assert result.exit_code == 0, result.output
    enabled = served[0]['state'].effective_config().enabled_names()
    assert set(enabled) == set(REGISTRY.names()) - {'heartbeat'}


def test_config_file_wins_over_flags(served, my_cnf, tmp_path):
    config_file = tmp_path / 'collectors.yml'
    config_file.write_text(
        "collect:\n"
        "  - name: info_schema.processlist\n"
        "    enabled: false\n"
        "    args:\n"
        "      - name: min_time\n"
        "        value: 30\n"
    )
    result = invoke(my_cnf, '--config.file', str(config_file),
                    '--collect.info_schema.processlist', '--collect.info_schema.processlist.min_time', '5')
    assert result.exit_code == 0, result.output
    processlist = served[0]['state'].config.current().collector('info_schema.processlist')
    assert processlist.enabled is False
    assert processlist.args == (Arg('min_time', 30),)


def test_config_file_with_unknown_scraper(served, my_cnf, tmp_path):
    config_file = tmp_path / 'collectors.yml'
    config_file.write_text("collect:\n  - name: nope\n    enabled: true\n")
    result = invoke(my_cnf, '--config.file', str(config_file))
    assert result.exit_code == 1
    assert served == []


def test_config_file_with_bad_arg_type(served, my_cnf, tmp_path):
    config_file = tmp_path / 'collectors.yml'
    config_file.write_text(
        "collect:\n  - name: info_schema.processlist\n    enabled: true\n    args:\n      - name: min_time\n        value: 'soon'\n"
    )
    result = invoke(my_cnf, '--config.file', str(config_file))
    assert result.exit_code == 1


def test_section_without_user_still_loads(served, tmp_path):
    empty = tmp_path / 'empty.cnf'
    empty.write_text("[client]\npassword = pw\n")
    result = invoke(empty)
    assert result.exit_code == 0
    # A section without a user only fails when a DSN is formed.
    assert served[0]['state'].mycnf.current().section().user == ''


def test_username_flag_fills_missing_user(served, tmp_path):
    cnf = tmp_path / 'partial.cnf'
    cnf.write_text("[client]\npassword = pw\n")
    result = invoke(cnf, '--mysqld.username', 'monitor', '--mysqld.address', 'db:3307')
    assert result.exit_code == 0, result.output
    assert str(served[0]['state'].mycnf.current().form_dsn()) == 'monitor:pw@tcp(db:3307)/'


def test_data_source_name_skips_mycnf(served, my_cnf, monkeypatch):
    monkeypatch.setenv('DATA_SOURCE_NAME', 'u:p@tcp(db:3306)/')
    result = invoke(my_cnf)
    assert result.exit_code == 0, result.output
    state = served[0]['state']
    assert state.data_source_name == 'u:p@tcp(db:3306)/'
    assert state.mycnf.current() is None


def test_bad_data_source_name(served, my_cnf, monkeypatch):
    monkeypatch.setenv('DATA_SOURCE_NAME', 'not a dsn')
    result = invoke(my_cnf)
    assert result.exit_code == 1
    assert served == []


def test_bad_conn_max_lifetime(served, my_cnf):
    result = invoke(my_cnf, '--exporter.conn-max-lifetime', 'soon')
    assert result.exit_code == 1


def test_web_config_basic_auth_users(served, my_cnf, tmp_path):
    web_config = tmp_path / 'web.yml'
    web_config.write_text("basic_auth_users:\n  admin: '$2y$10$abcdefghijklmnopqrstuv'\n")
    result = invoke(my_cnf, '--web.config.file', str(web_config))
    assert result.exit_code == 0, result.output
    assert served[0]['state'].basic_auth_users == {'admin': '$2y$10$abcdefghijklmnopqrstuv'}
    assert served[0]['web_config'] == {}


def test_web_config_with_plain_password_is_refused(served, my_cnf, tmp_path):
    web_config = tmp_path / 'web.yml'
    web_config.write_text("basic_auth_users:\n  admin: hunter2\n")
    result = invoke(my_cnf, '--web.config.file', str(web_config))
    assert result.exit_code == 1
    assert served == []


def test_web_config_tls(served, my_cnf, tmp_path):
    cert, key = tmp_path / 'server.crt', tmp_path / 'server.key'
    cert.write_text('cert')
    key.write_text('key')
    web_config = tmp_path / 'web.yml'
    web_config.write_text(f"tls_server_config:\n  cert_file: {cert}\n  key_file: {key}\n")
    result = invoke(my_cnf, '--web.config.file', str(web_config))
    assert result.exit_code == 0, result.output
    assert served[0]['web_config'] == {'certfile': str(cert), 'keyfile': str(key)}
