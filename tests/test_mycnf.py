import pytest

from mysqld_exporter.dsn import DSN, dsn_for_target, parse_dsn, split_host_port
from mysqld_exporter.errors import DSNError, MycnfError
from mysqld_exporter.mycnf import PASSWORD_ENV, Mycnf, flag_defaults


@pytest.fixture(autouse=True)
def no_password_env(monkeypatch):
    monkeypatch.delenv(PASSWORD_ENV, raising=False)


def test_client_section_defaults_to_tcp_localhost():
    mycnf = Mycnf.from_string("[client]\nuser = root\npassword = abc123\n")
    assert str(mycnf.form_dsn()) == 'root:abc123@tcp(localhost:3306)/'


def test_socket_wins_over_host_and_port():
    mycnf = Mycnf.from_string(
        "[client]\nuser=user\npassword=pass\nhost=1.2.3.4\nport=3307\nsocket=/var/lib/mysql/mysql.sock\n"
    )
    assert str(mycnf.form_dsn()) == 'user:pass@unix(/var/lib/mysql/mysql.sock)/'


def test_host_and_port():
    mycnf = Mycnf.from_string("[client]\nuser=user\npassword=pass\nhost=1.2.3.4\nport=3307\n")
    assert str(mycnf.form_dsn()) == 'user:pass@tcp(1.2.3.4:3307)/'


@pytest.mark.parametrize('target,expected', [
    ('db1', 'root:pw@tcp(db1:3306)/'),
    ('db1:3307', 'root:pw@tcp(db1:3307)/'),
    ('db1:0', 'root:pw@tcp(db1:0)/'),
    ('[::1]:3307', 'root:pw@tcp([::1]:3307)/'),
    ('unix:///a/b', 'root:pw@unix(/a/b)/'),
])
def test_target_overrides_address(target, expected):
    mycnf = Mycnf.from_string("[client]\nuser=root\npassword=pw\nsocket=/tmp/mysql.sock\n")
    assert str(mycnf.form_dsn(target)) == expected


def test_form_dsn_is_deterministic():
    mycnf = Mycnf.from_string("[client]\nuser=root\npassword=pw\n")
    assert mycnf.form_dsn('db:3306') == mycnf.form_dsn('db:3306')


def test_alias_section_inherits_from_client():
    mycnf = Mycnf.from_string(
        "[client]\nuser=root\npassword=pw\nport=3307\n\n[client.reporting]\nuser=reporter\n"
    )
    section = mycnf.section('client.reporting')
    assert section.user == 'reporter'
    assert section.password == 'pw'
    assert str(section.form_dsn()) == 'reporter:pw@tcp(localhost:3307)/'


def test_unknown_section():
    mycnf = Mycnf.from_string("[client]\nuser=root\n")
    with pytest.raises(MycnfError, match=r'could not find section \[nope\]'):
        mycnf.section('nope')


def test_section_without_user():
    mycnf = Mycnf.from_string("[client]\npassword=pw\n")
    with pytest.raises(MycnfError, match='no configuration found'):
        mycnf.form_dsn()


def test_bare_boolean_keys_are_accepted():
    mycnf = Mycnf.from_string("[client]\nuser=root\nskip-ssl\nno-auto-rehash\n")
    assert mycnf.section().user == 'root'


def test_skip_verification_flag():
    mycnf = Mycnf.from_string("[client]\nuser=root\nssl-skip-verification\n")
    dsn = mycnf.form_dsn()
    assert dsn.tls == 'skip-verify'
    assert str(dsn) == 'root@tcp(localhost:3306)/?tls=skip-verify'


def test_environment_variables_are_expanded(monkeypatch):
    monkeypatch.setenv('MYCNF_TEST_PASSWORD', 's3cret')
    mycnf = Mycnf.from_string("[client]\nuser=root\npassword=${MYCNF_TEST_PASSWORD}\n")
    assert mycnf.section().password == 's3cret'


def test_password_from_environment(monkeypatch):
    monkeypatch.setenv(PASSWORD_ENV, 'fromenv')
    mycnf = Mycnf.from_string("[client]\nuser=root\n")
    assert str(mycnf.form_dsn()) == 'root:fromenv@tcp(localhost:3306)/'


def test_flag_defaults_fill_missing_client_values():
    defaults = flag_defaults('db:3307', 'exporter')
    mycnf = Mycnf.from_string('', defaults)
    assert str(mycnf.form_dsn()) == 'exporter@tcp(db:3307)/'


def test_file_values_win_over_flag_defaults():
    mycnf = Mycnf.from_string("[client]\nuser=root\nhost=filehost\n", flag_defaults('db:3307', 'exporter'))
    section = mycnf.section()
    assert section.user == 'root'
    assert section.host == 'filehost'
    assert section.port == 3307


def test_load_missing_file_uses_defaults(tmp_path):
    mycnf = Mycnf.load(tmp_path / 'missing.cnf', flag_defaults('localhost:3306', 'root'))
    assert mycnf.section_names() == ['client']
    assert str(mycnf.form_dsn()) == 'root@tcp(localhost:3306)/'


def test_load_file(tmp_path):
    path = tmp_path / '.my.cnf'
    path.write_text("[client]\nuser=root\npassword=pw\n[client.b]\nhost=other\n")
    mycnf = Mycnf.load(path)
    assert sorted(mycnf.section_names()) == ['client', 'client.b']
    assert str(mycnf.form_dsn('', 'client.b')) == 'root:pw@tcp(other:3306)/'


def test_invalid_port():
    with pytest.raises(MycnfError, match='invalid port'):
        Mycnf.from_string("[client]\nuser=root\nport=abc\n")


def test_split_host_port():
    assert split_host_port('db') == ('db', 3306)
    assert split_host_port('db:3307') == ('db', 3307)
    assert split_host_port('[fe80::1]:3307') == ('fe80::1', 3307)
    assert split_host_port('fe80::1') == ('fe80::1', 3306)
    with pytest.raises(DSNError):
        split_host_port('db:99999')
    with pytest.raises(DSNError):
        split_host_port('db:port')


def test_parse_dsn():
    dsn = parse_dsn('exporter:pw@tcp(db:3307)/?tls=true')
    assert (dsn.user, dsn.password, dsn.host, dsn.port, dsn.tls) == ('exporter', 'pw', 'db', 3307, 'true')
    assert str(dsn) == 'exporter:pw@tcp(db:3307)/?tls=true'


def test_parse_dsn_unix():
    dsn = parse_dsn('root@unix(/run/mysqld/mysqld.sock)/')
    assert dsn.net == 'unix'
    assert dsn.address == '/run/mysqld/mysqld.sock'


def test_parse_dsn_rejects_garbage():
    with pytest.raises(DSNError):
        parse_dsn('not a dsn')
    with pytest.raises(DSNError):
        parse_dsn('root@udp(db)/')


def test_dsn_for_target_keeps_credentials():
    base = parse_dsn('u:p@tcp(localhost:3306)/?tls=preferred')
    assert str(dsn_for_target(base, 'other:3308')) == 'u:p@tcp(other:3308)/?tls=preferred'
    assert str(dsn_for_target(base, 'unix:///tmp/m.sock')) == 'u:p@unix(/tmp/m.sock)/?tls=preferred'


def test_redacted_hides_password():
    assert DSN('root', 'secret').redacted() == 'root:***@tcp(localhost:3306)/'


def test_connect_kwargs():
    kwargs = DSN('root', 'pw', 'tcp', host='db', port=3307).connect_kwargs(connect_timeout=5, read_timeout=3)
    assert kwargs['host'] == 'db'
    assert kwargs['port'] == 3307
    assert kwargs['connect_timeout'] == 5
    assert kwargs['read_timeout'] == 3
    assert 'ssl' not in kwargs

    unix = DSN('root', '', 'unix', socket='/tmp/m.sock').connect_kwargs()
    assert unix['unix_socket'] == '/tmp/m.sock'
    assert 'host' not in unix


def test_skip_verify_context():
    kwargs = DSN('root', 'pw', tls='skip-verify').connect_kwargs()
    assert kwargs['ssl'].check_hostname is False


def test_unknown_tls_config():
    with pytest.raises(DSNError, match='unknown TLS config'):
        DSN('root', 'pw', tls='custom-missing').connect_kwargs()
