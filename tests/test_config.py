import pytest
from prometheus_client import REGISTRY

from mysqld_exporter.args import Arg
from mysqld_exporter.config import EMPTY, Collector, Config, Reloader, merge
from mysqld_exporter.errors import ConfigError, MycnfError
from mysqld_exporter.logconfig import parse_duration
from mysqld_exporter.registry import Registry
from test_registry import Plain, WithArgs

CONFIG_YAML = """
collect:
  - name: with_args
    enabled: true
    args:
      - name: limit
        value: 5
      - name: schema
        value: app
  - name: plain
    enabled: false
"""


def test_from_yaml():
    config = Config.from_yaml(CONFIG_YAML)
    assert config.enabled_names() == ['with_args']
    entry = config.collector('with_args')
    assert entry.arg('limit') == Arg('limit', 5)
    assert entry.arg('schema').value == 'app'
    assert config.collector('plain').enabled is False


def test_from_yaml_empty_document():
    assert Config.from_yaml('') == EMPTY


def test_from_yaml_rejects_unknown_keys():
    with pytest.raises(ConfigError, match='unknown config keys'):
        Config.from_yaml('collectors: []\n')


def test_from_yaml_rejects_bad_yaml():
    with pytest.raises(ConfigError, match='invalid YAML'):
        Config.from_yaml('collect: [\n')


def test_validate_rejects_non_scalar_arg():
    text = "collect:\n  - name: with_args\n    args:\n      - name: limit\n        value: [1, 2]\n"
    with pytest.raises(ConfigError, match='must be a bool, int or string'):
        Config.from_yaml(text)


def test_validate_rejects_duplicates():
    text = "collect:\n  - name: plain\n  - name: plain\n"
    with pytest.raises(ConfigError, match='duplicate collector plain'):
        Config.from_yaml(text)


def test_validate_rejects_non_bool_enabled():
    with pytest.raises(ConfigError, match='enabled must be a bool'):
        Config.from_yaml("collect:\n  - name: plain\n    enabled: 'yes please'\n")


def test_from_file(tmp_path):
    path = tmp_path / 'config.yml'
    path.write_text(CONFIG_YAML)
    assert Config.from_file(path).enabled_names() == ['with_args']


def test_from_file_missing(tmp_path):
    with pytest.raises(ConfigError, match='cannot read config file'):
        Config.from_file(tmp_path / 'missing.yml')


def test_merge_with_empty_is_identity():
    config = Config.from_yaml(CONFIG_YAML)
    assert merge(config, EMPTY) == config
    assert merge(EMPTY, config) == config


def test_later_layer_wins():
    flags = Config((Collector('with_args', False, (Arg('limit', 1), Arg('schema', 'a'))),))
    file_config = Config((Collector('with_args', True, (Arg('limit', 2),)),))
    entry = merge(flags, file_config).collector('with_args')
    assert entry.enabled is True
    assert entry.arg('limit').value == 2
    assert entry.arg('schema').value == 'a'


def test_unset_enabled_keeps_lower_layer():
    flags = Config((Collector('plain', True),))
    file_config = Config((Collector('plain', None, ()),))
    assert merge(flags, file_config).collector('plain').enabled is True


def test_merge_is_associative():
    a = Config((Collector('plain', True),))
    b = Config((Collector('with_args', True, (Arg('limit', 2),)),))
    c = Config((Collector('plain', False),))
    assert merge(merge(a, b), c) == merge(a, merge(b, c))


def test_from_registry_layer():
    registry = Registry([Plain, WithArgs])
    config = Config.from_registry(registry)
    assert config.enabled_names() == ['plain']
    effective = merge(config, Config((Collector('with_args', True),)))
    assert effective.enabled_names() == ['plain', 'with_args']


def test_reloader_publishes_and_sets_gauges():
    loads = iter([1, 2])
    reloader = Reloader('unit', lambda: next(loads))
    assert reloader.current() is None
    assert reloader.reload() == 1
    assert reloader.reload() == 2
    assert reloader.current() == 2
    assert REGISTRY.get_sample_value('mysqld_exporter_config_last_reload_successful', {'type': 'unit'}) == 1
    assert REGISTRY.get_sample_value(
        'mysqld_exporter_config_last_reload_success_timestamp_seconds', {'type': 'unit'}) > 0


def test_reloader_keeps_previous_on_failure():
    def fail():
        raise MycnfError('could not find section [client]')

    reloader = Reloader('unit_failing', fail, initial='old')
    with pytest.raises(ConfigError, match='could not find section'):
        reloader.reload()
    assert reloader.current() == 'old'
    assert REGISTRY.get_sample_value(
        'mysqld_exporter_config_last_reload_successful', {'type': 'unit_failing'}) == 0


@pytest.mark.parametrize('text,seconds', [
    ('500ms', 0.5),
    ('10s', 10),
    ('1m', 60),
    ('2h', 7200),
    ('3', 3),
    ('1.5', 1.5),
    ('1m30s', 90),
    ('1h0m5s', 3605),
    ('1.5h', 5400),
    ('250us', 0.00025),
    ('2d', 172800),
    (' 10S ', 10),
])
def test_parse_duration(text, seconds):
    assert parse_duration(text) == pytest.approx(seconds)


@pytest.mark.parametrize('text', ['soon', '', '1m30', 'm', '5x', '-1s', 'inf', 'nan', '1m 30s'])
def test_parse_duration_rejects_garbage(text):
    with pytest.raises(ValueError):
        parse_duration(text)
