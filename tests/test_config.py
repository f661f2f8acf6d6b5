import configparser

import pytest

from aleo_indexer import DEFAULT_BATCH_SIZE
from aleo_indexer.config import load_settings
from aleo_indexer.config import settings_from_config
from aleo_indexer.exceptions import ConfigurationError

CONFIG = """
[RPC]
url = https://rpc.example.org
max_tries = 3 ; attempts
initial_delay = 0.5

[Database]
url = sqlite:///data/test.db

[Indexer]
batch_size = 50
cycle_interval = 2

[Logging]
level = debug
file = true
"""


def parse_config(text):
    config = configparser.ConfigParser(inline_comment_prefixes=(';', '#'))
    config.read_string(text)
    return config


class TestSettings:

    def test_values_are_read(self):
        settings = settings_from_config(parse_config(CONFIG), environment={})
        assert settings.rpc.url == 'https://rpc.example.org'
        assert settings.rpc.max_tries == 3
        assert settings.rpc.initial_delay == 0.5
        assert settings.rpc.max_delay == 60.0
        assert settings.database_url == 'sqlite:///data/test.db'
        assert settings.batch_size == 50
        assert settings.cycle_interval == 2.0
        assert settings.log_level == 'DEBUG'
        assert settings.log_to_file is True

    def test_defaults(self):
        settings = settings_from_config(
            parse_config(''), environment={
                'ALEO_RPC_URL': 'https://rpc.example.org',
                'DATABASE_URL': 'sqlite://'
            })
        assert settings.batch_size == DEFAULT_BATCH_SIZE
        assert settings.definitions_path == 'programs.json'
        assert settings.rpc.permanent_error_code == 0
        assert settings.log_to_file is False

    def test_environment_overrides_file(self):
        settings = settings_from_config(
            parse_config(CONFIG),
            environment={'DATABASE_URL': 'postgresql://localhost/aleo'})
        assert settings.database_url == 'postgresql://localhost/aleo'
        assert settings.rpc.url == 'https://rpc.example.org'

    def test_missing_rpc_url(self):
        with pytest.raises(ConfigurationError, match='RPC url'):
            settings_from_config(parse_config('[Database]\nurl = sqlite://'),
                                 environment={})

    def test_missing_database_url(self):
        with pytest.raises(ConfigurationError, match='database url'):
            settings_from_config(parse_config('[RPC]\nurl = http://node'),
                                 environment={})

    @pytest.mark.parametrize('setting', [
        'batch_size = 0', 'function_concurrency = -1', 'cycle_interval = -5',
        'batch_size = many'
    ])
    def test_invalid_values(self, setting):
        config = parse_config(CONFIG)
        name, value = setting.split(' = ')
        config['Indexer'][name] = value
        with pytest.raises(ConfigurationError):
            settings_from_config(config, environment={})

    def test_load_settings_from_file(self, tmp_path):
        path = tmp_path / 'config.ini'
        path.write_text(CONFIG, encoding='utf-8')
        settings = load_settings(str(path), environment={})
        assert settings.batch_size == 50
