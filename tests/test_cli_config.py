"""Tests for persisted CLI settings and the config command."""

import json

import httpx
import pytest

from cli.commands import handle_config
from cli.config import SETTINGS, Config, ConfigError
from cli.models import ConfigCommand
from cli.parser import ParseError, parse_command
from cli.vault_client import VaultClient
from common.constants import CLIENT_CHUNK_SIZE_BYTES, DEFAULT_MIME_TYPE, MAX_CHUNK_SIZE_BYTES


def read_file(config):
    with open(config.config_path) as f:
        return json.load(f)


def test_new_file_holds_every_default(tmp_path):
    config_path = tmp_path / 'nested' / '.hashvault' / 'config.json'

    config = Config(config_path)

    stored = read_file(config)
    assert set(stored) == set(SETTINGS)
    assert stored['chunk_size'] == CLIENT_CHUNK_SIZE_BYTES
    assert stored['default_mime_type'] == DEFAULT_MIME_TYPE
    assert stored['wallet_address'] is None


def test_invalid_and_unknown_values_on_disk_fall_back(tmp_path):
    config_path = tmp_path / 'config.json'
    config_path.write_text(json.dumps({
        'chunk_size': MAX_CHUNK_SIZE_BYTES + 1,
        'timeout': 'soon',
        'legacy_port': 9000,
        'default_mime_type': 'text/plain',
    }))

    config = Config(config_path)

    assert config.get_chunk_size() == CLIENT_CHUNK_SIZE_BYTES
    assert config.get_timeout() == 30
    assert config.get_default_mime_type() == 'text/plain'
    assert 'legacy_port' not in config.data


def test_unreadable_file_is_backed_up(tmp_path):
    config_path = tmp_path / 'config.json'
    config_path.write_text('{ not json')

    config = Config(config_path)

    assert config.get_base_url() == 'http://localhost:8000'
    assert config_path.with_suffix('.json.bak').read_text() == '{ not json'


def test_set_coerces_and_persists(temp_config):
    assert temp_config.set('chunk_size', '1048576') == 1048576

    reloaded = Config(temp_config.config_path)
    assert reloaded.get_chunk_size() == 1048576


@pytest.mark.parametrize('name,value', [
    ('chunk_size', '0'),
    ('chunk_size', str(MAX_CHUNK_SIZE_BYTES + 1)),
    ('max_retries', '-1'),
    ('default_mime_type', '   '),
    ('api_key', 'secret'),
])
def test_set_rejects_bad_settings(temp_config, name, value):
    with pytest.raises(ConfigError):
        temp_config.set(name, value)

    assert read_file(temp_config).get('chunk_size') == CLIENT_CHUNK_SIZE_BYTES


def test_reset_restores_default(temp_config):
    temp_config.set('download_dir', '/tmp/elsewhere')

    assert temp_config.reset('download_dir') == SETTINGS['download_dir'].default
    assert read_file(temp_config)['download_dir'] == SETTINGS['download_dir'].default


def test_base_url_drops_trailing_slash(temp_config):
    temp_config.set('vault_url', 'https://vault.test/')

    assert temp_config.get_base_url() == 'https://vault.test'


def test_client_uses_configured_chunk_size(temp_config):
    temp_config.set('chunk_size', '4096')

    assert VaultClient(temp_config).chunk_size == 4096
    assert VaultClient(temp_config, chunk_size=8).chunk_size == 8


def test_client_falls_back_to_configured_mime_type(temp_config, tmp_path):
    temp_config.set('default_mime_type', 'application/x-custom')
    temp_config.set_wallet_address('0xabc123')
    seen = {}

    def handler(request):
        if request.url.path == '/storage/check':
            return httpx.Response(200, json={'success': True, 'remainingStorage': 100, 'totalAvailableStorage': 100})
        seen['body'] = request.read()
        return httpx.Response(200, json={'success': True, 'file': {'fileName': 'blob.zzz', 'cid': 'QmB', 'size': '4'}})

    client = VaultClient(temp_config, chunk_size=64)
    client.session = httpx.Client(base_url=temp_config.get_base_url(), transport=httpx.MockTransport(handler))
    path = tmp_path / 'blob.zzz'
    path.write_bytes(b'data')

    client.upload_file(str(path))

    assert b'application/x-custom' in seen['body']


def test_parse_config_forms():
    assert parse_command('config') == ConfigCommand()
    assert parse_command('config chunk_size') == ConfigCommand(name='chunk_size')
    assert parse_command('config chunk_size 1024') == ConfigCommand(name='chunk_size', value='1024')
    assert parse_command('config --reset chunk_size') == ConfigCommand(name='chunk_size', reset=True)

    with pytest.raises(ParseError):
        parse_command('config --reset')
    with pytest.raises(ParseError):
        parse_command('config a b c')


def test_config_command_updates_client(temp_config):
    client = VaultClient(temp_config)

    result = handle_config(ConfigCommand(name='chunk_size', value='2048'), client=client)

    assert result == 'chunk_size set to 2048'
    assert client.chunk_size == 2048
    assert temp_config.get_chunk_size() == 2048


def test_config_command_reports_errors_and_listing(temp_config):
    client = VaultClient(temp_config)

    assert handle_config(ConfigCommand(name='chunk_size', value='big'), client=client).startswith('Error:')
    assert handle_config(ConfigCommand(name='wallet_address'), client=client) == 'wallet_address = (not set)'
    assert 'takes effect after restarting' in handle_config(
        ConfigCommand(name='timeout', value='60'), client=client
    )

    listing = handle_config(ConfigCommand(), client=client)
    for name in SETTINGS:
        assert name in listing
