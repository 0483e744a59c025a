import pytest

from portowner import config_init
from portowner.exceptions import ParseFailureError
from portowner.incremental_cache import IncrementalCache


def test_defaults_when_file_is_missing(tmp_path):
    config = config_init.get_config(str(tmp_path / 'config.toml'))

    assert config == config_init.DEFAULT_CONFIG
    # A copy, changing it doesn't change the defaults.
    config['cache']['update_interval_seconds'] = 1
    assert config_init.DEFAULT_CONFIG['cache']['update_interval_seconds'] == 5.0


def test_file_is_merged_over_defaults(tmp_path):
    config_path = tmp_path / 'config.toml'
    config_path.write_text(
        '[selector]\n'
        'performance_profile = "complete"\n'
        '[kernel_table]\n'
        f'proc_root = "{tmp_path}"\n')

    config = config_init.get_config(str(config_path))

    assert config['selector']['performance_profile'] == 'complete'
    assert config['selector']['benchmark_tie_ratio'] == 0.2
    assert config['kernel_table']['proc_root'] == str(tmp_path)
    assert config['cache']['update_interval_seconds'] == 5.0


def test_default_path_is_working_directory(tmp_path, monkeypatch):
    (tmp_path / 'config.toml').write_text('[cache]\nupdate_interval_seconds = 2.5\n')
    monkeypatch.chdir(tmp_path)

    assert config_init.get_config()['cache']['update_interval_seconds'] == 2.5


def test_malformed_file(tmp_path):
    config_path = tmp_path / 'config.toml'
    config_path.write_text('[cache\nupdate_interval_seconds = ')

    with pytest.raises(ParseFailureError):
        config_init.get_config(str(config_path))


def test_section_must_be_table(tmp_path):
    config_path = tmp_path / 'config.toml'
    config_path.write_text('cache = 5\n')

    with pytest.raises(ParseFailureError):
        config_init.get_config(str(config_path))


def test_cache_from_config(tmp_path):
    config_path = tmp_path / 'config.toml'
    config_path.write_text(
        '[cache]\n'
        'update_interval_seconds = 1.5\n'
        '[selector]\n'
        'performance_profile = "fast"\n'
        '[kernel_table]\n'
        f'proc_root = "{tmp_path}"\n')

    cache = IncrementalCache.from_config(config_init.get_config(str(config_path)))

    assert cache.get_update_interval() == 1.5
    assert cache.get_stats().available is False


def test_unknown_profile_in_config(tmp_path):
    config_path = tmp_path / 'config.toml'
    config_path.write_text('[selector]\nperformance_profile = "turbo"\n')

    with pytest.raises(ParseFailureError):
        IncrementalCache.from_config(config_init.get_config(str(config_path)))
