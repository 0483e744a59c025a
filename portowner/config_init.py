import copy
import os

from .file_io import tomls
from .exceptions import ParseFailureError


CONFIG_FILE_NAME = 'config.toml'

DEFAULT_CONFIG: dict = {
    'cache': {
        'update_interval_seconds': 5.0
    },
    'selector': {
        # 'fast', 'balanced' or 'complete'.
        'performance_profile': 'balanced',
        'benchmark_interval_seconds': 1800.0,
        'benchmark_tie_ratio': 0.2
    },
    'tool_chain': {
        'command_timeout_seconds': 5.0
    },
    'kernel_table': {
        'proc_root': '/proc',
        'details_ttl_seconds': 2.0
    },
    'logging': {
        'level': 'INFO',
        # Empty string: console only.
        'file_path': ''
    }
}


def get_config(config_file_path: str = None) -> dict:
    """
    Get the config: the content of the config file merged over the defaults.

    :param config_file_path: string, full path to the config file. Default is None. If None, the 'config.toml' in
        the working directory is used, if it exists.
    :return: dict, with all the sections of 'DEFAULT_CONFIG'.
    :raises ParseFailureError: if the file isn't valid toml or a section isn't a table.
    """

    if not config_file_path:
        config_file_path = f'{os.getcwd()}{os.sep}{CONFIG_FILE_NAME}'

    config: dict = copy.deepcopy(DEFAULT_CONFIG)

    if not os.path.isfile(config_file_path):
        return config

    file_config: dict = tomls.read_toml_file(config_file_path)
    for section_name, section in file_config.items():
        if not isinstance(section, dict):
            raise ParseFailureError(f"Config section [{section_name}] must be a table, not {type(section).__name__}.")

        config.setdefault(section_name, dict()).update(section)

    return config
