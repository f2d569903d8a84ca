import os
import configparser
from functools import cached_property

from .exceptions import InvalidRelativeToError

CONFIG_FILENAME = 'sprites.conf'
RELATIVE_TO_FILE = 'file'
RELATIVE_TO_RULE = 'rule'

DEFAULT_SETTINGS = {
    'base_path': './',
    'stylesheet_path': None,
    'sprite_path': './',
    'relative_to': RELATIVE_TO_FILE,
    'filter_by': [],
    'group_by': [],
    'retina': False,
    'extract_repeat': False,
    'verbose': False,
    'hooks': {
        'on_save_spritesheet': None,
        'on_update_rule': None,
    },
    'raster': {
        'algorithm': 'binary-tree',
        'ordering': 'maxside',
        'padding': 0,
        'engine_opts': {},
        'export_opts': {},
    },
    'vector': {
        'layout': 'binary-tree',
        'padding': 0,
        'precision': 5,
    },
}


def merge(base, other):
    """Return a new dictionary with ``other`` deeply merged over ``base``."""
    result = dict(base)
    for key, value in other.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge(result[key], value)
        elif value is not None:
            result[key] = value
    return result


class ConfigManager(object):
    """Manage all the available configuration.

    If no config is available, return the default one."""

    def __init__(self, *args, **kwargs):
        """ConfigManager constructor.

        :param *args: List of config dictionaries. The order of this list is
                      important because as soon as a config property
                      is available it will be returned.
        :param defaults: Dictionary with the default configuration.
        :param priority: Dictionary with the caller configuration. This
                         configuration will override any other from any source.
        """
        self.defaults = kwargs.get('defaults', DEFAULT_SETTINGS)
        self.priority = kwargs.get('priority', {})
        self.sources = list(args)
        self._cache = {}

    def __getattr__(self, name):
        """Return the first available configuration value for this key. This
        method always prioritizes the caller configuration. If this key
        is not available within any configuration dictionary, it returns the
        default value. Dictionaries are merged over their defaults instead.

        :param name: Configuration property name.
        """
        if name.startswith('__'):
            raise AttributeError(name)

        if name in self._cache:
            return self._cache[name]

        try:
            getter = super(ConfigManager, self).__getattribute__('_%s' % name)
        except AttributeError:
            getter = None

        if callable(getter):
            value = getter()
        else:
            value = self.find(name)

        self._cache[name] = value
        return value

    @cached_property
    def _sources(self):
        return [self.priority] + self.sources

    def find(self, name):
        values = [source.get(name) for source in self._sources]
        values = [v for v in values if v is not None]
        default = self.defaults.get(name)

        if isinstance(default, dict):
            value = default
            for source_value in reversed(values):
                if isinstance(source_value, dict):
                    value = merge(value, source_value)
            return value

        return values[0] if values else default

    def _as_list(self, name):
        value = self.find(name)
        if value is None:
            return []
        if callable(value):
            return [value]
        return list(value)

    def _filter_by(self):
        return self._as_list('filter_by')

    def _group_by(self):
        return self._as_list('group_by')

    def _relative_to(self):
        value = self.find('relative_to')
        if value not in (RELATIVE_TO_FILE, RELATIVE_TO_RULE):
            raise InvalidRelativeToError(value)
        return value


def get_file_config(path, section='sprites'):
    """Return, as a dictionary, all the available configuration inside the
    configuration file on this path.

    :param path: Path where the configuration file is.
    :param section: The configuration file section that needs to be read.
    """
    def clean(value):
        value = {'true': True, 'false': False}.get(value.lower(), value)
        if isinstance(value, str) and value.isdigit():
            return int(value)
        return value

    config = configparser.RawConfigParser()
    config.read(os.path.join(path, CONFIG_FILENAME))
    try:
        keys = config.options(section)
    except configparser.NoSectionError:
        return {}
    return dict([[k, clean(config.get(section, k))] for k in keys])


def load_file_config(path):
    """Return the ``sprites`` section of the configuration file with the
    ``raster`` and ``vector`` sections nested inside."""
    config = get_file_config(path, 'sprites')
    for section in ('raster', 'vector'):
        values = get_file_config(path, section)
        if values:
            config[section] = values
    return config
