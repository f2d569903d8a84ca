from .version import __version__
from .config import ConfigManager, DEFAULT_SETTINGS
from .core import SpriteManager, process, process_file, update_rule
from .css import parse

__all__ = ['__version__', 'ConfigManager', 'DEFAULT_SETTINGS',
           'SpriteManager', 'parse', 'process', 'process_file', 'update_rule']
