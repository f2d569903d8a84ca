"""
Pytest configuration and shared fixtures.

Source images are drawn with Pillow into a temporary ``src`` directory next
to the stylesheet; spritesheets are written to a temporary ``build``
directory.
"""
import pytest
from PIL import Image

from csssprites.config import ConfigManager
from csssprites.core import SpriteManager
from csssprites.css import parse

SVG_TEMPLATE = ('<svg xmlns="http://www.w3.org/2000/svg" width="%(size)d" '
                'height="%(size)d" viewBox="0 0 %(size)d %(size)d">'
                '<rect width="%(size)d" height="%(size)d" fill="%(fill)s"/>'
                '</svg>')


def draw(path, size, color):
    Image.new('RGBA', size, color).save(str(path))


@pytest.fixture
def src(tmp_path):
    """Directory with circle/square images in png, @2x png and svg."""
    path = tmp_path / 'src'
    path.mkdir()
    draw(path / 'circle.png', (25, 25), (255, 0, 0, 255))
    draw(path / 'square.png', (25, 25), (0, 0, 255, 255))
    draw(path / 'circle@2x.png', (50, 50), (255, 0, 0, 255))
    draw(path / 'square@2x.png', (50, 50), (0, 0, 255, 255))
    (path / 'circle.svg').write_text(SVG_TEMPLATE % {'size': 25, 'fill': 'red'})
    (path / 'square.svg').write_text(SVG_TEMPLATE % {'size': 25,
                                                     'fill': 'blue'})
    return path


@pytest.fixture
def build(tmp_path):
    return tmp_path / 'build'


@pytest.fixture
def make_manager(src, build):
    """Return a factory building a SpriteManager for a stylesheet saved as
    ``src/style.css``. Spritesheets go to ``build`` and urls are relative
    to it unless the options say otherwise."""
    def make(css, **options):
        options.setdefault('sprite_path', str(build))
        options.setdefault('stylesheet_path', str(build))
        stylesheet = src / 'style.css'
        stylesheet.write_text(css)
        root = parse(css, source_file=str(stylesheet))
        return SpriteManager(root, ConfigManager(priority=options))
    return make
