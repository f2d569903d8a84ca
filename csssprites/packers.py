"""
Raster and vector packers.

Both receive the source images of one partition and return a
:class:`~csssprites.models.Spritesheet` with the composite contents and the
position of every source image keyed by its path.
"""
import io
import os
import re
import asyncio
import logging
import xml.etree.ElementTree as ET
from functools import cached_property

from PIL import Image as PImage
from PIL import PngImagePlugin

from .algorithms import canvas_size, get_layout, sort_boxes
from .exceptions import UnreadableImageError
from .models import Spritesheet
from .version import __version__

logger = logging.getLogger(__name__)

TRANSPARENT = (0, 0, 0, 0)
SVG_NAMESPACE = 'http://www.w3.org/2000/svg'
XLINK_NAMESPACE = 'http://www.w3.org/1999/xlink'
XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>'
LENGTH_RE = re.compile(r'^\s*(\d*\.?\d+)\s*(px)?\s*$')
ID_REFERENCE_RE = re.compile(r'url\(\s*([\'"]?)#([^\'")\s]+)\1\s*\)')
SLUG_RE = re.compile(r'[^A-Za-z0-9_-]+')

# Root attributes replaced by the position of the shape in the sprite
GEOMETRY_ATTRIBUTES = ('x', 'y', 'width', 'height', 'viewBox',
                       'preserveAspectRatio', 'version', 'baseProfile')
HREF_ATTRIBUTES = ('href', '{%s}href' % XLINK_NAMESPACE)

ET.register_namespace('', SVG_NAMESPACE)
ET.register_namespace('xlink', XLINK_NAMESPACE)


def format_number(value, precision=5):
    """Render a number without trailing zeros, ``-0`` renders as ``0``."""
    text = '%.*f' % (precision, value)
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return '0' if text == '-0' else text


class SourceImage(object):

    def __init__(self, path, padding=0):
        """SourceImage constructor.

        :param path: Image path.
        :param padding: Pixels left free to the right and below the image.
        """
        self.x = None
        self.y = None
        self.path = path
        self.padding = padding

        with open(self.path, 'rb') as image_file:
            self._data = image_file.read()

    @cached_property
    def image(self):
        """Return a Pillow RGBA representation of this image."""
        try:
            source_image = PImage.open(io.BytesIO(self._data))
            source_image.load()
        except OSError as e:
            raise UnreadableImageError(self.path, str(e))
        return source_image.convert('RGBA')

    @cached_property
    def width(self):
        return self.image.size[0]

    @cached_property
    def height(self):
        return self.image.size[1]

    @cached_property
    def absolute_width(self):
        return self.width + self.padding

    @cached_property
    def absolute_height(self):
        return self.height + self.padding


class RasterPacker(object):
    extension = 'png'

    def __init__(self, algorithm='binary-tree', ordering='maxside', padding=0,
                 engine_opts=None, export_opts=None):
        """RasterPacker constructor.

        :param algorithm: Allocation algorithm name, see
                          :data:`~csssprites.algorithms.LAYOUTS`.
        :param ordering: ``maxside``, ``width``, ``height`` or ``area``.
        :param padding: Pixels between images.
        :param engine_opts: ``background`` color of the canvas.
        :param export_opts: ``png8`` and ``optimize`` flags.
        """
        self.algorithm = get_layout(algorithm)
        sort_boxes([], ordering)
        self.ordering = ordering
        self.padding = int(padding or 0)
        self.engine_opts = dict(engine_opts or {})
        self.export_opts = dict(export_opts or {})

    def run(self, paths):
        images = [SourceImage(path, padding=self.padding) for path in paths]
        images = sort_boxes(images, self.ordering)
        self.algorithm.process(images)

        width, height = canvas_size(images)
        background = tuple(self.engine_opts.get('background', TRANSPARENT))
        canvas = PImage.new('RGBA', (width, height), background)

        for image in images:
            canvas.paste(image.image, (image.x, image.y))

        coordinates = {}
        for image in images:
            coordinates[image.path] = {'x': image.x, 'y': image.y,
                                       'width': image.width,
                                       'height': image.height}

        return Spritesheet(extension=self.extension,
                           image=self.export(canvas),
                           coordinates=coordinates,
                           properties={'width': width, 'height': height})

    def export(self, canvas):
        """Return the PNG bytes of the canvas."""
        meta = PngImagePlugin.PngInfo()
        meta.add_text('Software', 'csssprites-%s' % __version__)

        kwargs = dict(optimize=bool(self.export_opts.get('optimize')),
                      pnginfo=meta)

        if self.export_opts.get('png8'):
            # Get the alpha band
            alpha = canvas.split()[-1]
            canvas = canvas.convert('RGB').convert(
                'P', palette=PImage.Palette.ADAPTIVE, colors=255)

            # Set all pixel values below 128 to 255, and the rest to 0
            mask = PImage.eval(alpha, lambda a: 255 if a <= 128 else 0)

            # Paste the color of index 255 and use alpha as a mask
            canvas.paste(255, mask)
            kwargs.update({'transparency': 255})

        output = io.BytesIO()
        canvas.save(output, format='PNG', **kwargs)
        return output.getvalue()


class SvgShape(object):

    def __init__(self, path, content, padding=0):
        self.x = None
        self.y = None
        self.path = path
        self.padding = padding

        try:
            self.element = ET.fromstring(content)
        except ET.ParseError as e:
            raise UnreadableImageError(path, str(e))

        self.view_box = self.element.get('viewBox')
        self.width, self.height = self._size()
        self.absolute_width = self.width + padding
        self.absolute_height = self.height + padding

    def _length(self, name):
        match = LENGTH_RE.match(self.element.get(name, ''))
        return float(match.group(1)) if match else None

    def _size(self):
        width = self._length('width')
        height = self._length('height')

        if (width is None or height is None) and self.view_box:
            parts = re.split(r'[\s,]+', self.view_box.strip())
            if len(parts) == 4:
                width = float(parts[2]) if width is None else width
                height = float(parts[3]) if height is None else height

        if width is None or height is None:
            raise UnreadableImageError(self.path, 'Unable to find the size')
        return width, height


def namespace_ids(element, prefix):
    """Prefix every id declared below ``element``, and every ``url(#id)``
    and ``href="#id"`` pointing at one of them, with ``prefix``."""
    ids = set(node.get('id') for node in element.iter() if node.get('id'))

    def rename(match):
        quote, name = match.groups()
        if name not in ids:
            return match.group(0)
        return 'url(%s#%s%s%s)' % (quote, prefix, name, quote)

    for node in element.iter():
        for name, value in list(node.attrib.items()):
            if name == 'id':
                node.set(name, prefix + value)
            elif name in HREF_ATTRIBUTES and value[1:] in ids and \
                    value.startswith('#'):
                node.set(name, '#' + prefix + value[1:])
            elif 'url(' in value:
                node.set(name, ID_REFERENCE_RE.sub(rename, value))

        if node.tag == '{%s}style' % SVG_NAMESPACE and node.text:
            node.text = ID_REFERENCE_RE.sub(rename, node.text)


def id_prefix(path, used):
    """Return an id prefix made from the file name of ``path``, unique among
    the ``used`` ones."""
    slug = SLUG_RE.sub('-', os.path.splitext(os.path.basename(path))[0])
    if not slug[:1].isalpha():
        slug = 'shape-' + slug
    prefix = slug + '-'
    count = 2
    while prefix in used:
        prefix = '%s-%d-' % (slug, count)
        count += 1
    used.add(prefix)
    return prefix


class VectorPacker(object):
    extension = 'svg'

    def __init__(self, layout='binary-tree', padding=0, precision=5):
        """VectorPacker constructor.

        :param layout: Allocation algorithm name.
        :param padding: Units between shapes.
        :param precision: Decimals kept for coordinates and sizes.
        """
        self.algorithm = get_layout(layout)
        self.padding = float(padding or 0)
        self.precision = int(precision)

    def number(self, value):
        return format_number(value, self.precision)

    def run(self, files):
        """Compile ``(path, content)`` pairs into one SVG document."""
        shapes = [SvgShape(path, content, padding=self.padding)
                  for path, content in files]
        shapes = sort_boxes(shapes)
        self.algorithm.process(shapes)

        width, height = canvas_size(shapes)
        sprite = ET.Element('{%s}svg' % SVG_NAMESPACE, {
            'width': self.number(width),
            'height': self.number(height),
            'viewBox': '0 0 %s %s' % (self.number(width), self.number(height)),
        })

        coordinates = {}
        prefixes = set()
        for shape in shapes:
            attributes = {
                'x': self.number(shape.x),
                'y': self.number(shape.y),
                'width': self.number(shape.width),
                'height': self.number(shape.height),
                'viewBox': shape.view_box or '0 0 %s %s' % (
                    self.number(shape.width), self.number(shape.height)),
            }
            aspect_ratio = shape.element.get('preserveAspectRatio')
            if aspect_ratio:
                attributes['preserveAspectRatio'] = aspect_ratio

            # Ids of different shapes must not collide inside the sprite
            namespace_ids(shape.element, id_prefix(shape.path, prefixes))
            for name, value in shape.element.attrib.items():
                if name not in GEOMETRY_ATTRIBUTES:
                    attributes[name] = value

            nested = ET.SubElement(sprite, '{%s}svg' % SVG_NAMESPACE,
                                   attributes)
            nested.extend(list(shape.element))

            coordinates[shape.path] = {
                'x': round(shape.x, self.precision),
                'y': round(shape.y, self.precision),
                'width': round(shape.width, self.precision),
                'height': round(shape.height, self.precision),
            }

        return Spritesheet(extension=self.extension,
                           image=XML_DECLARATION + ET.tostring(
                               sprite, encoding='unicode'),
                           coordinates=coordinates,
                           properties={'width': round(width, self.precision),
                                       'height': round(height,
                                                       self.precision)})


def read_text(path):
    with open(path, 'r', encoding='utf-8') as svg_file:
        return svg_file.read()


async def raster_factory(config, images):
    """Pack raster images, the padding is scaled up when every image shares
    the same retina ratio."""
    options = config.raster
    padding = int(options.get('padding') or 0)

    ratios = set(image.ratio for image in images)
    if all(image.retina for image in images) and len(ratios) == 1:
        padding = padding * ratios.pop()

    packer = RasterPacker(algorithm=options.get('algorithm', 'binary-tree'),
                          ordering=options.get('ordering', 'maxside'),
                          padding=padding,
                          engine_opts=options.get('engine_opts'),
                          export_opts=options.get('export_opts'))

    logger.debug('Packing %d raster images', len(images))
    return await asyncio.to_thread(packer.run,
                                   [image.path for image in images])


async def vector_factory(config, images):
    options = config.vector
    packer = VectorPacker(layout=options.get('layout', 'binary-tree'),
                          padding=options.get('padding', 0),
                          precision=options.get('precision', 5))

    files = []
    for image in images:
        content = await asyncio.to_thread(read_text, image.path)
        files.append((image.path, content))

    logger.debug('Packing %d vector images', len(images))
    return await asyncio.to_thread(packer.run, files)
