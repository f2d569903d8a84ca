"""
Tests for the placement algorithms and the raster and vector packers.
"""
import asyncio
import io

import pytest
from PIL import Image

from csssprites.algorithms import canvas_size, get_layout, sort_boxes
from csssprites.config import ConfigManager
from csssprites.exceptions import (InvalidImageAlgorithmError,
                                   InvalidImageOrderingError,
                                   UnreadableImageError)
from csssprites.models import ImageRecord
from csssprites.packers import (RasterPacker, VectorPacker, format_number,
                                id_prefix, raster_factory)

from .conftest import SVG_TEMPLATE, draw


class Box(object):

    def __init__(self, width, height, padding=0):
        self.path = '%dx%d' % (width, height)
        self.width = width
        self.height = height
        self.absolute_width = width + padding
        self.absolute_height = height + padding
        self.x = self.y = None


def positions(boxes):
    return [(box.x, box.y) for box in boxes]


class TestAlgorithms:

    def boxes(self):
        return [Box(20, 20), Box(10, 10), Box(10, 5)]

    def test_binary_tree(self):
        boxes = self.boxes()
        get_layout('binary-tree').process(boxes)

        assert positions(boxes) == [(0, 0), (20, 0), (20, 10)]

    def test_top_down(self):
        boxes = self.boxes()
        get_layout('top-down').process(boxes)

        assert positions(boxes) == [(0, 0), (0, 20), (0, 30)]

    def test_top_down_right(self):
        boxes = self.boxes()
        get_layout('top-down-right').process(boxes)

        assert positions(boxes) == [(0, 0), (10, 20), (10, 30)]

    def test_left_right(self):
        boxes = self.boxes()
        get_layout('left-right').process(boxes)

        assert positions(boxes) == [(0, 0), (20, 0), (30, 0)]

    def test_left_right_bottom(self):
        boxes = self.boxes()
        get_layout('left-right-bottom').process(boxes)

        assert positions(boxes) == [(0, 0), (20, 10), (30, 15)]

    def test_diagonal(self):
        boxes = self.boxes()
        get_layout('diagonal').process(boxes)

        assert positions(boxes) == [(0, 0), (20, 20), (30, 30)]

    def test_padding(self):
        boxes = [Box(10, 10, padding=2), Box(10, 10, padding=2)]
        get_layout('left-right').process(boxes)

        assert positions(boxes) == [(0, 0), (12, 0)]

    def test_binary_tree_grows_down(self):
        boxes = [Box(20, 10), Box(20, 10)]
        get_layout('binary-tree').process(boxes)

        assert positions(boxes) == [(0, 0), (0, 10)]
        assert canvas_size(boxes) == (20, 20)

    def test_canvas_size(self):
        boxes = [Box(10, 10, padding=4), Box(10, 5, padding=4)]
        get_layout('top-down').process(boxes)

        # Padding is left out after the last box
        assert canvas_size(boxes) == (10, 19)

    def test_layouts_are_not_shared(self):
        assert get_layout('top-down') is not get_layout('top-down')

    def test_invalid_layout(self):
        with pytest.raises(InvalidImageAlgorithmError):
            get_layout('spiral')


class TestSortBoxes:

    def test_orderings(self):
        wide, tall = Box(30, 10), Box(20, 25)

        assert sort_boxes([tall, wide], 'maxside') == [wide, tall]
        assert sort_boxes([tall, wide], 'width') == [wide, tall]
        assert sort_boxes([wide, tall], 'height') == [tall, wide]
        assert sort_boxes([wide, tall], 'area') == [tall, wide]

    def test_reversed_ordering(self):
        small, big = Box(5, 5), Box(10, 10)

        assert sort_boxes([big, small], '-area') == [small, big]

    def test_invalid_ordering(self):
        with pytest.raises(InvalidImageOrderingError):
            sort_boxes([], 'colors')


class TestFormatNumber:

    def test_format_number(self):
        assert format_number(10.0) == '10'
        assert format_number(-12.5) == '-12.5'
        assert format_number(1 / 3.0, 2) == '0.33'
        assert format_number(-0.0) == '0'
        assert format_number(25, 0) == '25'


class TestRasterPacker:

    def paths(self, src):
        return [str(src / 'circle.png'), str(src / 'square.png')]

    def test_run(self, src):
        spritesheet = RasterPacker().run(self.paths(src))

        assert spritesheet.extension == 'png'
        assert spritesheet.properties == {'width': 50, 'height': 25}
        assert spritesheet.coordinates == {
            str(src / 'circle.png'): {'x': 0, 'y': 0,
                                      'width': 25, 'height': 25},
            str(src / 'square.png'): {'x': 25, 'y': 0,
                                      'width': 25, 'height': 25},
        }

        image = Image.open(io.BytesIO(spritesheet.image))
        assert image.format == 'PNG'
        assert image.size == (50, 25)
        assert image.info['Software'].startswith('csssprites-')

    def test_padding(self, src):
        packer = RasterPacker(algorithm='top-down', padding=4)
        spritesheet = packer.run(self.paths(src))

        ys = sorted(c['y'] for c in spritesheet.coordinates.values())
        assert ys == [0, 29]
        assert spritesheet.properties == {'width': 25, 'height': 54}

    def test_background(self, src):
        packer = RasterPacker(algorithm='diagonal',
                              engine_opts={'background': (0, 255, 0, 255)})
        spritesheet = packer.run(self.paths(src))

        image = Image.open(io.BytesIO(spritesheet.image)).convert('RGBA')
        assert image.getpixel((49, 0)) == (0, 255, 0, 255)

    def test_png8(self, src):
        packer = RasterPacker(export_opts={'png8': True})
        spritesheet = packer.run(self.paths(src))

        image = Image.open(io.BytesIO(spritesheet.image))
        assert image.mode == 'P'

    def test_invalid_algorithm(self):
        with pytest.raises(InvalidImageAlgorithmError):
            RasterPacker(algorithm='spiral')

    def test_invalid_ordering(self):
        with pytest.raises(InvalidImageOrderingError):
            RasterPacker(ordering='colors')

    def test_unreadable_image(self, tmp_path):
        broken = tmp_path / 'broken.png'
        broken.write_bytes(b'not a png')

        with pytest.raises(UnreadableImageError):
            RasterPacker().run([str(broken)])


class TestRasterFactory:

    def records(self, src, names, retina):
        records = []
        for name in names:
            draw(src / name, (10, 10), (0, 0, 0, 255))
            records.append(ImageRecord(path=str(src / name), url=name,
                                       retina=retina,
                                       ratio=2 if retina else 1))
        return records

    def pack(self, records):
        config = ConfigManager(priority={
            'raster': {'algorithm': 'left-right', 'padding': 3}})
        spritesheet = asyncio.run(raster_factory(config, records))
        return sorted(c['x'] for c in spritesheet.coordinates.values())

    def test_retina_padding(self, src):
        records = self.records(src, ['a@2x.png', 'b@2x.png'], retina=True)

        assert self.pack(records) == [0, 16]

    def test_mixed_padding(self, src):
        records = self.records(src, ['a@2x.png', 'b@2x.png'], retina=True)
        records[1].retina = False
        records[1].ratio = 1

        assert self.pack(records) == [0, 13]


class TestVectorPacker:

    def files(self, *shapes):
        return [('/icons/%s.svg' % name, SVG_TEMPLATE % {
            'size': size, 'fill': 'red'}) for name, size in shapes]

    def test_run(self):
        spritesheet = VectorPacker().run(self.files(('big', 20),
                                                    ('small', 10)))

        assert spritesheet.extension == 'svg'
        assert spritesheet.properties == {'width': 30, 'height': 20}
        assert spritesheet.coordinates['/icons/big.svg'] == {
            'x': 0, 'y': 0, 'width': 20, 'height': 20}
        assert spritesheet.coordinates['/icons/small.svg'] == {
            'x': 20, 'y': 0, 'width': 10, 'height': 10}

    def test_document(self):
        spritesheet = VectorPacker().run(self.files(('big', 20),
                                                    ('small', 10)))

        assert spritesheet.image.startswith('<?xml')
        assert '<svg xmlns="http://www.w3.org/2000/svg"' in spritesheet.image
        assert spritesheet.image.count('<rect') == 2
        assert 'x="20" y="0" width="10" height="10"' in spritesheet.image

    def test_size_from_view_box(self):
        content = ('<svg xmlns="http://www.w3.org/2000/svg" '
                   'viewBox="0 0 12.5 8"><path d="M0 0h1v1z"/></svg>')
        spritesheet = VectorPacker().run([('/icons/a.svg', content)])

        assert spritesheet.properties == {'width': 12.5, 'height': 8}

    def test_missing_size(self):
        content = '<svg xmlns="http://www.w3.org/2000/svg"></svg>'

        with pytest.raises(UnreadableImageError):
            VectorPacker().run([('/icons/a.svg', content)])

    def test_invalid_document(self):
        with pytest.raises(UnreadableImageError):
            VectorPacker().run([('/icons/a.svg', '<svg')])

    def test_keeps_root_presentation_attributes(self):
        content = ('<svg xmlns="http://www.w3.org/2000/svg" width="10" '
                   'height="10" fill="red" class="icon" version="1.1">'
                   '<rect width="10" height="10"/></svg>')
        spritesheet = VectorPacker().run([('/icons/a.svg', content)])

        assert 'fill="red"' in spritesheet.image
        assert 'class="icon"' in spritesheet.image
        assert 'version="1.1"' not in spritesheet.image

    def test_ids_are_namespaced(self):
        gradient = ('<svg xmlns="http://www.w3.org/2000/svg" '
                    'xmlns:xlink="http://www.w3.org/1999/xlink" '
                    'width="10" height="10">'
                    '<defs><linearGradient id="g">'
                    '<stop offset="0" stop-color="%s"/></linearGradient>'
                    '<rect id="r" width="10" height="10"/></defs>'
                    '<use xlink:href="#r" fill="url(#g)"/>'
                    '<circle r="2" fill="url(#other)"/></svg>')
        spritesheet = VectorPacker().run([
            ('/icons/red.svg', gradient % 'red'),
            ('/icons/blue.svg', gradient % 'blue'),
        ])
        image = spritesheet.image

        assert 'id="g"' not in image
        assert 'id="red-g"' in image
        assert 'id="blue-g"' in image
        assert 'fill="url(#red-g)"' in image
        assert 'fill="url(#blue-g)"' in image
        assert 'xlink:href="#red-r"' in image
        assert 'xlink:href="#blue-r"' in image
        assert image.count('fill="url(#other)"') == 2

    def test_id_prefixes_are_unique(self):
        used = set()

        assert id_prefix('/a/icon.svg', used) == 'icon-'
        assert id_prefix('/b/icon.svg', used) == 'icon-2-'
        assert id_prefix('/c/1 star.svg', used) == 'shape-1-star-'
