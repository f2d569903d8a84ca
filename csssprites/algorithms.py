"""
Box placement shared by the raster and the vector packers.

A box exposes ``path``, ``width``, ``height``, ``absolute_width`` and
``absolute_height`` (its size plus the padding). Boxes are sorted with
:func:`sort_boxes` and a layout from :func:`get_layout` sets their ``x`` and
``y``; :func:`canvas_size` returns the size of the resulting spritesheet.
"""
from functools import partial

from .exceptions import (InvalidImageAlgorithmError,
                         InvalidImageOrderingError, PackingError)

ORDERINGS = {'maxside': lambda b: max(b.absolute_width, b.absolute_height),
             'width': lambda b: b.absolute_width,
             'height': lambda b: b.absolute_height,
             'area': lambda b: b.absolute_width * b.absolute_height}


def sort_boxes(boxes, ordering='maxside'):
    """Sort the boxes by ``ordering``, biggest first unless the ordering is
    prefixed with ``-``. Boxes that compare equal keep their order."""
    name = ordering[1:] if ordering.startswith('-') else ordering
    if name not in ORDERINGS:
        raise InvalidImageOrderingError(ordering)
    return sorted(boxes, key=ORDERINGS[name],
                  reverse=not ordering.startswith('-'))


def canvas_size(boxes):
    """Return the width and height needed to hold every placed box."""
    width = height = 0
    for box in boxes:
        width = max(width, box.x + box.width)
        height = max(height, box.y + box.height)
    return width, height


class Region(object):
    """A rectangle of the canvas. A region is free until a box is placed in
    its top left corner, then the rest of it is split into ``right`` and
    ``down``."""

    def __init__(self, x, y, width, height):
        self.x = x
        self.y = y
        self.width = width
        self.height = height
        self.right = None
        self.down = None

    @property
    def used(self):
        return self.right is not None

    def find(self, width, height):
        """Return the first free region big enough for a box of this size."""
        if self.used:
            return self.right.find(width, height) or \
                self.down.find(width, height)
        if width <= self.width and height <= self.height:
            return self
        return None

    def split(self, width, height):
        self.right = Region(self.x + width, self.y,
                            self.width - width, height)
        self.down = Region(self.x, self.y + height,
                           self.width, self.height - height)
        return self


class BinaryTreeLayout(object):
    """Pack the boxes in a binary tree of regions, growing the canvas to the
    right or down while keeping it as square as possible."""

    def process(self, boxes):
        first = boxes[0]
        self.root = Region(0, 0, first.absolute_width, first.absolute_height)

        for box in boxes:
            width, height = box.absolute_width, box.absolute_height
            region = self.root.find(width, height) or self.grow(width, height)

            # The canvas only grows along one side at a time.
            if region is None:
                raise PackingError(box.path)

            region.split(width, height)
            box.x = region.x
            box.y = region.y

    def grow(self, width, height):
        root = self.root
        can_grow_down = width <= root.width
        can_grow_right = height <= root.height

        if can_grow_right and root.height >= root.width + width:
            return self.grow_right(width, height)
        if can_grow_down and root.width >= root.height + height:
            return self.grow_down(width, height)
        if can_grow_right:
            return self.grow_right(width, height)
        if can_grow_down:
            return self.grow_down(width, height)
        return None

    def grow_right(self, width, height):
        old = self.root
        self.root = Region(0, 0, old.width + width, old.height)
        self.root.right = Region(old.width, 0, width, old.height)
        self.root.down = old
        return self.root.find(width, height)

    def grow_down(self, width, height):
        old = self.root
        self.root = Region(0, 0, old.width, old.height + height)
        self.root.right = old
        self.root.down = Region(0, old.height, old.width, height)
        return self.root.find(width, height)


class StackLayout(object):

    def __init__(self, axis, align_end=False):
        """StackLayout constructor.

        :param axis: ``y`` stacks the boxes top to bottom, ``x`` left to
                     right.
        :param align_end: Push every box against the right (or bottom) edge
                          of the stack instead of the left (or top) one.
        """
        self.axis = axis
        self.align_end = align_end

    def process(self, boxes):
        if self.axis == 'y':
            cross, step, size = 'x', 'absolute_height', 'width'
        else:
            cross, step, size = 'y', 'absolute_width', 'height'

        extent = max([getattr(box, size) for box in boxes])
        offset = 0
        for box in boxes:
            setattr(box, self.axis, offset)
            if self.align_end:
                setattr(box, cross, extent - getattr(box, size))
            else:
                setattr(box, cross, 0)
            offset += getattr(box, step)


class DiagonalLayout(object):

    def process(self, boxes):
        x = y = 0
        for box in boxes:
            box.x = x
            box.y = y
            x += box.absolute_width
            y += box.absolute_height


LAYOUTS = {'binary-tree': BinaryTreeLayout,
           'top-down': partial(StackLayout, 'y'),
           'top-down-right': partial(StackLayout, 'y', align_end=True),
           'left-right': partial(StackLayout, 'x'),
           'left-right-bottom': partial(StackLayout, 'x', align_end=True),
           'diagonal': DiagonalLayout}


def get_layout(name):
    """Return a new layout for the algorithm called ``name``."""
    layout = LAYOUTS.get(name)
    if layout is None:
        raise InvalidImageAlgorithmError(name)
    return layout()
