class ImageRecord(object):
    """A source image referenced by the stylesheet.

    Records are created by the extraction step and every later step of
    the pipeline adds information to them. ``path`` identifies the image;
    ``token`` is the text of the placeholder comment that replaced its
    background declaration and is what ties the record back to the tree.
    """

    def __init__(self, path=None, url=None, original_url=None,
                 style_file_path=None, retina=False, ratio=1):
        """ImageRecord constructor.

        :param path: Absolute filesystem path of the image.
        :param url: Url as referenced from the stylesheet, without quotes
                    or query string.
        :param original_url: Url exactly as found in the stylesheet.
        :param style_file_path: Stylesheet the url is relative to.
        :param retina: Flag to determine if this is a ``@Nx`` image.
        :param ratio: Retina ratio, ``1`` for regular images.
        """
        self.path = path
        self.url = url
        self.original_url = original_url
        self.style_file_path = style_file_path
        self.retina = retina
        self.ratio = ratio
        self.groups = []
        self.token = ''

        self.coords = None
        self.sprite_path = None
        self.sprite_url = None
        self.sprite_width = None
        self.sprite_height = None

    def __repr__(self):
        return '<ImageRecord %s %s>' % (self.url, self.groups)


class Spritesheet(object):
    """A composite image and the position of every image inside it."""

    def __init__(self, extension, image, coordinates, properties,
                 groups=None, path=None):
        """Spritesheet constructor.

        :param extension: ``png`` or ``svg``.
        :param image: Composite contents, bytes for png and text for svg.
        :param coordinates: Dictionary ``{path: {x, y, width, height}}``.
        :param properties: Dictionary ``{width, height}`` of the composite.
        :param groups: Group labels shared by every image of the sheet.
        :param path: Output path, set when the spritesheet is saved.
        """
        self.extension = extension
        self.image = image
        self.coordinates = coordinates
        self.properties = properties
        self.groups = groups or []
        self.path = path

    def update(self, values):
        """Merge a dictionary of attributes into this spritesheet."""
        for key, value in values.items():
            setattr(self, key, value)

    def __repr__(self):
        return '<Spritesheet %s %s>' % (self.path or '.'.join(
            ['sprite'] + self.groups + [self.extension]), self.properties)
