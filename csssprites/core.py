import os
import re
import asyncio
import inspect
import logging
from urllib.parse import unquote

from .config import ConfigManager, RELATIVE_TO_RULE
from .css import Comment, Declaration, parse
from .exceptions import SpritesheetPathError
from .models import ImageRecord
from .packers import format_number, raster_factory, vector_factory

logger = logging.getLogger(__name__)

BACKGROUND = 'background'
BACKGROUND_IMAGE = 'background-image'
ONE_SPACE = ' '
COMMENT_TOKEN_PREFIX = '@replace|'
GROUP_DELIMITER = '.'
GROUP_MASK = '%2E'
GROUP_SENTINEL = '_'
TYPE_RASTER = 'raster'
TYPE_VECTOR = 'vector'

BACKGROUND_RE = re.compile(r'^background(-image)?$', re.IGNORECASE)
BACKGROUND_EXTRAS_RE = re.compile(r'^background-(repeat|size|position)$',
                                  re.IGNORECASE)
IMAGE_URL_RE = re.compile(r'url(?:\([\'"]?)(.*?)(?:[\'"]?\))', re.IGNORECASE)
UNSUPPORTED_URL_RE = re.compile(r'^(https?://|data:image)', re.IGNORECASE)
RETINA_RE = re.compile(r'@(\d+)x\.[a-z]{3,4}$', re.IGNORECASE)
ABSOLUTE_URL_RE = re.compile(r'^/')
COLOR_RES = [re.compile(r'(#([0-9a-f]{3}){1,2})', re.IGNORECASE),
             re.compile(r'rgba?\([^\)]+\)', re.IGNORECASE)]
REPEAT_RES = [re.compile(r'no-repeat', re.IGNORECASE),
              re.compile(r'repeat-x', re.IGNORECASE),
              re.compile(r'repeat-y', re.IGNORECASE)]


def get_image_url(value):
    """Return the original and the normalized (no quotes, no query string)
    url of the first image found in a background value."""
    match = IMAGE_URL_RE.search(value)
    if not match:
        return '', ''

    original = match.group(1)
    normalized = re.sub(r'[\'"]', '', original)
    normalized = re.sub(r'\?.*$', '', normalized)
    return original, normalized


def is_image_supported(url):
    """Remote and base64 images can't be added to a spritesheet."""
    return not UNSUPPORTED_URL_RE.match(url)


def is_retina_image(url):
    return bool(RETINA_RE.search(url))


def get_retina_ratio(url):
    match = RETINA_RE.search(url)
    if not match:
        return 1
    return int(match.group(1))


def _last_match(regexes, value):
    match = None
    for regex in regexes:
        found = regex.search(value)
        if found:
            match = found.group(0)
    return match


def get_color(value):
    """Return the solid color of a ``background`` value, or None."""
    return _last_match(COLOR_RES, value)


def get_repeat(value):
    return _last_match(REPEAT_RES, value)


def mask_group(label):
    """Escape the group delimiter so the label can be joined into a key.
    '%' is escaped first, so every label comes back unchanged."""
    return label.replace('%', '%25').replace(GROUP_DELIMITER, GROUP_MASK)


def unmask_group(label):
    return unquote(label)


def partition_key(groups):
    return GROUP_DELIMITER.join([GROUP_SENTINEL] +
                                [mask_group(g) for g in groups])


def partition_groups(key):
    """Return the group labels of a partition key, without the sentinel and
    the type segments."""
    return [unmask_group(g) for g in key.split(GROUP_DELIMITER)[2:]]


def make_spritesheet_path(config, spritesheet):
    """Return ``sprite_path/sprite.<groups>.<extension>``."""
    filename = GROUP_DELIMITER.join(['sprite'] + list(spritesheet.groups) +
                                    [spritesheet.extension])
    return os.path.normpath(os.path.join(config.sprite_path, filename))


def is_token(comment):
    """Check whether the serialized comment is a placeholder token."""
    return COMMENT_TOKEN_PREFIX in comment


def px(value):
    return '%spx' % format_number(value)


def update_rule(rule, token, image):
    """Insert the sprite declarations after the token.

    :param rule: Rule holding the token.
    :param token: Placeholder :class:`~csssprites.css.Comment`.
    :param image: :class:`~csssprites.models.ImageRecord` with its sprite
                  information already mapped.
    """
    ratio = image.ratio
    coords = image.coords

    declarations = [
        Declaration(BACKGROUND_IMAGE, 'url(%s)' % image.sprite_url),
        Declaration('background-position', '%s %s' % (
            px(-(coords['x'] / ratio)), px(-(coords['y'] / ratio)))),
    ]

    if image.retina:
        declarations.append(Declaration('background-size', '%s %s' % (
            px(image.sprite_width / ratio), px(image.sprite_height / ratio))))

    anchor = token
    for declaration in declarations:
        declaration.before = token.before
        anchor = rule.insert_after(anchor, declaration)


async def resolve(value):
    """Await ``value`` if it is awaitable, hooks and filters may be either."""
    if inspect.isawaitable(value):
        return await value
    return value


def write_spritesheet(spritesheet):
    directory = os.path.dirname(spritesheet.path)
    if directory and not os.path.exists(directory):
        os.makedirs(directory, exist_ok=True)

    contents = spritesheet.image
    if isinstance(contents, str):
        contents = contents.encode('utf-8')

    with open(spritesheet.path, 'wb') as sprite_file:
        sprite_file.write(contents)


class SpriteManager(object):

    def __init__(self, root, config):
        """SpriteManager constructor.

        :param root: :class:`~csssprites.css.Root` of the stylesheet, it will
                     be modified in place.
        :param config: :class:`~csssprites.config.ConfigManager` instance.
        """
        self.root = root
        self.config = config
        self.filters = self.prepare_filter_by()
        self.groupers = self.prepare_group_by()

    def log(self, message, *args):
        """Log the message, as INFO if verbose or DEBUG otherwise."""
        level = logging.INFO if self.config.verbose else logging.DEBUG
        logger.log(level, message, *args)

    def prepare_filter_by(self):
        return [self.exists] + self.config.filter_by

    def prepare_group_by(self):
        groupers = [self.group_by_type]
        if self.config.retina:
            groupers.append(self.group_by_retina)
        return groupers + self.config.group_by

    async def exists(self, image):
        if await asyncio.to_thread(os.path.isfile, image.path):
            return True
        self.log("Skip %s because doesn't exist.", image.url)
        return False

    def group_by_type(self, image):
        if os.path.splitext(image.path)[1].lower().startswith('.svg'):
            return TYPE_VECTOR
        return TYPE_RASTER

    def group_by_retina(self, image):
        if image.retina:
            return '@%dx' % image.ratio
        return None

    @property
    def stylesheet_dir(self):
        if self.root.source_file:
            return os.path.dirname(self.root.source_file)
        return os.getcwd()

    def extract_images(self):
        """Return one :class:`~csssprites.models.ImageRecord` for every
        distinct image referenced by a background declaration."""
        self.log('Extracting the images...')

        images = []
        for decl in self.root.walk_decls(BACKGROUND_RE):
            original_url, url = get_image_url(decl.value)
            if not url:
                continue

            if not is_image_supported(url):
                self.log("Skip %s because isn't supported.", url)
                continue

            if self.config.relative_to == RELATIVE_TO_RULE:
                style_file_path = decl.source_file or self.root.source_file
            else:
                style_file_path = self.root.source_file

            image = ImageRecord(url=url, original_url=original_url,
                                style_file_path=style_file_path)

            if self.config.retina and is_retina_image(url):
                image.retina = True
                image.ratio = get_retina_ratio(url)

            if ABSOLUTE_URL_RE.match(url):
                image.path = os.path.abspath(self.config.base_path + url)
            elif style_file_path:
                image.path = os.path.abspath(
                    os.path.join(os.path.dirname(style_file_path), url))
            else:
                image.path = os.path.abspath(url)

            images.append(image)

        # Remove duplicates, the first reference wins
        unique = {}
        for image in images:
            unique.setdefault(image.path, image)
        return list(unique.values())

    async def apply_filter_by(self, images):
        """Drop the images rejected by any filter. Filters are applied in
        order and every filter checks one image at a time."""
        self.log('Applying the filters...')

        for filter_fn in self.filters:
            accepted = []
            for image in images:
                if await self._accepts(filter_fn, image):
                    accepted.append(image)
            images = accepted
        return images

    async def _accepts(self, filter_fn, image):
        try:
            return bool(await resolve(filter_fn(image)))
        except Exception as e:
            logger.debug('Filter %r rejected %s: %s', filter_fn, image.url, e)
            return False

    async def apply_group_by(self, images):
        """Append the label of every classifier, in order, to the groups of
        each image."""
        self.log('Applying the groups...')

        for group_fn in self.groupers:
            labels = await asyncio.gather(
                *[self._classify(group_fn, image) for image in images])
            for image, label in zip(images, labels):
                if label:
                    image.groups.append(str(label))
        return images

    async def _classify(self, group_fn, image):
        try:
            return await resolve(group_fn(image))
        except Exception as e:
            logger.debug('Group %r skipped %s: %s', group_fn, image.url, e)
            return None

    def set_tokens(self, images):
        """Replace the background declarations of the sprited images with
        placeholder comments."""
        by_url = {}
        for image in images:
            by_url.setdefault(image.url, image)

        for decl in self.root.walk_decls(BACKGROUND_RE):
            rule = decl.parent
            if rule is None:
                continue

            image = by_url.get(get_image_url(decl.value)[1])
            if image is None:
                continue

            # These are generated again once the sprite is ready
            for extra in list(rule.walk_decls(BACKGROUND_EXTRAS_RE)):
                extra.remove()

            if decl.prop.lower() == BACKGROUND:
                color = get_color(decl.value)
                if color:
                    rule.insert_after(decl, Declaration(
                        'background-color', color, before=ONE_SPACE))

                repeat = get_repeat(decl.value)
                if repeat and self.config.extract_repeat:
                    rule.insert_after(decl, Declaration(
                        'background-repeat', repeat, before=ONE_SPACE))

            token = Comment(image.url,
                            left=ONE_SPACE + COMMENT_TOKEN_PREFIX,
                            before=decl.before,
                            source_file=decl.source_file)
            rule.insert_after(decl, token)
            image.token = str(token)
            decl.remove()

        return images

    async def run_packers(self, images):
        """Pack every partition of images and return the spritesheets in
        partition key order."""
        self.log('Generating the spritesheets...')

        partitions = {}
        for image in images:
            partitions.setdefault(partition_key(image.groups), []).append(image)

        keys = sorted(partitions)
        spritesheets = await asyncio.gather(
            *[self._pack(key, partitions[key]) for key in keys])
        return list(spritesheets)

    async def _pack(self, key, images):
        segments = key.split(GROUP_DELIMITER)
        if segments[1:2] == [TYPE_VECTOR]:
            factory = vector_factory
        else:
            factory = raster_factory

        spritesheet = await factory(self.config, images)
        spritesheet.groups = partition_groups(key)
        return spritesheet

    async def save_spritesheets(self, spritesheets):
        """Save the spritesheets one after the other."""
        self.log('Saving the spritesheets...')
        hook = self.config.hooks.get('on_save_spritesheet')

        for spritesheet in spritesheets:
            if callable(hook):
                result = await resolve(hook(self.config, spritesheet))
            else:
                result = make_spritesheet_path(self.config, spritesheet)

            if isinstance(result, (str, os.PathLike)):
                spritesheet.path = os.fspath(result)
            elif result:
                spritesheet.update(result)
            else:
                spritesheet.path = None

            if not spritesheet.path:
                raise SpritesheetPathError(
                    'Spritesheet requires a relative path.')

            spritesheet.path = spritesheet.path.replace('\\', '/')
            self.log('Creating %s...', spritesheet.path)
            await asyncio.to_thread(write_spritesheet, spritesheet)

        return spritesheets

    def map_spritesheet_props(self, images, spritesheets):
        by_path = dict((image.path, image) for image in images)

        for spritesheet in spritesheets:
            for path, coords in spritesheet.coordinates.items():
                image = by_path.get(path)
                if image is None:
                    continue
                image.coords = coords
                image.sprite_path = spritesheet.path
                image.sprite_width = spritesheet.properties['width']
                image.sprite_height = spritesheet.properties['height']

        return images

    def update_references(self, images):
        """Replace every placeholder comment with the sprite declarations."""
        self.log('Replacing the references...')
        hook = self.config.hooks.get('on_update_rule')
        stylesheet_path = self.config.stylesheet_path or self.stylesheet_dir

        by_url = {}
        for image in images:
            by_url.setdefault(image.url, image)

        for comment in self.root.walk_comments():
            if not is_token(str(comment)):
                continue

            image = by_url.get(comment.text)
            if image is None:
                continue

            rule = comment.parent
            image.sprite_url = os.path.relpath(
                image.sprite_path, stylesheet_path).replace(os.sep, '/')

            if callable(hook):
                hook(rule, comment, image)
            else:
                update_rule(rule, comment, image)

            comment.remove()

        return images

    async def process(self):
        """Run the whole pipeline and return the saved spritesheets."""
        try:
            images = self.extract_images()
            images = await self.apply_filter_by(images)
            images = await self.apply_group_by(images)
            images = self.set_tokens(images)
            spritesheets = await self.run_packers(images)
            spritesheets = await self.save_spritesheets(spritesheets)
            images = self.map_spritesheet_props(images, spritesheets)
            self.update_references(images)
        except Exception as e:
            logger.error('An error occurred while processing files - %s', e)
            raise

        self.log('%d %s generated.', len(spritesheets),
                 'spritesheet' if len(spritesheets) == 1 else 'spritesheets')
        return spritesheets


def make_config(options=None):
    if isinstance(options, ConfigManager):
        return options
    return ConfigManager(priority=dict(options or {}))


async def process(root, options=None):
    """Rewrite ``root`` in place and return the generated spritesheets.

    :param root: :class:`~csssprites.css.Root` to rewrite.
    :param options: Dictionary of settings or a
                    :class:`~csssprites.config.ConfigManager`.
    """
    manager = SpriteManager(root, make_config(options))
    return await manager.process()


def process_file(stylesheet, output=None, options=None):
    """Read ``stylesheet``, sprite it and return the rewritten CSS. The CSS
    is also written to ``output`` when given."""
    stylesheet = os.path.abspath(stylesheet)
    with open(stylesheet, 'r', encoding='utf-8') as css_file:
        root = parse(css_file.read(), source_file=stylesheet)

    asyncio.run(process(root, options))
    css = str(root)

    if output:
        directory = os.path.dirname(os.path.abspath(output))
        if not os.path.exists(directory):
            os.makedirs(directory)
        with open(output, 'w', encoding='utf-8') as css_file:
            css_file.write(css)

    return css
