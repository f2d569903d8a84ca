class SpritesheetPathError(Exception):
    """Raised if a spritesheet ends up without an output path."""
    error_code = 2


class StylesheetNotFoundError(Exception):
    """Raised if the stylesheet to process doesn't exist."""
    error_code = 3


class InvalidRelativeToError(Exception):
    """Raised if ``relative_to`` is neither ``file`` nor ``rule``."""
    error_code = 4


class InvalidImageAlgorithmError(Exception):
    """Raised if the provided algorithm name is invalid."""
    error_code = 5


class InvalidImageOrderingError(Exception):
    """Raised if the provided ordering is invalid."""
    error_code = 6


class UnreadableImageError(Exception):
    """Raised if a source image can't be decoded."""
    error_code = 7


class CssSyntaxError(Exception):
    """Raised if the stylesheet can't be parsed."""
    error_code = 8

    def __init__(self, message, source_file=None, position=None):
        super(CssSyntaxError, self).__init__(message, source_file, position)
        self.message = message
        self.source_file = source_file
        self.position = position

    def __str__(self):
        location = self.source_file or '<css input>'
        if self.position is not None:
            location = '%s:%s' % (location, self.position)
        return '%s: %s' % (location, self.message)


class PackingError(Exception):
    """Raised if an image can't be allocated inside the canvas."""
    error_code = 9
