import os
import sys
import logging
import platform
from optparse import OptionParser, OptionGroup

from PIL import __version__ as PIL_VERSION

from .config import ConfigManager, DEFAULT_SETTINGS, load_file_config
from .core import process_file
from .exceptions import (CssSyntaxError, InvalidImageAlgorithmError,
                         InvalidImageOrderingError, InvalidRelativeToError,
                         PackingError, SpritesheetPathError,
                         StylesheetNotFoundError, UnreadableImageError)
from .version import __version__


def build_parser():
    parser = OptionParser(usage="usage: %prog [options] stylesheet [output]")
    parser.add_option("--sprite-path", dest="sprite_path", metavar='DIR',
            help="output directory for the spritesheets (default: ./)")
    parser.add_option("--stylesheet-path", dest="stylesheet_path",
            metavar='DIR',
            help=("directory the sprite urls are made relative to "
                  "(default: the stylesheet directory)"))
    parser.add_option("--base-path", dest="base_path", metavar='DIR',
            help="directory used to resolve urls starting with / (default: ./)")
    parser.add_option("--relative-to", dest="relative_to", type="choice",
            choices=['file', 'rule'],
            help="resolve relative urls from the file or from each rule")
    parser.add_option("--retina", dest="retina", action='store_true',
            help="group @2x, @3x... images in their own spritesheets")
    parser.add_option("--extract-repeat", dest="extract_repeat",
            action='store_true',
            help="keep the repeat of background shorthands")
    parser.add_option("-v", "--verbose", dest="verbose", action='store_true',
            help="log every step of the process")
    parser.add_option("--debug", dest="debug", action='store_true',
            help="print details about unexpected errors")
    parser.add_option("--version", action="store_true", dest="version",
            help="show program's version number and exit")

    group = OptionGroup(parser, "Raster Options")
    group.add_option("-a", "--algorithm", dest="algorithm", metavar='NAME',
            help=("allocation algorithm: binary-tree, top-down, "
                  "top-down-right, left-right, left-right-bottom, "
                  "diagonal. (default: binary-tree)"))
    group.add_option("--ordering", dest="ordering", metavar='NAME',
            help=("ordering criteria: maxside, width, height or "
                  "area (default: maxside)"))
    group.add_option("-p", "--padding", dest="padding", type=int,
            help="pixels between images")
    group.add_option("--png8", action="store_true", dest="png8",
            help="the output image format will be png8 instead of png32")
    parser.add_option_group(group)

    group = OptionGroup(parser, "Vector Options")
    group.add_option("--layout", dest="layout", metavar='NAME',
            help="allocation algorithm for SVG images (default: binary-tree)")
    group.add_option("--precision", dest="precision", type=int,
            help="decimals kept in SVG coordinates (default: 5)")
    parser.add_option_group(group)

    return parser


def options_to_settings(options):
    """Convert the parsed options into a settings dictionary."""
    settings = dict(options.__dict__)

    raster = {}
    for key in ('algorithm', 'ordering', 'padding'):
        if settings.get(key) is not None:
            raster[key] = settings[key]
    if settings.get('png8'):
        raster['export_opts'] = {'png8': True}
    settings['raster'] = raster

    vector = {}
    if settings.get('layout') is not None:
        vector['layout'] = settings['layout']
    if settings.get('precision') is not None:
        vector['precision'] = settings['precision']
    settings['vector'] = vector

    return settings


def main(argv=None):
    parser = build_parser()
    (options, args) = parser.parse_args(argv)

    if options.version:
        sys.stdout.write("%s\n" % __version__)
        sys.exit(0)

    if not len(args):
        parser.error("You must provide the stylesheet to process.")

    if len(args) > 2:
        parser.error("You must provide one stylesheet and one output at most.")

    logging.basicConfig(format='%(message)s',
                        level=logging.INFO if options.verbose
                        else logging.WARNING)

    source = os.path.abspath(args[0])
    output = os.path.abspath(args[1]) if len(args) == 2 else None

    # Get configuration from file
    file_config = load_file_config(os.path.dirname(source))

    config = ConfigManager(file_config, priority=options_to_settings(options),
                           defaults=DEFAULT_SETTINGS)

    try:
        if not os.path.isfile(source):
            raise StylesheetNotFoundError(source)
        css = process_file(source, output=output, options=config)
    except StylesheetNotFoundError as e:
        sys.stderr.write("Error: Stylesheet not found %s.\n" % e.args[0])
        sys.exit(e.error_code)
    except CssSyntaxError as e:
        sys.stderr.write("Error: Invalid stylesheet %s.\n" % e)
        sys.exit(e.error_code)
    except SpritesheetPathError as e:
        sys.stderr.write("Error: %s\n" % e.args[0])
        sys.exit(e.error_code)
    except InvalidRelativeToError as e:
        sys.stderr.write("Error: Invalid relative_to %s.\n" % e.args[0])
        sys.exit(e.error_code)
    except InvalidImageAlgorithmError as e:
        sys.stderr.write("Error: Invalid image algorithm %s.\n" % e.args[0])
        sys.exit(e.error_code)
    except InvalidImageOrderingError as e:
        sys.stderr.write("Error: Invalid image ordering %s.\n" % e.args[0])
        sys.exit(e.error_code)
    except UnreadableImageError as e:
        sys.stderr.write("Error: Unable to read the image %s.\n" % e.args[0])
        sys.exit(e.error_code)
    except PackingError as e:
        sys.stderr.write("Error: Unable to allocate %s, try another "
                         "ordering.\n" % e.args[0])
        sys.exit(e.error_code)
    except Exception:
        if config.debug:
            sys.stderr.write("csssprites version: %s\n" % __version__)
            sys.stderr.write("Pillow version: %s\n" % PIL_VERSION)
            sys.stderr.write("Platform: %s\n" % platform.platform())
            sys.stderr.write("Config: %s\n" % config.sources)
            sys.stderr.write("Args: %s\n" % sys.argv)
            sys.stderr.write("\n")

        sys.stderr.write("Error: Unknown Error.\n")
        sys.exit(1)

    if output is None:
        sys.stdout.write(css)


if __name__ == "__main__":
    main()
