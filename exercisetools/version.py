import argparse
from importlib import metadata


def add_version_arg(parser: argparse.ArgumentParser) -> None:
    """Adds the --version argument to the parser"""
    # Fall back to "unknown", e.g., when running from a source checkout
    # that has not been installed.
    try:
        version = metadata.version('exercisetools')
    except metadata.PackageNotFoundError:
        version = 'unknown'

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {version}',
    )
