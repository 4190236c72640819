"""
adjud-util subcommands
"""

# License: BSD3

import argparse
import logging

from . import (count,
               dump,
               gold)
from ..util import add_subcommand

# argparse has no way to group subcommands into sections, so we just
# list them in the epilog
SUBCOMMAND_SECTIONS = [
    ('Querying', [
        count,
        dump,
    ]),
    ('Building', [
        gold,
    ]),
]

SUBCOMMANDS = []
for descr, section in SUBCOMMAND_SECTIONS:
    SUBCOMMANDS.extend(section)


def _epilog():
    lines = []
    for descr, section in SUBCOMMAND_SECTIONS:
        lines.append('%s: %s' % (descr, ', '.join(m.NAME for m in section)))
    return '\n'.join(lines)


def make_parser():
    """
    Argument parser for adjud-util
    """
    arg_parser = argparse.ArgumentParser(
        description='Adjudication toolkit',
        epilog=_epilog(),
        formatter_class=argparse.RawDescriptionHelpFormatter)
    subparsers = arg_parser.add_subparsers(dest='subcommand',
                                           help='sub-command help')
    subparsers.required = True
    for module in SUBCOMMANDS:
        subparser = add_subcommand(subparsers, module)
        module.config_argparser(subparser)
    return arg_parser


def main(argv=None):
    """
    adjud-util entry point
    """
    args = make_parser().parse_args(argv)
    verbose = getattr(args, 'verbose', 0)
    logging.basicConfig(level=logging.DEBUG if verbose > 1 else
                        logging.INFO if verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')
    args.func(args)
