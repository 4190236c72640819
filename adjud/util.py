"""
Miscellaneous utility functions
"""

# License: BSD3

import re


_DIGITS = re.compile(r'(\d+)')


def natural_key(tag_id):
    """
    Sort key for tag ids which puts numeric parts in numeric order,
    so that `E2` sorts before `E10`
    """
    parts = _DIGITS.split(tag_id or '')
    return [int(p) if i % 2 else p for i, p in enumerate(parts)]


def add_subcommand(subparsers, module):
    """
    Register one of the `adjud.cmd` modules as an adjud-util
    subcommand.

    The command is called `module.NAME` (or the last part of the module
    name if there is no NAME). The module docstring supplies the help:
    its first line is the one-line summary shown in `adjud-util -h`,
    the rest becomes the epilog of the subcommand's own help.

    :rtype: the subparser, for the module's `config_argparser` to fill
    """
    if 'NAME' in module.__dict__:
        module_name = module.NAME
    else:
        module_name = module.__name__.split('.')[-1]

    module_help_parts = [x for x in module.__doc__.strip().split('\n', 1)
                         if x]
    if len(module_help_parts) > 1:
        module_help = module_help_parts[0]
        module_epilog = '\n'.join(module_help_parts[1:]).strip()
    else:
        module_help = module.__doc__.strip()
        module_epilog = None
    return subparsers.add_parser(module_name,
                                 help=module_help,
                                 epilog=module_epilog)
