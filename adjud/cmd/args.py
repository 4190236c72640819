"""
Command line options
"""

# License: BSD3

import os
import sys

from ..annotation import GOLD_STANDARD
from ..dtd import DtdException, read_dtd
from ..mae import MaeException, read_annotation_file
from ..schema import SchemaError
from ..session import AdjudicationSession, SessionError
from ..store import StoreError


def add_usual_input_args(parser):
    """
    Augment a subcommand argparser with the task DTD, the annotator
    files and (optionally) a gold standard to start from
    """
    parser.add_argument('dtd', metavar='DTD',
                        help='task definition')
    parser.add_argument('files', metavar='FILE', nargs='+',
                        help='annotator files')
    parser.add_argument('--gold', metavar='FILE',
                        help='gold standard saved earlier')
    parser.add_argument('--verbose', '-v', action='count', default=0)


def add_usual_output_args(parser):
    """
    Augment a subcommand argparser with an output file
    """
    parser.add_argument('--output', '-o', metavar='FILE',
                        default=GOLD_STANDARD,
                        help='where to save the gold standard '
                        '(default %(default)s)')


def read_session(args):
    """
    Set up an adjudication session from the command line arguments.

    Annotator files are known by their base name, and the text is
    taken from the first one. Stops the program if anything cannot be
    read.

    :rtype: (AdjudicationSession, string)
    """
    try:
        schema = read_dtd(args.dtd)
        session = AdjudicationSession()
        session.load_schema(schema)
        session.start_task()
        text = None
        for path in args.files:
            if args.verbose:
                print('Reading', path, file=sys.stderr)
            doc = read_annotation_file(path)
            session.add_file(os.path.basename(path), doc.tags)
            if text is None:
                text = doc.text
        if args.gold:
            if args.verbose:
                print('Reading', args.gold, file=sys.stderr)
            session.add_gold_standard(read_annotation_file(args.gold).tags)
    except (IOError, DtdException, MaeException, SchemaError,
            SessionError, StoreError) as oops:
        sys.exit(str(oops))
    return session, text


def big_banner(string, width=60):
    """
    Convert a string into a large banner ::

       foo
       ========================================

    """
    return "\n".join([string, "=" * width, ""])
