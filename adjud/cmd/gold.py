"""
Build a gold standard from what all annotators agree on

Extents are accepted when every annotator file has one of the same type
over exactly the same span; links are then accepted when every
annotator file has one of the same type between the same gold
standard extents.
"""

# License: BSD3

from collections import OrderedDict
import sys

from .args import (add_usual_input_args, add_usual_output_args,
                   read_session)
from ..mae import write_gold_standard
from ..session import SessionError


NAME = 'gold'


def config_argparser(parser):
    """
    Subcommand flags.

    You should create and pass in the subparser to which the flags
    are to be added.
    """
    add_usual_input_args(parser)
    add_usual_output_args(parser)
    parser.set_defaults(func=main)


def unanimous_extents(session):
    """
    Extents that every annotator file has (same type, same span), as
    found in the first annotator file. Spans the gold standard already
    covers are left out.
    """
    found = []
    for elem in session.schema.extent_elements():
        by_span = OrderedDict()
        for tag in session.store.extents(tag_type=elem.name):
            if tag.file_name == session.gold_name or\
                    tag.is_non_consuming():
                continue
            by_span.setdefault((tag.start, tag.end), OrderedDict())\
                .setdefault(tag.file_name, tag)
        for span in sorted(by_span):
            tags = by_span[span]
            if not all(f in tags for f in session.files):
                continue
            first = tags[session.files[0]]
            if session.overlaps_of(first.file_name, first.type,
                                   first.tag_id):
                continue
            found.append(first)
    return found


def unanimous_links(session, link_type):
    """
    Links that every annotator file has between the same gold standard
    extents, and which the gold standard lacks
    """
    resolution = session.links.resolve_links_of_type(link_type)
    by_anchors = OrderedDict()
    for resolved in resolution.links:
        key = (resolved.from_id, resolved.to_id)
        by_anchors.setdefault(key, OrderedDict())\
            .setdefault(resolved.file_name, resolved)
    found = []
    for links in by_anchors.values():
        if session.gold_name in links:
            continue
        if all(f in links for f in session.files):
            found.append(links[session.files[0]])
    return found


def main(args):
    """
    Subcommand main.

    You shouldn't need to call this yourself if you're using
    `config_argparser`
    """
    session, text = read_session(args)
    count = 0
    try:
        for tag in unanimous_extents(session):
            session.accept_tag(tag.file_name, tag.type, tag.tag_id)
            count += 1
        for elem in session.schema.link_elements():
            for resolved in unanimous_links(session, elem.name):
                session.accept_tag(resolved.file_name, resolved.type,
                                   resolved.tag_id)
                count += 1
    except SessionError as oops:
        sys.exit(str(oops))
    write_gold_standard(args.output, session, text or '')
    print('Accepted %d tags' % count, file=sys.stderr)
    print('Gold standard written to', args.output, file=sys.stderr)
