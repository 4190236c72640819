"""
Dump overlaps between the gold standard and the annotator files, and
the links found relevant to the gold standard
"""

# License: BSD3

from tabulate import tabulate

from .args import add_usual_input_args, big_banner, read_session


NAME = 'dump'


def config_argparser(parser):
    """
    Subcommand flags.

    You should create and pass in the subparser to which the flags
    are to be added.
    """
    add_usual_input_args(parser)
    parser.set_defaults(func=main)


def dump_overlaps(session):
    "overlap records as a table"
    return tabulate(session.store.overlaps(),
                    headers=['gold', 'type', 'file', 'id'])


def dump_links(session, link_type):
    """
    Relevant links of a type, with their gold standard anchors
    """
    resolution = session.links.resolve_links_of_type(link_type)
    rows = [[r.file_name, r.tag_id, r.link.from_id, r.link.to_id,
             r.from_id, r.to_id, '*' if r.ambiguous() else '']
            for r in resolution.links]
    return tabulate(rows, headers=['file', 'id', 'from', 'to',
                                   'gold from', 'gold to', 'ambiguous'])


def main(args):
    """
    Subcommand main.

    You shouldn't need to call this yourself if you're using
    `config_argparser`
    """
    session, _ = read_session(args)
    print(big_banner('Overlaps'))
    print(dump_overlaps(session))
    for elem in session.schema.link_elements():
        print()
        print(big_banner(elem.name))
        print(dump_links(session, elem.name))
