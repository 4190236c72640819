"""
Show number of tags per type and file, and how much the files agree
"""

# License: BSD3

from collections import Counter

import pandas as pd
from tabulate import tabulate

from .args import add_usual_input_args, big_banner, read_session
from ..session import Agreement


NAME = 'count'

TAG_COLUMNS = ['file', 'type', 'kind', 'id', 'start', 'end']


def config_argparser(parser):
    """
    Subcommand flags.

    You should create and pass in the subparser to which the flags
    are to be added.
    """
    add_usual_input_args(parser)
    parser.set_defaults(func=main)


def create_df(session):
    """
    One row per tag in the session (gold standard included)

    :rtype: pandas.DataFrame
    """
    rows = []
    for tag in session.store.extents():
        rows.append((tag.file_name, tag.type, 'extent', tag.tag_id,
                     tag.start, tag.end))
    for tag in session.store.links():
        rows.append((tag.file_name, tag.type, 'link', tag.tag_id,
                     None, None))
    return pd.DataFrame(rows, columns=TAG_COLUMNS)


def tag_counts(session):
    """
    Table of tag counts, one row per tag type and one column per file
    (None if there are no tags at all)
    """
    df = create_df(session)
    if df.empty:
        return None
    return pd.crosstab(df['type'], df['file'])


def agreement_counts(session):
    """
    For each extent type, number of offsets at each agreement level

    :rtype: list of rows, as in `AGREEMENT_HEADERS`
    """
    rows = []
    for elem in session.schema.extent_elements():
        levels = Counter(session.agreement_map(elem.name).values())
        rows.append([elem.name] + [levels[a] for a in Agreement
                                   if a != Agreement.anchor])
    return rows


AGREEMENT_HEADERS = ['type'] + [a.value for a in Agreement
                                if a != Agreement.anchor]


def main(args):
    """
    Subcommand main.

    You shouldn't need to call this yourself if you're using
    `config_argparser`
    """
    session, _ = read_session(args)
    counts = tag_counts(session)
    print(big_banner('Tags'))
    if counts is None:
        print('(no tags)')
    else:
        print(tabulate(counts, headers='keys'))
    print()
    print(big_banner('Agreement (characters)'))
    print(tabulate(agreement_counts(session), headers=AGREEMENT_HEADERS))
