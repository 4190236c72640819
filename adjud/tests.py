# -*- coding: utf-8 -*-
#
# License: BSD3
# pylint: disable=too-many-public-methods, invalid-name

"""
Tests for adjud
"""

import os
import shutil
import tempfile
import unittest

import pytest

from adjud.annotation import Span, ExtentTag, GOLD_STANDARD
from adjud.dtd import DtdException, parse_dtd
from adjud.ids import IdAssigner
from adjud.links import (LinkAnchorResolver, closest_match, leftmost,
                         lowest_id)
from adjud.mae import (MaeException, gold_standard_xml, parse_annotation,
                       read_annotation_file, write_gold_standard)
from adjud.overlap import OverlapResolver
from adjud.schema import (Attribute, AttributeKind, ExtentElem, LinkElem,
                          MalformedTagError, Schema, SchemaError,
                          UnknownTagTypeError)
from adjud.session import (AdjudicationSession, Agreement, SessionError,
                           SessionState)
from adjud.store import (DuplicateTagError, StoreError, TagStore,
                         escape_attribute)
from adjud.util import natural_key


GOLD = GOLD_STANDARD


def mk_schema():
    "PERSON and ORG extents, MARRIED_TO links"
    return Schema('MarriageTask',
                  [ExtentElem('PERSON', non_consuming=True),
                   ExtentElem('ORG', prefix='O'),
                   LinkElem('MARRIED_TO', prefix='M')])


def extent(tag_id, start, end, text=''):
    "attributes for an extent tag"
    return {'id': tag_id, 'start': str(start), 'end': str(end),
            'text': text}


def link(tag_id, from_id, to_id):
    "attributes for a link tag"
    return {'id': tag_id, 'fromID': from_id, 'toID': to_id}


def mk_store():
    "empty store with the test schema"
    store = TagStore()
    store.define_schema(mk_schema())
    return store


# ---------------------------------------------------------------------
# spans
# ---------------------------------------------------------------------


class SpanTest(unittest.TestCase):
    "tests for adjud.annotation.Span"

    def assertOverlap(self, expected, pair1, pair2, **kwargs):
        "`pair1.overlaps(pair2) == expected` (modulo boxing)"
        o = Span(*pair1).overlaps(Span(*pair2), **kwargs)
        self.assertTrue(o)
        self.assertEqual(Span(*expected), o)

    def assertNotOverlap(self, pair1, pair2, **kwargs):
        "`pair1` and `pair2` do not overlap"
        self.assertIsNone(Span(*pair1).overlaps(Span(*pair2), **kwargs))

    def test_overlap(self):
        self.assertNotOverlap((0, 5), (6, 8))
        self.assertNotOverlap((6, 8), (0, 5))
        # touching edges only count in inclusive mode
        self.assertNotOverlap((0, 5), (5, 8))
        self.assertOverlap((5, 5), (0, 5), (5, 8), inclusive=True)
        self.assertOverlap((2, 4), (0, 5), (2, 4))
        self.assertOverlap((3, 5), (3, 9), (0, 5))

    def test_enclose(self):
        self.assertTrue(Span(0, 10).encloses(Span(0, 10)))
        self.assertTrue(Span(0, 10).encloses(Span(3, 4)))
        self.assertFalse(Span(3, 4).encloses(Span(0, 10)))
        self.assertFalse(Span(3, 4).encloses(None))

    def test_offsets(self):
        self.assertEqual([5, 6, 7, 8, 9], list(Span(5, 10).offsets()))
        self.assertEqual(5, Span(5, 10).length())


def test_extent_tag_non_consuming():
    tag = ExtentTag('f', 'PERSON', 'P1', -1, 12, {})
    assert tag.is_non_consuming()
    assert tag.end == -1
    assert tag.span() is None
    assert list(tag.offsets()) == [-1]


def test_natural_key():
    ids = ['G10', 'G2', 'G1', 'F3']
    assert sorted(ids, key=natural_key) == ['F3', 'G1', 'G2', 'G10']


# ---------------------------------------------------------------------
# schema
# ---------------------------------------------------------------------


class SchemaTest(unittest.TestCase):
    "tests for adjud.schema"

    def test_core_attributes(self):
        elem = ExtentElem('PERSON', [Attribute('kind')])
        self.assertEqual(['id', 'start', 'end', 'text', 'kind'],
                         elem.attribute_names())
        self.assertEqual(['id', 'fromID', 'fromText', 'toID', 'toText'],
                         LinkElem('MARRIED_TO').attribute_names())

    def test_prefix(self):
        self.assertEqual('P', ExtentElem('person').id_prefix())
        self.assertEqual('Per', ExtentElem('PERSON', prefix='Per').id_prefix())
        att = Attribute('id', AttributeKind.identifier, prefix='X')
        self.assertEqual('X', ExtentElem('PERSON', [att]).id_prefix())

    def test_lookup(self):
        schema = mk_schema()
        self.assertEqual(['PERSON', 'ORG', 'MARRIED_TO'],
                         [e.name for e in schema.elements()])
        self.assertEqual(['PERSON'],
                         [e.name for e in schema.non_consuming_elements()])
        self.assertEqual(['MARRIED_TO'],
                         [e.name for e in schema.link_elements()])
        self.assertIsNone(schema.get('NOPE'))
        self.assertRaises(UnknownTagTypeError, lambda: schema['NOPE'])
        self.assertRaises(KeyError, lambda: schema['NOPE'])

    def test_duplicate_elements(self):
        self.assertRaises(SchemaError, Schema, 'T',
                          [ExtentElem('A'), LinkElem('A')])

    def test_validate_extent(self):
        schema = Schema('T', [ExtentElem('PERSON', [
            Attribute('kind', AttributeKind.with_default, default='NAM')])])
        row, start, end = schema.validate('PERSON',
                                          {'id': 'P1', 'start': '3',
                                           'end': '7', 'bogus': 'x'})
        self.assertEqual((3, 7), (start, end))
        self.assertEqual(['id', 'start', 'end', 'text', 'kind'], list(row))
        self.assertEqual('NAM', row['kind'])
        self.assertEqual('', row['text'])

    def test_validate_non_consuming(self):
        row, start, end = mk_schema().validate('PERSON',
                                               extent('P1', -1, 40))
        self.assertEqual((-1, -1), (start, end))
        self.assertEqual('-1', row['end'])

    def test_validate_bad(self):
        schema = mk_schema()
        for attrs in [extent('P1', 'x', 4),
                      extent('P1', 5, 4),
                      extent('', 0, 4),
                      {'id': 'P1', 'start': '0'}]:
            self.assertRaises(MalformedTagError,
                              schema.validate, 'PERSON', attrs)
        self.assertRaises(MalformedTagError,
                          schema.validate, 'MARRIED_TO',
                          {'id': 'M1', 'fromID': 'P1'})


# ---------------------------------------------------------------------
# dtd
# ---------------------------------------------------------------------

DTD = """<?xml version='1.0' encoding='UTF-8'?>
<!ENTITY name "MarriageTask">

<!-- people -->
<!ELEMENT PERSON ( #PCDATA ) >
<!ATTLIST PERSON id ID prefix="P" #REQUIRED >
<!ATTLIST PERSON start #IMPLIED >
<!ATTLIST PERSON kind ( NAM | NOM ) "NAM" >
<!ATTLIST PERSON comment CDATA #IMPLIED >

<!ELEMENT MARRIED_TO EMPTY >
<!ATTLIST MARRIED_TO id ID prefix="M" #REQUIRED >
<!ATTLIST MARRIED_TO fromID IDREF #REQUIRED >
<!ATTLIST MARRIED_TO toID IDREF #REQUIRED >
"""


class DtdTest(unittest.TestCase):
    "tests for adjud.dtd"

    def test_elements(self):
        schema = parse_dtd(DTD)
        self.assertEqual('MarriageTask', schema.name)
        self.assertEqual(['PERSON', 'MARRIED_TO'],
                         [e.name for e in schema.elements()])
        person = schema['PERSON']
        self.assertTrue(person.is_extent())
        self.assertTrue(person.non_consuming)
        self.assertTrue(schema['MARRIED_TO'].is_link())

    def test_attributes(self):
        schema = parse_dtd(DTD)
        person = schema['PERSON']
        self.assertEqual(['id', 'start', 'end', 'text', 'kind', 'comment'],
                         person.attribute_names())
        kind = person.attribute('kind')
        self.assertEqual(AttributeKind.enumerated, kind.kind)
        self.assertEqual(('NAM', 'NOM'), kind.values)
        self.assertEqual('NAM', kind.default)
        self.assertEqual('P', person.id_prefix())
        self.assertEqual('M', schema['MARRIED_TO'].id_prefix())
        self.assertEqual(['id', 'fromID', 'fromText', 'toID', 'toText'],
                         schema['MARRIED_TO'].attribute_names())

    def test_default_name(self):
        schema = parse_dtd('<!ELEMENT X ( #PCDATA ) >')
        self.assertEqual('TASK', schema.name)
        self.assertFalse(schema['X'].non_consuming)

    def test_bad(self):
        self.assertRaises(DtdException, parse_dtd,
                          '<!ELEMENT PERSON ( #PCDATA >')
        self.assertRaises(DtdException, parse_dtd,
                          '<!ATTLIST PERSON id ID #REQUIRED >')
        self.assertRaises(DtdException, parse_dtd,
                          '<!ELEMENT X EMPTY >\n<!ELEMENT X EMPTY >')


# ---------------------------------------------------------------------
# store
# ---------------------------------------------------------------------


class StoreTest(unittest.TestCase):
    "tests for adjud.store"

    def setUp(self):
        self.store = mk_store()

    def test_offsets(self):
        self.store.insert_extent('f', 'PERSON', extent('P1', 5, 10))
        for offset in range(5, 10):
            self.assertEqual([('PERSON', 'P1')], self.store.ids_at('f', offset))
            self.assertTrue(self.store.tag_exists_at('f', offset))
        for offset in [4, 10]:
            self.assertEqual([], self.store.ids_at('f', offset))
            self.assertFalse(self.store.tag_exists_at('f', offset))
        self.assertEqual([], self.store.ids_at('g', 5))
        self.assertEqual((5, 9), self.store.extent_bounds('f', 'P1'))
        self.assertIsNone(self.store.extent_bounds('f', 'P2'))

    def test_non_consuming(self):
        self.store.insert_extent('f', 'PERSON', extent('P9', -1, -1))
        self.assertEqual([('PERSON', 'P9')], self.store.ids_at('f', -1))
        self.assertEqual(set([-1]), self.store.locations_of_file('f'))
        self.assertEqual({}, self.store.tags_in_span('PERSON', 0, 100))
        self.assertEqual({'f': ['P9']},
                         self.store.tags_in_span('PERSON', -1, -1))
        self.assertEqual({'PERSON': ['P9']},
                         self.store.file_tags_in_span('f', 0, 10))
        self.assertEqual({},
                         self.store.file_tags_in_span('f', 0, 10,
                                                      non_consuming=False))

    def test_file_tags_in_span(self):
        self.store.insert_extent('f', 'PERSON', extent('P1', 0, 5))
        self.store.insert_extent('f', 'PERSON', extent('P2', 8, 12))
        self.store.insert_extent('g', 'PERSON', extent('Q1', 3, 4))
        # a caret selection looks at that one offset
        self.assertEqual({'PERSON': ['P1']},
                         self.store.file_tags_in_span('f', 3, 3))
        self.assertEqual({}, self.store.file_tags_in_span('f', 6, 6))
        # the end of the selection is included
        self.assertEqual({'PERSON': ['P1', 'P2']},
                         self.store.file_tags_in_span('f', 4, 8))
        self.assertEqual({'PERSON': ['P1']},
                         self.store.file_tags_in_span('f', 4, 7))

    def test_tags_in_span(self):
        self.store.insert_extent('f', 'PERSON', extent('P1', 0, 5))
        self.store.insert_extent('g', 'PERSON', extent('Q1', 5, 8))
        self.store.insert_extent('g', 'ORG', extent('O1', 0, 8))
        # inclusive end
        self.assertEqual({'f': ['P1'], 'g': ['Q1']},
                         self.store.tags_in_span('PERSON', 0, 5))
        self.assertEqual({'f': ['P1']},
                         self.store.tags_in_span('PERSON', 0, 4))
        self.assertEqual({'g': ['Q1']},
                         self.store.tags_in_span('PERSON', 5, 5))
        self.assertEqual(['g'], self.store.files_at('ORG', 3))
        self.assertEqual(['f', 'g'], self.store.files())
        locs = self.store.locations_by_type('PERSON')
        self.assertEqual(set(['f']), locs[4])
        self.assertEqual(set(['g']), locs[5])
        self.assertNotIn(8, locs)

    def test_rows(self):
        self.store.insert_extent('f', 'PERSON', extent('P1', 0, 4, 'John'))
        row = self.store.get_row('PERSON', 'P1', 'f')
        self.assertEqual('John', row['text'])
        row['text'] = 'Jim'
        self.assertEqual('John', self.store.text_of('f', 'PERSON', 'P1'))
        self.assertEqual({}, self.store.get_row('PERSON', 'P1', 'g'))
        self.assertEqual('PERSON', self.store.element_of('f', 'P1'))
        self.assertIsNone(self.store.element_of('f', 'P2'))

    def test_batch_atomic(self):
        batch = self.store.batch()
        batch.add_extent('f', 'PERSON', extent('P1', 0, 4))
        batch.add_extent('f', 'PERSON', extent('P2', 'x', 4))
        self.assertRaises(MalformedTagError, batch.commit)
        self.assertEqual([], self.store.extents())
        self.assertEqual([], self.store.ids_at('f', 0))

    def test_batch_context(self):
        with self.store.batch() as batch:
            batch.add_extent('f', 'PERSON', extent('P1', 0, 4))
            batch.add_link('f', 'MARRIED_TO', link('M1', 'P1', 'P1'))
        self.assertEqual(2, len(batch.tags))
        self.assertRaises(StoreError, batch.commit)

        with self.assertRaises(ValueError):
            with self.store.batch() as batch:
                batch.add_extent('f', 'PERSON', extent('P2', 5, 9))
                raise ValueError('interrupted')
        self.assertIsNone(self.store.get_extent('f', 'PERSON', 'P2'))

    def test_unknown_type(self):
        self.assertRaises(UnknownTagTypeError, self.store.insert_extent,
                          'f', 'NOPE', extent('N1', 0, 4))
        self.assertRaises(MalformedTagError, self.store.insert_extent,
                          'f', 'MARRIED_TO', extent('N1', 0, 4))

    def test_duplicate(self):
        self.store.insert_extent('f', 'PERSON', extent('P1', 0, 4))
        self.assertRaises(DuplicateTagError, self.store.insert_extent,
                          'f', 'PERSON', extent('P1', 5, 9))
        batch = self.store.batch()
        batch.add_extent('g', 'PERSON', extent('P1', 0, 4))
        batch.add_extent('g', 'PERSON', extent('P1', 5, 9))
        self.assertRaises(DuplicateTagError, batch.commit)
        self.assertEqual(['f'], self.store.files())

    def test_replace(self):
        self.store.insert_extent('f', 'PERSON', extent('P1', 0, 4))
        self.store.insert_extent('f', 'PERSON', extent('P1', 5, 9),
                                 replace=True)
        self.assertEqual([], self.store.ids_at('f', 0))
        self.assertEqual([('PERSON', 'P1')], self.store.ids_at('f', 5))
        self.assertEqual(1, len(self.store.extents()))

    def test_links(self):
        with self.store.batch() as batch:
            batch.add_link('f', 'MARRIED_TO', link('M1', 'P1', 'P2'))
            batch.add_extent('f', 'PERSON', extent('P1', 0, 4))
            batch.add_extent('f', 'PERSON', extent('P2', 5, 9))
            batch.add_link('f', 'MARRIED_TO', link('M2', 'P1', 'P7'))
        m1 = self.store.get_link('f', 'MARRIED_TO', 'M1')
        self.assertEqual(('PERSON', 'PERSON'), (m1.from_type, m1.to_type))
        m2 = self.store.get_link('f', 'MARRIED_TO', 'M2')
        self.assertIsNone(m2.to_type)
        self.assertFalse(m2.is_resolved())
        self.assertEqual({'MARRIED_TO': ['M1', 'M2']},
                         self.store.links_by_anchor('f', 'PERSON', 'P1'))
        self.assertEqual({'MARRIED_TO': ['M1']},
                         self.store.links_by_anchor('f', 'PERSON', 'P2'))

    def test_remove(self):
        self.store.insert_extent('f', 'PERSON', extent('P1', 0, 4))
        self.store.insert_link('f', 'MARRIED_TO', link('M1', 'P1', 'P1'))
        self.assertIsNotNone(self.store.remove_extent('f', 'PERSON', 'P1'))
        self.assertIsNone(self.store.remove_extent('f', 'PERSON', 'P1'))
        self.assertEqual([], self.store.ids_at('f', 2))
        self.assertFalse(self.store.id_exists('f', 'P1'))
        # links are the caller's business
        self.assertTrue(self.store.id_exists('f', 'M1'))
        self.assertIsNotNone(self.store.remove_link('f', 'MARRIED_TO', 'M1'))
        self.assertEqual([], self.store.links())

    def test_define_schema_resets(self):
        self.store.insert_extent('f', 'PERSON', extent('P1', 0, 4))
        self.store.define_schema(mk_schema())
        self.assertEqual([], self.store.extents())
        self.assertEqual([], self.store.files())

    def test_no_schema(self):
        self.assertRaises(StoreError, TagStore().insert_extent,
                          'f', 'PERSON', extent('P1', 0, 4))

    def test_fragments(self):
        self.store.insert_extent('f', 'PERSON', extent('P10', 20, 24, 'Mary'))
        self.store.insert_extent('f', 'PERSON', extent('P2', 3, 7, 'John'))
        self.store.insert_link('f', 'MARRIED_TO', link('M10', 'P2', 'P10'))
        self.store.insert_link('f', 'MARRIED_TO', link('M2', 'P10', 'P2'))
        self.assertEqual(
            ['<PERSON id="P2" start="3" end="7" text="John" />\n',
             '<PERSON id="P10" start="20" end="24" text="Mary" />\n'],
            self.store.extent_fragments('f', 'PERSON'))
        self.assertEqual(['M2', 'M10'],
                         [frag.split('"')[1] for frag in
                          self.store.link_fragments('f', 'MARRIED_TO')])
        self.assertEqual(4, len(self.store.fragments('f')))

    def test_escape(self):
        self.assertEqual("a 'b' &amp; &lt;c&gt; d",
                         escape_attribute('a "b" & <c>\nd'))
        self.assertEqual('&amp;lt;', escape_attribute('&lt;'))


# ---------------------------------------------------------------------
# ids
# ---------------------------------------------------------------------


class IdAssignerTest(unittest.TestCase):
    "tests for adjud.ids"

    def setUp(self):
        self.store = mk_store()
        self.ids = IdAssigner(self.store)
        self.ids.reset_all()

    def test_sequence(self):
        self.assertEqual(['P0', 'P1', 'P2'],
                         [self.ids.next_id('PERSON', GOLD) for _ in range(3)])
        self.assertEqual('O0', self.ids.next_id('ORG', GOLD))
        self.assertEqual('M0', self.ids.next_id('MARRIED_TO', GOLD))

    def test_collisions(self):
        self.store.insert_extent(GOLD, 'PERSON', extent('P0', 0, 4))
        self.store.insert_extent(GOLD, 'PERSON', extent('P1', 5, 9))
        # links share the id space
        self.store.insert_link(GOLD, 'MARRIED_TO', link('P3', 'P0', 'P1'))
        # other files do not
        self.store.insert_extent('f', 'PERSON', extent('P2', 0, 4))
        got = [self.ids.next_id('PERSON', GOLD) for _ in range(20)]
        self.assertEqual(['P2', 'P4', 'P5'], got[:3])
        self.assertEqual(len(got), len(set(got)))
        for tag_id in got:
            self.assertFalse(self.store.id_exists(GOLD, tag_id))

    def test_reset(self):
        self.ids.next_id('PERSON', GOLD)
        self.ids.next_id('PERSON', GOLD)
        self.ids.reset_all()
        self.assertEqual(0, self.ids.peek('PERSON'))
        self.assertEqual('P0', self.ids.next_id('PERSON', GOLD))

    def test_custom_gold_name(self):
        store = TagStore('adjudicated.xml')
        store.define_schema(mk_schema())
        store.insert_extent('adjudicated.xml', 'PERSON', extent('P0', 0, 4))
        store.insert_extent(GOLD, 'PERSON', extent('P1', 0, 4))
        ids = IdAssigner(store)
        self.assertEqual('P1', ids.next_id('PERSON'))
        self.assertEqual('P2', ids.next_id('PERSON', GOLD))


# ---------------------------------------------------------------------
# overlaps
# ---------------------------------------------------------------------


class OverlapTest(unittest.TestCase):
    "tests for adjud.overlap"

    def setUp(self):
        self.store = mk_store()
        self.overlaps = OverlapResolver(self.store)

    def test_inclusion(self):
        self.store.insert_extent(GOLD, 'PERSON', extent('G1', 10, 20))
        self.store.insert_extent('f', 'PERSON', extent('A1', 15, 16))
        self.store.insert_extent('f', 'ORG', extent('A2', 15, 16))
        self.overlaps.rebuild_all()
        self.assertEqual(frozenset(['G1']),
                         self.overlaps.query_overlaps_of('f', 'PERSON', 'A1'))
        self.assertEqual(frozenset(),
                         self.overlaps.query_overlaps_of('f', 'ORG', 'A2'))
        self.assertEqual(frozenset([('f', 'A1')]),
                         self.store.overlapping('G1', 'PERSON'))

    def test_inclusive_end(self):
        self.store.insert_extent(GOLD, 'PERSON', extent('G1', 0, 5))
        self.store.insert_extent('f', 'PERSON', extent('A1', 5, 8))
        self.store.insert_extent('f', 'PERSON', extent('A2', 6, 8))
        self.overlaps.rebuild_all()
        self.assertEqual(frozenset(['G1']),
                         self.overlaps.query_overlaps_of('f', 'PERSON', 'A1'))
        self.assertEqual(frozenset(),
                         self.overlaps.query_overlaps_of('f', 'PERSON', 'A2'))

    def test_non_consuming_gold(self):
        self.store.insert_extent(GOLD, 'PERSON', extent('G1', -1, -1))
        self.store.insert_extent('f', 'PERSON', extent('A1', -1, -1))
        self.assertEqual([], self.overlaps.rebuild_all())

    def test_record_for(self):
        self.store.insert_extent('f', 'PERSON', extent('A1', 0, 4))
        self.store.insert_extent('g', 'PERSON', extent('B1', 2, 6))
        gold = self.store.insert_extent(GOLD, 'PERSON', extent('G1', 0, 2))
        records = self.overlaps.record_for(gold)
        self.assertEqual(set([('f', 'A1'), ('g', 'B1')]),
                         set((r.file_name, r.file_id) for r in records))
        gold = self.store.insert_extent(GOLD, 'PERSON', extent('G1', 0, 1),
                                        replace=True)
        self.overlaps.record_for(gold)
        self.assertEqual(frozenset(),
                         self.overlaps.query_overlaps_of('g', 'PERSON', 'B1'))
        self.assertRaises(ValueError, self.overlaps.record_for,
                          self.store.get_extent('f', 'PERSON', 'A1'))

    def test_deletion_cascade(self):
        self.store.insert_extent(GOLD, 'PERSON', extent('G1', 10, 20))
        self.store.insert_extent('f', 'PERSON', extent('A1', 15, 16))
        self.overlaps.rebuild_all()
        self.store.remove_extent(GOLD, 'PERSON', 'G1')
        self.assertIsNone(self.store.get_extent(GOLD, 'PERSON', 'G1'))
        self.assertEqual([], self.store.ids_at(GOLD, 15))
        self.assertEqual([], self.store.overlaps())
        self.assertEqual(frozenset(),
                         self.overlaps.query_overlaps_of('f', 'PERSON', 'A1'))

    def test_overlapping_tags(self):
        self.store.insert_extent(GOLD, 'PERSON', extent('G1', 0, 4))
        self.store.insert_extent('f', 'PERSON', extent('A1', 3, 6))
        self.assertEqual({'f': ['A1']},
                         self.overlaps.overlapping_tags('PERSON', 0, 4))


# ---------------------------------------------------------------------
# links
# ---------------------------------------------------------------------


class LinkTest(unittest.TestCase):
    """
    tests for adjud.links

    ann1.xml has P1 [0,5) and P2 [10,15) married; the gold standard
    has G1 and G2 on the same spans
    """

    def setUp(self):
        self.store = mk_store()
        self.overlaps = OverlapResolver(self.store)
        self.links = LinkAnchorResolver(self.store)
        with self.store.batch() as batch:
            batch.add_extent('ann1.xml', 'PERSON', extent('P1', 0, 5, 'Alice'))
            batch.add_extent('ann1.xml', 'PERSON', extent('P2', 10, 15, 'Bobby'))
            batch.add_link('ann1.xml', 'MARRIED_TO', link('L1', 'P1', 'P2'))
        with self.store.batch() as batch:
            batch.add_extent(GOLD, 'PERSON', extent('G1', 0, 5, 'Alice'))
            batch.add_extent(GOLD, 'PERSON', extent('G2', 10, 15, 'Bob'))
        self.overlaps.rebuild_all()

    def test_scenario(self):
        self.assertEqual(frozenset(['G1']), self.overlaps.query_overlaps_of(
            'ann1.xml', 'PERSON', 'P1'))
        self.assertEqual(frozenset(['G2']), self.overlaps.query_overlaps_of(
            'ann1.xml', 'PERSON', 'P2'))
        resolution = self.links.resolve_links_of_type('MARRIED_TO')
        self.assertEqual(1, len(resolution.links))
        resolved = resolution.links[0]
        self.assertEqual(('G1', 'G2'), (resolved.from_id, resolved.to_id))
        self.assertEqual('Bob', resolved.features['toText'])
        self.assertEqual('L1', resolved.tag_id)
        self.assertFalse(resolved.ambiguous())
        # the stored link is left alone
        self.assertEqual('P1', resolved.link.from_id)
        self.assertEqual([('ann1.xml', 'L1')], self.links.current_links)
        self.assertEqual(set(['ann1.xml']), resolution.files_at(0))
        self.assertEqual(set(['ann1.xml']), resolution.files_at(14))
        self.assertEqual(set(), resolution.files_at(7))

    def test_demotion(self):
        self.store.remove_extent(GOLD, 'PERSON', 'G2')
        resolution = self.links.resolve_links_of_type('MARRIED_TO')
        self.assertEqual([], resolution.links)
        self.assertEqual([], self.links.current_links)

    def test_gold_links(self):
        self.store.insert_link(GOLD, 'MARRIED_TO', link('M0', 'G2', 'G1'))
        resolution = self.links.resolve_links_of_type('MARRIED_TO')
        self.assertEqual(2, len(resolution.links))
        self.assertEqual(set(['ann1.xml', GOLD]), resolution.files_at(3))

    def test_ambiguous(self):
        self.store.insert_extent(GOLD, 'PERSON', extent('G10', 0, 2))
        self.overlaps.rebuild_all()
        resolved = self.links.resolve_links_of_type('MARRIED_TO').links[0]
        self.assertEqual(('G1', 'G10'), resolved.from_candidates)
        self.assertTrue(resolved.ambiguous())
        self.assertEqual('G1', resolved.from_id)

        self.store.insert_extent(GOLD, 'PERSON', extent('G3', 0, 5),
                                 replace=False)
        self.store.remove_extent(GOLD, 'PERSON', 'G1')
        self.store.insert_extent(GOLD, 'PERSON', extent('G1', 2, 5))
        self.overlaps.rebuild_all()
        by_start = LinkAnchorResolver(self.store, policy=leftmost)
        resolved = by_start.resolve_links_of_type('MARRIED_TO').links[0]
        self.assertEqual('G3', resolved.from_id)

    def test_adjacent_anchors(self):
        store = mk_store()
        with store.batch() as batch:
            batch.add_extent('ann1.xml', 'PERSON', extent('P1', 0, 4, 'John'))
            batch.add_extent('ann1.xml', 'PERSON', extent('P2', 4, 8, 'Jake'))
            batch.add_extent('ann1.xml', 'PERSON', extent('P3', 13, 17, 'Mary'))
            batch.add_link('ann1.xml', 'MARRIED_TO', link('L1', 'P2', 'P3'))
        with store.batch() as batch:
            batch.add_extent(GOLD, 'PERSON', extent('G0', 0, 4, 'John'))
            batch.add_extent(GOLD, 'PERSON', extent('G1', 4, 8, 'Jake'))
            batch.add_extent(GOLD, 'PERSON', extent('G2', 13, 17, 'Mary'))
        OverlapResolver(store).rebuild_all()
        resolved = LinkAnchorResolver(store)\
            .resolve_links_of_type('MARRIED_TO').links[0]
        # G0 ends where Jake starts
        self.assertEqual(('G0', 'G1'), resolved.from_candidates)
        self.assertEqual(('G1', 'G2'), (resolved.from_id, resolved.to_id))
        self.assertEqual('Jake', resolved.features['fromText'])
        by_id = LinkAnchorResolver(store, policy=lowest_id)
        resolved = by_id.resolve_links_of_type('MARRIED_TO').links[0]
        self.assertEqual('G0', resolved.from_id)

    def test_closest_match(self):
        anchor = ExtentTag('f', 'PERSON', 'P1', 2, 9, {})
        near = ExtentTag(GOLD, 'PERSON', 'G7', 0, 4, {})
        far = ExtentTag(GOLD, 'PERSON', 'G8', 3, 12, {})
        touching = ExtentTag(GOLD, 'PERSON', 'G1', 9, 10, {})
        exact = ExtentTag(GOLD, 'PERSON', 'G9', 2, 9, {})
        self.assertIs(far, closest_match(anchor, [near, far, touching]))
        self.assertIs(exact, closest_match(anchor, [far, exact, near]))
        self.assertIs(near, closest_match(anchor, [touching, near]))
        self.assertIs(touching, lowest_id(anchor, [near, touching]))
        self.assertIs(near, leftmost(anchor, [far, near]))

    def test_links_in_span(self):
        self.assertEqual({}, self.links.links_in_span(0, 3))
        self.links.resolve_links_of_type('MARRIED_TO')
        found = self.links.links_in_span(0, 3)
        self.assertEqual(['ann1.xml'], list(found))
        self.assertEqual('G2', found['ann1.xml'][0].to_id)
        self.assertEqual({'ann1.xml': [Span(10, 15)]}, self.links.highlights)
        # touching the end of an anchor counts
        self.assertEqual(1, len(self.links.links_in_span(15, 16)))
        self.assertEqual({'ann1.xml': [Span(0, 5)]}, self.links.highlights)
        self.assertEqual({}, self.links.links_in_span(6, 8))
        self.assertEqual({}, self.links.highlights)
        self.links.reset()
        self.assertIsNone(self.links.current_type)


# ---------------------------------------------------------------------
# session
# ---------------------------------------------------------------------


def mk_session(*files):
    """
    Session with the test schema, a task started and the given
    annotator files (pairs of name and records)
    """
    session = AdjudicationSession()
    session.load_schema(mk_schema())
    session.start_task()
    for name, records in files:
        session.add_file(name, records)
    return session


ANN1 = ('ann1.xml', [('PERSON', extent('P1', 0, 5, 'Alice')),
                     ('PERSON', extent('P2', 10, 15, 'Bobby')),
                     ('MARRIED_TO', link('L1', 'P1', 'P2'))])

ANN2 = ('ann2.xml', [('PERSON', extent('A1', 3, 8, 'ce an')),
                     ('PERSON', extent('A2', 10, 15, 'Bobby')),
                     ('PERSON', extent('A3', -1, -1))])


class SessionTest(unittest.TestCase):
    "tests for adjud.session"

    def test_states(self):
        session = AdjudicationSession()
        self.assertEqual(SessionState.no_schema, session.state)
        self.assertRaises(SessionError, session.start_task)
        session.load_schema(mk_schema())
        self.assertEqual(SessionState.schema_loaded, session.state)
        self.assertRaises(SessionError, session.add_file, *ANN1)
        session.start_task()
        self.assertEqual(SessionState.task_started, session.state)
        session.add_file(*ANN1)
        self.assertEqual(SessionState.task_with_files, session.state)
        self.assertRaises(SessionError, session.add_file, *ANN1)
        self.assertRaises(SessionError, session.add_file, GOLD, [])
        session.start_task()
        self.assertEqual([], session.store.extents())
        self.assertEqual([], session.files)

    def test_add_file_atomic(self):
        session = mk_session()
        bad = [('PERSON', extent('P1', 0, 5)), ('NOPE', extent('N1', 0, 2))]
        self.assertRaises(UnknownTagTypeError, session.add_file, 'f', bad)
        self.assertEqual([], session.store.extents())
        self.assertEqual([], session.files)

    def test_gold_standard(self):
        session = mk_session(ANN1)
        session.add_gold_standard([('PERSON', extent('G1', 0, 5)),
                                   ('PERSON', extent('G2', 10, 15))])
        self.assertEqual(frozenset(['G2']),
                         session.overlaps_of('ann1.xml', 'PERSON', 'P2'))
        self.assertRaises(SessionError, session.add_gold_standard, [])

    def test_add_gold_tag(self):
        session = mk_session(ANN1, ANN2)
        tag = session.add_gold_tag('PERSON', extent('', 0, 5, 'Alice'))
        self.assertEqual('P0', tag.tag_id)
        self.assertEqual(frozenset(['P0']),
                         session.overlaps_of('ann2.xml', 'PERSON', 'A1'))
        # editing keeps the id
        tag = session.add_gold_tag('PERSON', extent('P0', 0, 2, 'Al'))
        self.assertEqual('P0', tag.tag_id)
        self.assertEqual(1, len(session.store.extents(file_name=GOLD)))
        self.assertEqual(frozenset(),
                         session.overlaps_of('ann2.xml', 'PERSON', 'A1'))

    def test_accept(self):
        session = mk_session(ANN1)
        self.assertRaises(SessionError, session.accept_tag,
                          'ann1.xml', 'MARRIED_TO', 'L1')
        g1 = session.accept_tag('ann1.xml', 'PERSON', 'P1')
        g2 = session.accept_tag('ann1.xml', 'PERSON', 'P2')
        self.assertEqual(['P0', 'P1'], [g1.tag_id, g2.tag_id])
        self.assertEqual((10, 15), (g2.start, g2.end))
        self.assertEqual('Bobby', g2.text())
        gl = session.accept_tag('ann1.xml', 'MARRIED_TO', 'L1')
        self.assertEqual(('P0', 'P1'), (gl.from_id, gl.to_id))
        self.assertEqual('Alice', gl.features['fromText'])
        self.assertEqual('M0', gl.tag_id)
        self.assertRaises(SessionError, session.accept_tag,
                          'ann1.xml', 'PERSON', 'P7')

    def test_gold_link_text(self):
        session = mk_session()
        session.add_gold_tag('PERSON', extent('G1', 0, 5, 'Alice'))
        session.add_gold_tag('PERSON', extent('G2', 10, 15, 'Bob'))
        gl = session.add_gold_tag('MARRIED_TO', link('', 'G1', 'G2'))
        self.assertEqual(('Alice', 'Bob'),
                         (gl.features['fromText'], gl.features['toText']))

    def test_remove_gold_tag(self):
        session = mk_session(ANN1)
        session.add_gold_standard([('PERSON', extent('G1', 0, 5)),
                                   ('PERSON', extent('G2', 10, 15)),
                                   ('MARRIED_TO', link('M1', 'G1', 'G2'))])
        removed = session.remove_gold_tag('PERSON', 'G1')
        self.assertEqual([('MARRIED_TO', 'M1'), ('PERSON', 'G1')], removed)
        self.assertEqual([], session.store.links(file_name=GOLD))
        self.assertEqual(frozenset(),
                         session.overlaps_of('ann1.xml', 'PERSON', 'P1'))
        self.assertEqual([], session.remove_gold_tag('PERSON', 'G1'))

    def test_extent_agreement(self):
        session = mk_session(ANN1, ANN2)
        levels = session.select_type('PERSON')
        self.assertEqual('PERSON', session.current_type)
        self.assertEqual(Agreement.partial, levels[0])
        self.assertEqual(Agreement.unanimous, levels[3])
        self.assertEqual(Agreement.partial, levels[7])
        self.assertEqual(Agreement.unanimous, levels[12])
        self.assertNotIn(8, levels)
        self.assertNotIn(-1, levels)
        session.add_gold_tag('PERSON', extent('', 0, 2))
        levels = session.select_type('PERSON')
        self.assertEqual(Agreement.gold, levels[1])
        self.assertEqual(Agreement.partial, levels[2])
        self.assertEqual({8: None, 9: None, 10: Agreement.unanimous},
                         session.agreement_in_span('PERSON', 8, 11))

    def test_link_agreement(self):
        session = mk_session(ANN1, ANN2)
        session.add_gold_standard([('PERSON', extent('G1', 0, 5)),
                                   ('PERSON', extent('G2', 10, 15)),
                                   ('PERSON', extent('G3', 20, 25))])
        levels = session.select_type('MARRIED_TO')
        self.assertEqual(Agreement.partial, levels[0])
        self.assertEqual(Agreement.partial, levels[14])
        self.assertEqual(Agreement.anchor, levels[20])
        self.assertNotIn(17, levels)

    def test_queries(self):
        session = mk_session(ANN1, ANN2)
        session.select_type('PERSON')
        found = session.tags_in_span(4, 4)
        self.assertEqual(['ann1.xml', 'ann2.xml'], list(found))
        self.assertEqual('Alice', found['ann1.xml'][0]['text'])
        self.assertEqual({'ann2.xml': [session.store.get_row(
            'PERSON', 'A3', 'ann2.xml')]}, session.non_consuming_tags())
        self.assertEqual({'PERSON': ['A1', 'A3']},
                         session.file_tags_in_span('ann2.xml', 0, 5))

    def test_quiet_queries(self):
        session = mk_session(ANN1)
        self.assertEqual({}, session.tags_in_span(0, 5))
        self.assertEqual({}, session.select_type('NOPE'))
        self.assertEqual({}, session.tags_in_span(0, 5))
        self.assertEqual(frozenset(), session.overlaps_of('ann1.xml',
                                                          'NOPE', 'P1'))
        self.assertEqual([], AdjudicationSession().gold_fragments())

    def test_session_links(self):
        session = mk_session(ANN1)
        session.add_gold_standard([('PERSON', extent('G1', 0, 5)),
                                   ('PERSON', extent('G2', 10, 15))])
        session.select_type('MARRIED_TO')
        found = session.links_in_span(11, 12)
        self.assertEqual('G1', found['ann1.xml'][0].from_id)
        self.assertEqual({'ann1.xml': [Span(0, 5)]}, session.highlights)

    def test_select_type(self):
        session = mk_session(ANN1)
        session.add_gold_standard([('PERSON', extent('G1', 0, 5)),
                                   ('PERSON', extent('G2', 10, 15))])
        session.select_type('MARRIED_TO')
        self.assertEqual(['ann1.xml'], list(session.links_in_span(0, 3)))
        session.select_type('PERSON')
        self.assertIsNone(session.links.current_type)
        self.assertEqual({}, session.links_in_span(0, 3))
        # unknown types leave the selection alone
        self.assertEqual({}, session.select_type('NOPE'))
        self.assertEqual('PERSON', session.current_type)

    def test_file_tags_at_caret(self):
        session = mk_session(ANN1, ANN2)
        self.assertEqual({'PERSON': ['P1']},
                         session.file_tags_in_span('ann1.xml', 3, 3))
        self.assertEqual({'PERSON': ['A3']},
                         session.file_tags_in_span('ann2.xml', 9, 9))
        # ending on the first character of an extent finds it
        self.assertEqual({'PERSON': ['P2']},
                         session.file_tags_in_span('ann1.xml', 6, 10))


# ---------------------------------------------------------------------
# stand-off xml
# ---------------------------------------------------------------------

ANNOTATION = """<?xml version="1.0" encoding="UTF-8" ?>
<MarriageTask>
<TEXT><![CDATA[John married Mary.]]></TEXT>
<TAGS>
<PERSON id="P1" start="0" end="4" text="John" />
<PERSON id="P2" start="13" end="17" text="Mary" />
<MARRIED_TO id="M1" fromID="P1" fromText="John" toID="P2" toText="Mary" />
</TAGS>
</MarriageTask>
"""


class MaeTest(unittest.TestCase):
    "tests for adjud.mae"

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def test_parse(self):
        doc = parse_annotation(ANNOTATION)
        self.assertEqual('MarriageTask', doc.task)
        self.assertEqual('John married Mary.', doc.text)
        self.assertEqual(['PERSON', 'PERSON', 'MARRIED_TO'],
                         [t for t, _ in doc.tags])
        self.assertEqual('17', doc.tags[1][1]['end'])

    def test_bad(self):
        self.assertRaises(MaeException, parse_annotation, '<Task><TEXT>')
        self.assertRaises(MaeException, parse_annotation,
                          '<Task><TAGS /></Task>')

    def test_write(self):
        session = mk_session()
        session.add_gold_standard(parse_annotation(ANNOTATION).tags)
        text = 'John married Mary ]]> & co.'
        xml = gold_standard_xml(session, text)
        self.assertTrue(xml.startswith('<?xml version="1.0" encoding="UTF-8"'
                                       ' ?>\n<MarriageTask>\n'))
        filename = os.path.join(self.tmpdir, GOLD)
        write_gold_standard(filename, session, text)
        doc = read_annotation_file(filename)
        self.assertEqual(text, doc.text)
        self.assertEqual([('PERSON', 'P1'), ('PERSON', 'P2'),
                          ('MARRIED_TO', 'M1')],
                         [(t, a['id']) for t, a in doc.tags])
        self.assertEqual('Mary', doc.tags[2][1]['toText'])


@pytest.mark.parametrize('attrs', [
    {'id': 'P1', 'start': '0'},
    {'id': 'P1', 'start': '4', 'end': '3'},
    {'start': '0', 'end': '3'},
])
def test_malformed_extent_rejected(attrs):
    store = mk_store()
    with pytest.raises(MalformedTagError):
        store.insert_extent('f', 'PERSON', attrs)
    assert store.extents() == []
