# License: BSD3
# pylint: disable=invalid-name

"""
Tests for adjud-util subcommands
"""

import codecs
import os
import shutil
import tempfile
import unittest

from adjud.annotation import GOLD_STANDARD
from adjud.cmd import SUBCOMMANDS, main, make_parser
from adjud.cmd import count, gold
from adjud.cmd.args import read_session
from adjud.mae import read_annotation_file


DTD = """<!ENTITY name "MarriageTask">
<!ELEMENT PERSON ( #PCDATA ) >
<!ATTLIST PERSON id ID prefix="P" #REQUIRED >
<!ATTLIST PERSON start #IMPLIED >
<!ELEMENT MARRIED_TO EMPTY >
<!ATTLIST MARRIED_TO id ID prefix="M" #REQUIRED >
<!ATTLIST MARRIED_TO fromID IDREF #REQUIRED >
<!ATTLIST MARRIED_TO toID IDREF #REQUIRED >
"""

ANN1 = """<?xml version="1.0" encoding="UTF-8" ?>
<MarriageTask>
<TEXT><![CDATA[John married Mary.]]></TEXT>
<TAGS>
<PERSON id="P1" start="0" end="4" text="John" />
<PERSON id="P2" start="13" end="17" text="Mary" />
<MARRIED_TO id="M1" fromID="P1" fromText="John" toID="P2" toText="Mary" />
</TAGS>
</MarriageTask>
"""

ANN2 = """<?xml version="1.0" encoding="UTF-8" ?>
<MarriageTask>
<TEXT><![CDATA[John married Mary.]]></TEXT>
<TAGS>
<PERSON id="A7" start="0" end="4" text="John" />
<PERSON id="A8" start="13" end="17" text="Mary" />
<PERSON id="A9" start="5" end="12" text="married" />
<MARRIED_TO id="L3" fromID="A7" fromText="John" toID="A8" toText="Mary" />
</TAGS>
</MarriageTask>
"""

ADJACENT = """<?xml version="1.0" encoding="UTF-8" ?>
<MarriageTask>
<TEXT><![CDATA[JohnJake wed Mary.]]></TEXT>
<TAGS>
<PERSON id="P1" start="0" end="4" text="John" />
<PERSON id="P2" start="4" end="8" text="Jake" />
<PERSON id="P3" start="13" end="17" text="Mary" />
<MARRIED_TO id="M1" fromID="P2" fromText="Jake" toID="P3" toText="Mary" />
</TAGS>
</MarriageTask>
"""


class CmdTest(unittest.TestCase):
    "adjud-util on two small annotation files"

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.dtd = self._write('marriage.dtd', DTD)
        self.ann1 = self._write('ann1.xml', ANN1)
        self.ann2 = self._write('ann2.xml', ANN2)
        self.output = os.path.join(self.tmpdir, GOLD_STANDARD)

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def _write(self, name, contents):
        path = os.path.join(self.tmpdir, name)
        with codecs.open(path, 'w', 'utf-8') as fout:
            fout.write(contents)
        return path

    def _args(self, *argv):
        return make_parser().parse_args(list(argv))

    def test_subcommands(self):
        self.assertEqual(['count', 'dump', 'gold'],
                         [m.NAME for m in SUBCOMMANDS])

    def test_read_session(self):
        session, text = read_session(self._args('count', self.dtd,
                                                self.ann1, self.ann2))
        self.assertEqual('John married Mary.', text)
        self.assertEqual(['ann1.xml', 'ann2.xml'], session.files)
        self.assertEqual('MarriageTask', session.schema.name)

    def test_bad_input(self):
        args = self._args('count', self.dtd, self.ann1,
                          os.path.join(self.tmpdir, 'missing.xml'))
        self.assertRaises(SystemExit, read_session, args)

    def test_count(self):
        session, _ = read_session(self._args('count', self.dtd,
                                             self.ann1, self.ann2))
        df = count.create_df(session)
        self.assertEqual(7, len(df))
        counts = count.tag_counts(session)
        self.assertEqual(3, counts.loc['PERSON', 'ann2.xml'])
        self.assertEqual(1, counts.loc['MARRIED_TO', 'ann1.xml'])
        self.assertEqual([['PERSON', 0, 8, 7]],
                         count.agreement_counts(session))

    def test_unanimous(self):
        session, _ = read_session(self._args('gold', self.dtd,
                                             self.ann1, self.ann2))
        extents = gold.unanimous_extents(session)
        self.assertEqual(['P1', 'P2'], [t.tag_id for t in extents])

    def test_gold(self):
        main(['gold', self.dtd, self.ann1, self.ann2, '-o', self.output])
        doc = read_annotation_file(self.output)
        self.assertEqual('MarriageTask', doc.task)
        self.assertEqual('John married Mary.', doc.text)
        self.assertEqual([('PERSON', 'P0'), ('PERSON', 'P1'),
                          ('MARRIED_TO', 'M0')],
                         [(t, a['id']) for t, a in doc.tags])
        marriage = doc.tags[2][1]
        self.assertEqual(('P0', 'P1'), (marriage['fromID'], marriage['toID']))
        self.assertEqual('Mary', marriage['toText'])

    def test_gold_adjacent(self):
        adj1 = self._write('adj1.xml', ADJACENT)
        adj2 = self._write('adj2.xml', ADJACENT)
        main(['gold', self.dtd, adj1, adj2, '-o', self.output])
        doc = read_annotation_file(self.output)
        persons = [(a['id'], a['text']) for t, a in doc.tags
                   if t == 'PERSON']
        self.assertEqual([('P0', 'John'), ('P1', 'Jake'), ('P2', 'Mary')],
                         persons)
        marriage = [a for t, a in doc.tags if t == 'MARRIED_TO'][0]
        self.assertEqual(('P1', 'Jake'),
                         (marriage['fromID'], marriage['fromText']))
        self.assertEqual(('P2', 'Mary'),
                         (marriage['toID'], marriage['toText']))

    def test_gold_again(self):
        main(['gold', self.dtd, self.ann1, self.ann2, '-o', self.output])
        again = os.path.join(self.tmpdir, 'again.xml')
        main(['gold', self.dtd, self.ann1, self.ann2,
              '--gold', self.output, '-o', again])
        self.assertEqual(3, len(read_annotation_file(again).tags))

    def test_dump(self):
        main(['dump', self.dtd, self.ann1, self.ann2])
