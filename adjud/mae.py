"""
Stand-off XML annotation files, as written by the annotation tool and
read back by adjudication ::

    <?xml version="1.0" encoding="UTF-8" ?>
    <TaskName>
    <TEXT><![CDATA[John married Mary.]]></TEXT>
    <TAGS>
    <PERSON id="P0" start="0" end="4" text="John" />
    <MARRIED_TO id="M0" fromID="P0" fromText="John" toID="P1" toText="Mary" />
    </TAGS>
    </TaskName>

Every element under `TAGS` is a tag record; its attributes are handed
to the tag store unchanged.

You're likely most interested in `read_annotation_file` and
`write_gold_standard`
"""

# License: BSD3

from collections import namedtuple
import codecs
import xml.etree.ElementTree as ET


_MAE_DECL = '<?xml version="1.0" encoding="UTF-8" ?>'


class MaeException(Exception):
    """
    The annotation file could not be read
    """
    def __init__(self, *args, **kw):
        Exception.__init__(self, *args, **kw)


AnnotationDocument = namedtuple('AnnotationDocument', 'task text tags')
"""
Contents of an annotation file: task name (the root element), text,
and the tags as a list of `(tag_type, attrs)` pairs, in file order
"""


def read_node(root):
    """
    `AnnotationDocument` for the root element of an annotation file
    """
    text_elm = root.find('TEXT')
    if text_elm is None:
        raise MaeException('No TEXT element under %s' % root.tag)
    tags_elm = root.find('TAGS')
    tags = [] if tags_elm is None else\
        [(elm.tag, dict(elm.attrib)) for elm in tags_elm]
    return AnnotationDocument(root.tag, text_elm.text or '', tags)


def parse_annotation(string):
    """
    Read an annotation file from its contents
    """
    try:
        root = ET.fromstring(string)
    except ET.ParseError as e:
        raise MaeException('Could not parse annotation: %s' % e)
    return read_node(root)


def read_annotation_file(filename):
    """
    Read a single annotation file
    """
    try:
        tree = ET.parse(filename)
    except ET.ParseError as e:
        raise MaeException('Could not parse %s: %s' % (filename, e))
    return read_node(tree.getroot())


def _cdata(text):
    # a literal ]]> would end the section early
    return '<![CDATA[%s]]>' % text.replace(']]>', ']]]]><![CDATA[>')


def gold_standard_xml(session, text):
    """
    The gold standard of a session as an annotation file (a string)
    """
    task = session.schema.name
    lines = [_MAE_DECL,
             '<%s>' % task,
             '<TEXT>%s</TEXT>' % _cdata(text),
             '<TAGS>']
    return '\n'.join(lines) + '\n' +\
        ''.join(session.gold_fragments()) +\
        '</TAGS>\n</%s>\n' % task


def write_gold_standard(filename, session, text):
    """
    Save the gold standard of a session, along with the text it is
    about
    """
    with codecs.open(filename, 'w', 'utf-8') as fout:
        fout.write(gold_standard_xml(session, text))
