"""
Reader for task DTDs.

Tasks are described with a small DTD dialect ::

    <!ENTITY name "TaskName">
    <!ELEMENT PERSON ( #PCDATA ) >
    <!ATTLIST PERSON id ID prefix="P" #REQUIRED >
    <!ATTLIST PERSON start #IMPLIED >
    <!ATTLIST PERSON kind ( NAM | NOM ) "NAM" >
    <!ELEMENT MARRIED_TO EMPTY >

Elements with `#PCDATA` content are extent tags, `EMPTY` elements are
link tags. An extent whose `start` attribute is `#IMPLIED` may be
non-consuming.

The function `parse_dtd` takes the text of a DTD and returns an
`adjud.schema.Schema`.
"""

# License: BSD3

from collections import OrderedDict, namedtuple
import codecs
import os
import re

from funcparserlib.lexer import make_tokenizer, LexerError
import funcparserlib.parser as fp

from .schema import (Attribute, AttributeKind, ExtentElem, LinkElem, Schema)


class DtdException(Exception):
    """
    The DTD could not be read
    """
    def __init__(self, *args, **kw):
        Exception.__init__(self, *args, **kw)


# ---------------------------------------------------------------------
# lexing
# ---------------------------------------------------------------------

_TOKEN_SPECS = [
    ('Comment', (r'<!--.*?-->', re.DOTALL)),
    ('Prolog', (r'<\?.*?\?>', re.DOTALL)),
    ('Space', (r'\s+',)),
    ('Decl', (r'<!(ENTITY|ELEMENT|ATTLIST)\b',)),
    ('Keyword', (r'#(PCDATA|REQUIRED|IMPLIED|FIXED)\b',)),
    ('String', (r'"[^"]*"|\'[^\']*\'',)),
    ('Op', (r'[()|=>,]',)),
    ('Name', (r'[^\s()|=>,"\'<#]+',)),
]

_IGNORED_TOKENS = frozenset(['Comment', 'Prolog', 'Space'])

_tokenizer = make_tokenizer(_TOKEN_SPECS)


def tokenize(text):
    """
    Token list for a DTD, without whitespace and comments
    """
    try:
        return [t for t in _tokenizer(text) if t.type not in _IGNORED_TOKENS]
    except LexerError as e:
        raise DtdException('Could not tokenize DTD: %s' % e)


# ---------------------------------------------------------------------
# parse results
# ---------------------------------------------------------------------

_EntityDecl = namedtuple('_EntityDecl', 'name value')
_ElementDecl = namedtuple('_ElementDecl', 'name kind')
_AttDef = namedtuple('_AttDef', 'name atttype extras default')
_AttlistDecl = namedtuple('_AttlistDecl', 'elem_name attdefs')


# ---------------------------------------------------------------------
# funcparserlib utilities
# ---------------------------------------------------------------------

_const = lambda x: lambda _: x
_unarg = lambda f: lambda x: f(*x)
_tokval = lambda t: t.value


def _cons(pair):
    head, tail = pair
    return [head] + tail


def _tok(kind, value=None):
    "a token of the given type (and value, if given)"
    if value is None:
        return fp.some(lambda t: t.type == kind)
    return fp.some(lambda t: t.type == kind and t.value == value)


def _op(value):
    return fp.skip(_tok('Op', value))


def _decl(keyword):
    return fp.skip(_tok('Decl', '<!' + keyword))


# ---------------------------------------------------------------------
# grammar
# ---------------------------------------------------------------------

_name = _tok('Name') >> _tokval
_string = _tok('String') >> (lambda t: t.value[1:-1])

_entity = _decl('ENTITY') + _name + _string + _op('>') >> _unarg(_EntityDecl)

_content = (
    _op('(') + _tok('Keyword', '#PCDATA') + _op(')') >> _const('extent') |
    _tok('Name', 'EMPTY') >> _const('link'))

_element = _decl('ELEMENT') + _name + _content + _op('>') >>\
    _unarg(_ElementDecl)

_enumeration = _op('(') + _name + fp.many(_op('|') + _name) + _op(')') >>\
    _cons

_atttype = (
    _tok('Name', 'ID') >> _const(('ID', ())) |
    _enumeration >> (lambda vs: ('ENUM', tuple(vs))) |
    _name >> (lambda n: (n, ())))

_extra = _name + _op('=') + _string

_default = (
    fp.skip(_tok('Keyword', '#FIXED')) + _string >> (lambda v: ('#FIXED', v)) |
    _tok('Keyword') >> (lambda t: (t.value, None)) |
    _string >> (lambda v: (None, v)))

_attdef = _name + fp.maybe(_atttype) + fp.many(_extra) + fp.maybe(_default)\
    >> _unarg(_AttDef)

_attlist = _decl('ATTLIST') + _name + fp.many(_attdef) + _op('>') >>\
    _unarg(_AttlistDecl)

_dtd = fp.many(_entity | _element | _attlist) + fp.skip(fp.finished)


# ---------------------------------------------------------------------
# schema building
# ---------------------------------------------------------------------

def _attribute(attdef):
    """
    Schema attribute for an attribute definition
    """
    atttype, values = attdef.atttype or ('CDATA', ())
    keyword, default = attdef.default or (None, None)
    extras = dict(attdef.extras)
    required = keyword == '#REQUIRED'
    if atttype == 'ID':
        return Attribute(attdef.name, AttributeKind.identifier,
                         prefix=extras.get('prefix'), required=True)
    elif atttype == 'ENUM':
        return Attribute(attdef.name, AttributeKind.enumerated,
                         default=default, values=values, required=required)
    elif default is not None:
        return Attribute(attdef.name, AttributeKind.with_default,
                         default=default, required=required)
    else:
        return Attribute(attdef.name, required=required)


def _build_schema(decls, name, default_name):
    """
    Assemble parsed declarations into a schema
    """
    kinds = OrderedDict()
    attdefs = {}
    for decl in decls:
        if isinstance(decl, _EntityDecl):
            if decl.name == 'name' and name is None:
                name = decl.value
        elif isinstance(decl, _ElementDecl):
            if decl.name in kinds:
                raise DtdException('Element %s declared twice' % decl.name)
            kinds[decl.name] = decl.kind
            attdefs[decl.name] = []
        elif decl.elem_name not in kinds:
            raise DtdException('Attributes for undeclared element %s' %
                               decl.elem_name)
        else:
            attdefs[decl.elem_name].extend(decl.attdefs)

    elements = []
    for elem_name, kind in kinds.items():
        defs = attdefs[elem_name]
        attributes = [_attribute(d) for d in defs]
        if kind == 'extent':
            non_consuming = any(d.name == 'start' and d.default and
                                d.default[0] == '#IMPLIED' for d in defs)
            elements.append(ExtentElem(elem_name, attributes,
                                       non_consuming=non_consuming))
        else:
            elements.append(LinkElem(elem_name, attributes))
    return Schema(name or default_name, elements)


def parse_dtd(text, name=None, default_name='TASK'):
    """
    Read the text of a DTD into a `Schema`.

    :param name: task name; if None we use the `name` entity declared
                 in the DTD, or failing that `default_name`
    """
    try:
        decls = _dtd.parse(tokenize(text))
    except fp.NoParseError as e:
        raise DtdException('Could not parse DTD: %s' % e)
    return _build_schema(decls, name, default_name)


def read_dtd(filename):
    """
    Read a DTD file into a `Schema`. Without a `name` entity, the
    task is named after the file
    """
    with codecs.open(filename, 'r', 'utf-8') as fin:
        text = fin.read()
    default_name = os.path.splitext(os.path.basename(filename))[0]
    return parse_dtd(text, default_name=default_name)
