"""
Task schema: what tag types an adjudication task knows about

A schema is an ordered collection of elements, each of which is either
an extent element (tags over text) or a link element (tags between two
extents), with an ordered list of attributes. Schemas are built once
per task (see `adjud.dtd` for reading them from a DTD) and never
modified afterwards.
"""

# License: BSD3

# pylint: disable=too-few-public-methods

from enum import Enum

from frozendict import frozendict

from .annotation import NON_CONSUMING


class SchemaError(Exception):
    """
    Something is wrong with a schema, or with the way a tag uses it
    """
    def __init__(self, *args, **kw):
        Exception.__init__(self, *args, **kw)


class UnknownTagTypeError(SchemaError, KeyError):
    """
    Request for a tag type the schema does not define
    """
    def __init__(self, tag_type):
        SchemaError.__init__(self, 'Unknown tag type: %s' % tag_type)
        self.tag_type = tag_type

    def __str__(self):
        return self.args[0]


class MalformedTagError(SchemaError):
    """
    A tag record cannot be made to fit its element definition
    """
    def __init__(self, *args, **kw):
        SchemaError.__init__(self, *args, **kw)


class AttributeKind(Enum):
    """
    How an attribute gets its values
    """
    plain = 1
    identifier = 2
    enumerated = 3
    with_default = 4


class Attribute(object):
    """
    One attribute of an element.

    :param prefix: for identifiers, the prefix of generated ids
    :param values: for enumerated attributes, the allowed values
    """
    def __init__(self, name, kind=AttributeKind.plain, default=None,
                 values=None, prefix=None, required=False):
        self.name = name
        self.kind = kind
        self.default = default
        self.values = tuple(values) if values else ()
        self.prefix = prefix
        self.required = required

    def __repr__(self):
        return 'Attribute(%r, %s)' % (self.name, self.kind.name)

    def __eq__(self, other):
        return isinstance(other, Attribute) and\
            self.__dict__ == other.__dict__

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash((self.name, self.kind))

    def is_identifier(self):
        "True for the attribute holding the tag id"
        return self.kind == AttributeKind.identifier

    def initial(self):
        """
        Value used when a tag does not give one
        """
        return '' if self.default is None else self.default


def default_prefix(name):
    """
    Prefix we use for generated ids when the schema does not say
    """
    return name[:1].upper()


class Elem(object):
    """
    Definition of a tag type.

    Use `ExtentElem` or `LinkElem`; the attribute list always starts
    with the attributes every tag of the kind carries, followed by
    the extra ones in the order given.
    """
    core_attributes = ()

    def __init__(self, name, attributes=None, prefix=None):
        self.name = name
        prefix = default_prefix(name) if prefix is None else prefix
        extras = [a for a in (attributes or [])
                  if a.name not in self.core_attributes]
        overrides = dict((a.name, a) for a in (attributes or [])
                         if a.name in self.core_attributes)
        core = []
        for att_name in self.core_attributes:
            if att_name in overrides:
                core.append(overrides[att_name])
            elif att_name == 'id':
                core.append(Attribute('id', AttributeKind.identifier,
                                      prefix=prefix, required=True))
            else:
                core.append(Attribute(att_name))
        self.attributes = tuple(core + extras)

    def __repr__(self):
        return '%s(%r)' % (self.__class__.__name__, self.name)

    def attribute_names(self):
        "names of the attributes, in order"
        return [a.name for a in self.attributes]

    def attribute(self, name):
        "the attribute with this name, or None"
        for att in self.attributes:
            if att.name == name:
                return att
        return None

    def id_attribute(self):
        "the identifier attribute (None if somehow absent)"
        for att in self.attributes:
            if att.is_identifier():
                return att
        return None

    def id_prefix(self):
        """
        Prefix for ids generated for this element
        """
        att = self.id_attribute()
        if att is None or att.prefix is None:
            return default_prefix(self.name)
        return att.prefix

    def is_extent(self):
        "True for extent elements"
        return False

    def is_link(self):
        "True for link elements"
        return False


class ExtentElem(Elem):
    """
    Tags over a span of text. If `non_consuming` is set, tags of this
    type may also sit over no text at all.
    """
    core_attributes = ('id', 'start', 'end', 'text')

    def __init__(self, name, attributes=None, prefix=None,
                 non_consuming=False):
        Elem.__init__(self, name, attributes, prefix)
        self.non_consuming = non_consuming

    def is_extent(self):
        return True


class LinkElem(Elem):
    """
    Tags connecting two extents; the `fromText` and `toText` attributes
    are snapshots of the anchor text, taken when the link is made
    """
    core_attributes = ('id', 'fromID', 'fromText', 'toID', 'toText')

    def is_link(self):
        return True


def _parse_offset(elem, attrs, name):
    """
    Integer value of an offset attribute
    """
    val = attrs.get(name)
    if val is None or str(val).strip() == '':
        raise MalformedTagError('%s tag %s has no %s' %
                                (elem.name, attrs.get('id'), name))
    try:
        return int(str(val).strip())
    except ValueError:
        raise MalformedTagError('%s tag %s: %s is not an integer: %r' %
                                (elem.name, attrs.get('id'), name, val))


class Schema(object):
    """
    The immutable set of elements for a task.

    :param name: task name (used as the root element on output)
    :param elements: `Elem` objects, in order
    """
    def __init__(self, name, elements):
        self.name = name
        elements = list(elements)
        self._order = tuple(e.name for e in elements)
        if len(set(self._order)) != len(self._order):
            raise SchemaError('Duplicate element names in schema %s' % name)
        self._elements = frozendict((e.name, e) for e in elements)

    def __repr__(self):
        return 'Schema(%r, %r)' % (self.name, list(self._order))

    def __contains__(self, name):
        return name in self._elements

    def __getitem__(self, name):
        try:
            return self._elements[name]
        except KeyError:
            raise UnknownTagTypeError(name)

    def get(self, name):
        """
        Element with the given name, or None if there is no such thing
        """
        return self._elements.get(name)

    def elements(self):
        "all elements, in schema order"
        return [self._elements[n] for n in self._order]

    def extent_elements(self):
        "extent elements, in schema order"
        return [e for e in self.elements() if e.is_extent()]

    def link_elements(self):
        "link elements, in schema order"
        return [e for e in self.elements() if e.is_link()]

    def non_consuming_elements(self):
        "extent elements whose tags may have no text span"
        return [e for e in self.extent_elements() if e.non_consuming]

    def validate(self, elem, attrs):
        """
        Normalise a raw attribute dictionary into a row for the element:
        known attributes only, in schema order, missing values filled
        in from defaults.

        For extents, `start` and `end` are checked to be integers
        (`start == -1` marks a non-consuming tag and forces `end` to -1
        too). For links, `fromID` and `toID` must be present.

        :rtype: (dict, start, end) for extents,
                (dict, None, None) for links
        """
        if isinstance(elem, str):
            elem = self[elem]
        if not attrs.get('id'):
            raise MalformedTagError('%s tag without an id' % elem.name)
        row = {}
        for att in elem.attributes:
            val = attrs.get(att.name)
            row[att.name] = att.initial() if val is None else str(val)
        if elem.is_extent():
            start = _parse_offset(elem, attrs, 'start')
            if start == NON_CONSUMING:
                end = NON_CONSUMING
            else:
                end = _parse_offset(elem, attrs, 'end')
                if start < 0 or end < start:
                    raise MalformedTagError('%s tag %s: bad span %d-%d' %
                                            (elem.name, row['id'],
                                             start, end))
            row['start'] = str(start)
            row['end'] = str(end)
            return row, start, end
        else:
            for key in ['fromID', 'toID']:
                if not row.get(key):
                    raise MalformedTagError('%s tag %s has no %s' %
                                            (elem.name, row['id'], key))
            return row, None, None
