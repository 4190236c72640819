"""
Low-level representation of the tags that take part in an adjudication.

There are two kinds of tags:

* extent tags, which sit over a span of text (or over no text at all, in
  which case we call them non-consuming)
* link tags, which connect two extent tags of the same file

Every tag belongs to a file. Ids are only meaningful within a file (and
strictly speaking within a file and tag type): two annotators will
happily give unrelated ids to what is conceptually the same span, which
is precisely why adjudication has to go through positions rather than
names.
"""

# License: BSD3

# pylint: disable=too-many-arguments, too-few-public-methods

from collections import namedtuple


GOLD_STANDARD = 'goldStandard.xml'
"reserved file name for the adjudicated (gold standard) file"

NON_CONSUMING = -1
"start offset (and sole indexed location) of tags with no text span"


class Span(object):
    """
    What portion of text a tag corresponds to, in character offsets.

    Spans are interpreted like Python slice indices; think of offsets as
    sitting in between individual characters ::

          h   o   w   d   y
        0   1   2   3   4   5

    So `(0,5)` covers the whole word above, and `(1,2)` picks out the
    letter "o"
    """
    def __init__(self, start, end):
        self.char_start = start
        self.char_end = end

    def __str__(self):
        return '(%d,%d)' % (self.char_start, self.char_end)

    def __repr__(self):
        return 'Span(%d, %d)' % (self.char_start, self.char_end)

    def __eq__(self, other):
        return isinstance(other, Span) and\
            self.char_start == other.char_start and\
            self.char_end == other.char_end

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash((self.char_start, self.char_end))

    def length(self):
        """
        Return the length of this span
        """
        return self.char_end - self.char_start

    def offsets(self):
        """
        The character offsets covered by this span
        """
        return range(self.char_start, self.char_end)

    def encloses(self, other):
        """
        Return True if this span includes the argument

        Note that `x.encloses(x) == True` and `x.encloses(None) == False`
        """
        if other is None:
            return False
        return\
            self.char_start <= other.char_start and\
            self.char_end >= other.char_end

    def overlaps(self, other, inclusive=False):
        """
        Return the overlapping region if two spans have regions
        in common, or else None. ::

            Span(5, 10).overlaps(Span(8, 12)) == Span(8, 10)
            Span(5, 10).overlaps(Span(11, 12)) == None

        If `inclusive == True`, spans with touching edges are
        considered to overlap ::

            Span(5, 10).overlaps(Span(10, 12)) == None
            Span(5, 10).overlaps(Span(10, 12), inclusive=True) == Span(10, 10)
        """
        if other is None:
            return None
        common_start = max(self.char_start, other.char_start)
        common_end = min(self.char_end, other.char_end)
        if common_start < common_end or\
                (inclusive and common_start == common_end):
            return Span(common_start, common_end)
        elif self.encloses(other):
            return other
        elif other.encloses(self):
            return self
        else:
            return None


class Tag(object):
    """
    Any tag in the adjudication store.

    Tags have

    * a file name: the file the tag was read from (or the gold standard)
    * a type: the name of its element in the task schema
    * an id: only unique within its file (and type)
    * features: every schema attribute, as strings, in schema order
    """
    def __init__(self, file_name, tag_type, tag_id, features):
        self.file_name = file_name
        self.type = tag_type
        self.tag_id = tag_id
        self.features = features

    def key(self):
        """
        Tuple that picks this tag out within the store
        """
        return (self.file_name, self.type, self.tag_id)

    def is_gold(self, gold_name=GOLD_STANDARD):
        "True if this tag belongs to the gold standard"
        return self.file_name == gold_name

    def __eq__(self, other):
        return isinstance(other, self.__class__) and\
            self.key() == other.key() and\
            self.features == other.features

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash(self.key())


class ExtentTag(Tag):
    """
    A tag over a span of text.

    Non-consuming tags (no text span) have `start == NON_CONSUMING`;
    their end is meaningless and kept at `NON_CONSUMING` too.
    """
    def __init__(self, file_name, tag_type, tag_id, start, end, features):
        Tag.__init__(self, file_name, tag_type, tag_id, features)
        self.start = start
        self.end = NON_CONSUMING if start == NON_CONSUMING else end

    def __str__(self):
        return '%s:%s [%s] %s' % (self.file_name, self.tag_id, self.type,
                                  self.span() or 'NC')

    def __repr__(self):
        return 'ExtentTag(%r, %r, %r, %d, %d)' % (
            self.file_name, self.type, self.tag_id, self.start, self.end)

    def is_non_consuming(self):
        "True if this tag is not associated with any text"
        return self.start == NON_CONSUMING

    def span(self):
        """
        The text span of this tag, or None if it is non-consuming
        """
        if self.is_non_consuming():
            return None
        return Span(self.start, self.end)

    def offsets(self):
        """
        The locations this tag is indexed under: each character offset
        in its span, or the single `NON_CONSUMING` sentinel
        """
        if self.is_non_consuming():
            return [NON_CONSUMING]
        return range(self.start, self.end)

    def text(self):
        "text snapshot recorded with the tag (may be empty)"
        return self.features.get('text', '')


class LinkTag(Tag):
    """
    A directed relation between two extent tags of the same file.

    Endpoint types are looked up in the store when the link is added;
    they are None if the endpoint id did not match any extent.
    """
    def __init__(self, file_name, tag_type, tag_id,
                 from_id, from_type, to_id, to_type, features):
        Tag.__init__(self, file_name, tag_type, tag_id, features)
        self.from_id = from_id
        self.from_type = from_type
        self.to_id = to_id
        self.to_type = to_type

    def __str__(self):
        return '%s:%s [%s] %s -> %s' % (self.file_name, self.tag_id,
                                        self.type, self.from_id, self.to_id)

    def __repr__(self):
        return 'LinkTag(%r, %r, %r, %r, %r)' % (
            self.file_name, self.type, self.tag_id, self.from_id, self.to_id)

    def is_resolved(self):
        "True if both endpoint types were found"
        return self.from_type is not None and self.to_type is not None


OverlapRecord = namedtuple('OverlapRecord',
                           'gold_id tag_type file_name file_id')
"""
A gold standard extent and an extent of the same type from another file
that share at least one location (the gold range is taken with an
inclusive end)
"""
