"""
In-memory store for the tags of an adjudication task.

The store holds every tag of every file loaded for the task (the
annotator files and the gold standard), along with

* a per-character index: for each character offset, which tags of which
  files sit over it (non-consuming tags are all indexed under the
  single offset `NON_CONSUMING`)
* the overlap records produced by `adjud.overlap`, mapping gold
  standard extents to the annotator extents of the same type that
  share a location with them

Mutations go through batches (see `TagStore.batch`): a batch is checked
in full before anything is written, so a failed batch leaves the store
exactly as it was.
"""

# License: BSD3

# pylint: disable=too-many-public-methods

from collections import defaultdict, namedtuple, OrderedDict
import logging

from .annotation import (ExtentTag, LinkTag, OverlapRecord,
                         GOLD_STANDARD, NON_CONSUMING)
from .schema import MalformedTagError
from .util import natural_key

_log = logging.getLogger(__name__)


class StoreError(Exception):
    """
    The store cannot carry out a request
    """
    def __init__(self, *args, **kw):
        Exception.__init__(self, *args, **kw)


class DuplicateTagError(StoreError):
    """
    A tag with the same file, type and id is already there
    """
    def __init__(self, *args, **kw):
        StoreError.__init__(self, *args, **kw)


IndexEntry = namedtuple('IndexEntry', 'file_name tag_type tag_id')
"what the per-character index holds for each offset"


# ---------------------------------------------------------------------
# output
# ---------------------------------------------------------------------

def escape_attribute(text):
    """
    Make a string safe to use as an XML attribute value.

    Newlines become spaces and double quotes become single quotes
    """
    text = text.replace('&', '&amp;')
    text = text.replace('<', '&lt;').replace('>', '&gt;')
    text = text.replace('\r\n', ' ').replace('\n', ' ').replace('\r', ' ')
    return text.replace('"', "'")


def tag_fragment(tag_type, row):
    """
    Self-closing XML element for a tag, eg. ::

        <PERSON id="P0" start="0" end="4" text="John" />
    """
    atts = ''.join('%s="%s" ' % (k, escape_attribute(v))
                   for k, v in row.items())
    return '<%s %s/>\n' % (tag_type, atts)


# ---------------------------------------------------------------------
# batches
# ---------------------------------------------------------------------

class Batch(object):
    """
    A group of tag insertions applied all at once.

    Can be used as a context manager, in which case it is committed
    when the block exits normally and thrown away if the block raises
    an exception ::

        with store.batch() as batch:
            batch.add_extent('ann1.xml', 'PERSON', attrs)
        tags = batch.tags

    :param replace: if True, tags with the same file, type and id as a
                    tag in the batch are dropped in favour of it;
                    otherwise they make the commit fail
    """
    def __init__(self, store, replace=False):
        self._store = store
        self.replace = replace
        self._extents = []
        self._links = []
        self.tags = None

    def __len__(self):
        return len(self._extents) + len(self._links)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if exc_type is None:
            self.commit()
        else:
            self.discard()
        return False

    def add_extent(self, file_name, tag_type, attrs):
        "queue an extent tag"
        self._extents.append((file_name, tag_type, dict(attrs)))
        return self

    def add_link(self, file_name, tag_type, attrs):
        "queue a link tag"
        self._links.append((file_name, tag_type, dict(attrs)))
        return self

    def add(self, file_name, tag_type, attrs):
        """
        Queue a tag of either kind, depending on what the schema says
        its type is
        """
        if self._store.element(tag_type).is_extent():
            return self.add_extent(file_name, tag_type, attrs)
        else:
            return self.add_link(file_name, tag_type, attrs)

    def discard(self):
        "forget everything queued so far"
        self._extents = []
        self._links = []

    def commit(self):
        """
        Write the queued tags to the store.

        :rtype: list of the new tags (extents first, then links)
        """
        if self.tags is not None:
            raise StoreError('Batch committed twice')
        self.tags = self._store.commit(self._extents, self._links,
                                       replace=self.replace)
        self.discard()
        return self.tags


# ---------------------------------------------------------------------
# store
# ---------------------------------------------------------------------

class TagStore(object):
    """
    Tags, per-character index and overlap records for one task.

    :param gold_name: file name reserved for the gold standard
    """
    def __init__(self, gold_name=GOLD_STANDARD):
        self.gold_name = gold_name
        self.schema = None
        self._tags = {}
        self._index = defaultdict(list)
        self._files = []
        self._overlaps = defaultdict(set)
        self._overlapped_by = defaultdict(set)

    def define_schema(self, schema):
        """
        Set up (empty) storage for each element of the schema.

        Anything stored beforehand is dropped, so calling this twice
        just starts over
        """
        self.schema = schema
        self._tags = OrderedDict((e.name, OrderedDict())
                                 for e in schema.elements())
        self._index = defaultdict(list)
        self._files = []
        self._overlaps = defaultdict(set)
        self._overlapped_by = defaultdict(set)
        _log.debug('storage set up for task %s: %d tag types',
                   schema.name, len(self._tags))

    def element(self, tag_type):
        """
        Schema element for a tag type

        :raises UnknownTagTypeError: if the schema does not know it
        """
        if self.schema is None:
            raise StoreError('No schema defined for this store')
        return self.schema[tag_type]

    def _table(self, tag_type):
        self.element(tag_type)
        return self._tags[tag_type]

    # -----------------------------------------------------------------
    # mutations
    # -----------------------------------------------------------------

    def batch(self, replace=False):
        "a new `Batch` for this store"
        return Batch(self, replace=replace)

    def insert_extent(self, file_name, tag_type, attrs, replace=False):
        "add a single extent tag and return it"
        return self.commit([(file_name, tag_type, attrs)], [],
                           replace=replace)[0]

    def insert_link(self, file_name, tag_type, attrs, replace=False):
        "add a single link tag and return it"
        return self.commit([], [(file_name, tag_type, attrs)],
                           replace=replace)[0]

    def commit(self, extent_records, link_records, replace=False):
        """
        Check and then write a group of `(file_name, tag_type, attrs)`
        records. If any record is rejected, nothing is written.

        Link endpoint types are looked up among the extents already
        stored for the same file, then among the extents of the group.

        :raises UnknownTagTypeError: a record has a type the schema
            does not know
        :raises MalformedTagError: a record does not fit its element
        :raises DuplicateTagError: a tag with the same file, type and
            id exists (and `replace` is off), or occurs twice in the
            group
        """
        extents = [self._make_extent(*r) for r in extent_records]
        self._check_duplicates(extents, replace)
        pending = {}
        for tag in extents:
            pending.setdefault((tag.file_name, tag.tag_id), tag.type)
        links = [self._make_link(f, t, a, pending)
                 for f, t, a in link_records]
        self._check_duplicates(links, replace)

        for tag in extents + links:
            if replace:
                self._drop(tag.type, tag.file_name, tag.tag_id)
            self._add(tag)
        _log.debug('committed %d extents and %d links',
                   len(extents), len(links))
        return extents + links

    def _make_extent(self, file_name, tag_type, attrs):
        elem = self.element(tag_type)
        if not elem.is_extent():
            raise MalformedTagError('%s is not an extent tag type' % tag_type)
        row, start, end = self.schema.validate(elem, attrs)
        return ExtentTag(file_name, tag_type, row['id'], start, end, row)

    def _make_link(self, file_name, tag_type, attrs, pending):
        elem = self.element(tag_type)
        if not elem.is_link():
            raise MalformedTagError('%s is not a link tag type' % tag_type)
        row = self.schema.validate(elem, attrs)[0]
        endpoint_types = []
        for key in ['fromID', 'toID']:
            endpoint_type = self.element_of(file_name, row[key]) or\
                pending.get((file_name, row[key]))
            if endpoint_type is None:
                _log.warning('%s: %s link %s points to unknown extent %s',
                             file_name, tag_type, row['id'], row[key])
            endpoint_types.append(endpoint_type)
        from_type, to_type = endpoint_types
        return LinkTag(file_name, tag_type, row['id'],
                       row['fromID'], from_type,
                       row['toID'], to_type, row)

    def _check_duplicates(self, tags, replace):
        seen = set()
        for tag in tags:
            if tag.key() in seen:
                raise DuplicateTagError('%s tag %s occurs twice in %s' %
                                        (tag.type, tag.tag_id, tag.file_name))
            seen.add(tag.key())
            if not replace and\
                    (tag.file_name, tag.tag_id) in self._tags[tag.type]:
                raise DuplicateTagError('%s already has a %s tag %s' %
                                        (tag.file_name, tag.type, tag.tag_id))

    def _add(self, tag):
        self._tags[tag.type][(tag.file_name, tag.tag_id)] = tag
        if tag.file_name not in self._files:
            self._files.append(tag.file_name)
        if isinstance(tag, ExtentTag):
            entry = IndexEntry(tag.file_name, tag.type, tag.tag_id)
            for offset in tag.offsets():
                self._index[offset].append(entry)

    def _drop(self, tag_type, file_name, tag_id):
        tag = self._tags[tag_type].pop((file_name, tag_id), None)
        if isinstance(tag, ExtentTag):
            entry = IndexEntry(file_name, tag_type, tag_id)
            for offset in tag.offsets():
                entries = self._index.get(offset, [])
                if entry in entries:
                    entries.remove(entry)
                if not entries:
                    self._index.pop(offset, None)
            if file_name == self.gold_name:
                self.remove_overlaps(tag_id, tag_type)
        return tag

    def remove_extent(self, file_name, tag_type, tag_id):
        """
        Delete an extent tag and its index entries (and its overlap
        records, if it belongs to the gold standard). Links that point
        to it are left alone.

        :rtype: the deleted tag, or None if there was no such tag
        """
        if not self.element(tag_type).is_extent():
            raise MalformedTagError('%s is not an extent tag type' % tag_type)
        return self._drop(tag_type, file_name, tag_id)

    def remove_link(self, file_name, tag_type, tag_id):
        """
        Delete a link tag

        :rtype: the deleted tag, or None if there was no such tag
        """
        if not self.element(tag_type).is_link():
            raise MalformedTagError('%s is not a link tag type' % tag_type)
        return self._drop(tag_type, file_name, tag_id)

    # -----------------------------------------------------------------
    # overlap records
    # -----------------------------------------------------------------

    def add_overlaps(self, records):
        "add `OverlapRecord` objects"
        for rec in records:
            self._overlaps[(rec.gold_id, rec.tag_type)].add(
                (rec.file_name, rec.file_id))
            self._overlapped_by[(rec.file_name, rec.tag_type,
                                 rec.file_id)].add(rec.gold_id)

    def clear_overlaps(self):
        "forget all overlap records"
        self._overlaps = defaultdict(set)
        self._overlapped_by = defaultdict(set)

    def remove_overlaps(self, gold_id, tag_type):
        "forget the overlap records of a gold standard extent"
        pairs = self._overlaps.pop((gold_id, tag_type), set())
        for file_name, file_id in pairs:
            key = (file_name, tag_type, file_id)
            gold_ids = self._overlapped_by.get(key, set())
            gold_ids.discard(gold_id)
            if not gold_ids:
                self._overlapped_by.pop(key, None)

    def overlaps(self):
        """
        All overlap records, sorted
        """
        records = [OverlapRecord(gid, ttype, fname, fid)
                   for (gid, ttype), pairs in self._overlaps.items()
                   for fname, fid in pairs]
        return sorted(records, key=lambda r: (r.tag_type,
                                              natural_key(r.gold_id),
                                              r.file_name,
                                              natural_key(r.file_id)))

    def overlapping(self, gold_id, tag_type):
        """
        `(file_name, file_id)` pairs recorded as overlapping a gold
        standard extent
        """
        return frozenset(self._overlaps.get((gold_id, tag_type), ()))

    def gold_ids_overlapping(self, file_name, tag_type, tag_id):
        """
        Ids of the gold standard extents recorded as overlapping an
        annotator extent
        """
        key = (file_name, tag_type, tag_id)
        return frozenset(self._overlapped_by.get(key, ()))

    # -----------------------------------------------------------------
    # queries
    # -----------------------------------------------------------------

    def files(self):
        "names of the files with at least one tag, in loading order"
        return list(self._files)

    def _tags_of_kind(self, kind, file_name, tag_type):
        if tag_type is None:
            types = list(self._tags)
        else:
            self.element(tag_type)
            types = [tag_type]
        return [t for ttype in types
                for t in self._tags[ttype].values()
                if isinstance(t, kind) and
                (file_name is None or t.file_name == file_name)]

    def extents(self, file_name=None, tag_type=None):
        "extent tags, optionally restricted to a file and/or type"
        return self._tags_of_kind(ExtentTag, file_name, tag_type)

    def links(self, file_name=None, tag_type=None):
        "link tags, optionally restricted to a file and/or type"
        return self._tags_of_kind(LinkTag, file_name, tag_type)

    def get_tag(self, file_name, tag_type, tag_id):
        "a tag of either kind, or None"
        return self._table(tag_type).get((file_name, tag_id))

    def get_extent(self, file_name, tag_type, tag_id):
        "an extent tag, or None"
        tag = self.get_tag(file_name, tag_type, tag_id)
        return tag if isinstance(tag, ExtentTag) else None

    def get_link(self, file_name, tag_type, tag_id):
        "a link tag, or None"
        tag = self.get_tag(file_name, tag_type, tag_id)
        return tag if isinstance(tag, LinkTag) else None

    def get_row(self, tag_type, tag_id, file_name):
        """
        Attribute values of a tag (a fresh dictionary, empty if there
        is no such tag)
        """
        tag = self.get_tag(file_name, tag_type, tag_id)
        return OrderedDict() if tag is None else OrderedDict(tag.features)

    def element_of(self, file_name, tag_id):
        """
        Type of the extent with this id in the file, or None
        """
        for tag_type, table in self._tags.items():
            if isinstance(table.get((file_name, tag_id)), ExtentTag):
                return tag_type
        return None

    def id_exists(self, file_name, tag_id):
        """
        True if some tag (extent or link) in the file has this id
        """
        return any((file_name, tag_id) in table
                   for table in self._tags.values())

    def text_of(self, file_name, tag_type, tag_id):
        "text snapshot of an extent, or the empty string"
        tag = self.get_extent(file_name, tag_type, tag_id)
        return '' if tag is None else tag.text()

    def ids_at(self, file_name, offset):
        """
        `(tag_type, tag_id)` of the file's extents at an offset
        """
        return [(e.tag_type, e.tag_id) for e in self._index.get(offset, [])
                if e.file_name == file_name]

    def tag_exists_at(self, file_name, offset):
        "True if the file has an extent at this offset"
        return any(e.file_name == file_name
                   for e in self._index.get(offset, []))

    def files_at(self, tag_type, offset):
        """
        Files with an extent of the given type at an offset (each file
        listed once)
        """
        self.element(tag_type)
        found = OrderedDict()
        for entry in self._index.get(offset, []):
            if entry.tag_type == tag_type:
                found[entry.file_name] = True
        return list(found)

    def locations_by_type(self, tag_type):
        """
        Every offset covered by an extent of the type, with the set of
        files having such an extent there
        """
        locations = defaultdict(set)
        for tag in self.extents(tag_type=tag_type):
            for offset in tag.offsets():
                locations[offset].add(tag.file_name)
        return dict(locations)

    def locations_of_file(self, file_name):
        "set of offsets covered by some extent of the file"
        return set(offset for tag in self.extents(file_name=file_name)
                   for offset in tag.offsets())

    def tags_in_span(self, tag_type, begin, end):
        """
        Extents of a type at any offset from `begin` to `end` (end
        included), grouped by file. If `begin == end`, only that
        offset is looked at, which is how non-consuming tags are
        found (`begin == end == NON_CONSUMING`).

        :rtype: dict from file name to list of ids (each id once)
        """
        self.element(tag_type)
        offsets = [begin] if begin == end else range(begin, end + 1)
        found = OrderedDict()
        for offset in offsets:
            for entry in self._index.get(offset, []):
                if entry.tag_type != tag_type:
                    continue
                ids = found.setdefault(entry.file_name, [])
                if entry.tag_id not in ids:
                    ids.append(entry.tag_id)
        return found

    def file_tags_in_span(self, file_name, begin, end,
                          non_consuming=True):
        """
        Extents of a file at any offset from `begin` to `end` (end
        included; only that offset if `begin == end`), along with the
        file's non-consuming extents unless told otherwise.

        :rtype: dict from tag type to list of ids
        """
        offsets = [begin] if begin == end else list(range(begin, end + 1))
        if non_consuming:
            offsets.append(NON_CONSUMING)
        found = OrderedDict()
        for offset in offsets:
            for entry in self._index.get(offset, []):
                if entry.file_name != file_name:
                    continue
                ids = found.setdefault(entry.tag_type, [])
                if entry.tag_id not in ids:
                    ids.append(entry.tag_id)
        return found

    def links_by_anchor(self, file_name, tag_type, tag_id):
        """
        Links of the file with the given extent at either end

        :rtype: dict from link type to list of ids
        """
        found = OrderedDict()
        for link in self.links(file_name=file_name):
            if (link.from_type, link.from_id) == (tag_type, tag_id) or\
                    (link.to_type, link.to_id) == (tag_type, tag_id):
                found.setdefault(link.type, []).append(link.tag_id)
        return found

    def extent_bounds(self, file_name, tag_id):
        """
        Lowest and highest offsets covered by the file's extent(s)
        with this id, or None if there are none
        """
        offsets = [offset for tag in self.extents(file_name=file_name)
                   if tag.tag_id == tag_id
                   for offset in tag.offsets()]
        if not offsets:
            return None
        return min(offsets), max(offsets)

    # -----------------------------------------------------------------
    # output
    # -----------------------------------------------------------------

    def extent_fragments(self, file_name, tag_type):
        """
        XML fragments for the file's extents of a type, in order of
        start offset
        """
        tags = self.extents(file_name=file_name, tag_type=tag_type)
        tags.sort(key=lambda t: (t.start, natural_key(t.tag_id)))
        return [tag_fragment(tag_type, t.features) for t in tags]

    def link_fragments(self, file_name, tag_type):
        """
        XML fragments for the file's links of a type, in order of id
        """
        tags = self.links(file_name=file_name, tag_type=tag_type)
        tags.sort(key=lambda t: natural_key(t.tag_id))
        return [tag_fragment(tag_type, t.features) for t in tags]

    def fragments(self, file_name):
        """
        XML fragments for all tags of a file, one schema element after
        the other
        """
        if self.schema is None:
            raise StoreError('No schema defined for this store')
        res = []
        for elem in self.schema.elements():
            if elem.is_extent():
                res.extend(self.extent_fragments(file_name, elem.name))
            else:
                res.extend(self.link_fragments(file_name, elem.name))
        return res
