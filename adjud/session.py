"""
An adjudication session: one task, its annotator files and the gold
standard being built from them.

The session owns the tag store along with the id assigner, overlap
resolver and link anchor resolver working on it, and walks through the
states ::

    no_schema -> schema_loaded -> task_started -> task_with_files

Loading a schema or starting a task again throws away every tag.

Queries made on behalf of the display (agreement maps, tags under a
selection, and so forth) never raise on store or schema trouble: they
log the problem and return an empty result. Mutations on the other
hand let their errors through, and leave the store untouched when they
fail.
"""

# License: BSD3

from collections import OrderedDict
from enum import Enum
from functools import wraps
import logging

from .annotation import GOLD_STANDARD, NON_CONSUMING
from .ids import IdAssigner
from .links import LinkAnchorResolver, closest_match
from .overlap import OverlapResolver
from .schema import SchemaError
from .store import StoreError, TagStore

_log = logging.getLogger(__name__)


class SessionError(Exception):
    """
    The session cannot do this in its current state
    """
    def __init__(self, *args, **kw):
        Exception.__init__(self, *args, **kw)


class SessionState(Enum):
    """
    Where a session is in its life cycle
    """
    no_schema = 1
    schema_loaded = 2
    task_started = 3
    task_with_files = 4


class Agreement(Enum):
    """
    How much the files agree at a character offset.

    * gold: the gold standard has a tag there
    * unanimous: every annotator file has a tag there
    * partial: some annotator files have a tag there
    * anchor: (link types) a gold standard extent is there, which
      links could attach to
    """
    gold = 'gold'
    unanimous = 'unanimous'
    partial = 'partial'
    anchor = 'anchor'


def _quiet_query(empty):
    """
    Make a query method log store and schema errors and return
    `empty()` instead of raising
    """
    def decorator(method):
        @wraps(method)
        def inner(self, *args, **kwargs):
            try:
                return method(self, *args, **kwargs)
            except (StoreError, SchemaError) as oops:
                _log.error('%s failed: %s', method.__name__, oops)
                return empty()
        return inner
    return decorator


class AdjudicationSession(object):
    """
    State of an adjudication task.

    :param gold_name: file name reserved for the gold standard
    :param policy: anchor policy for the link anchor resolver
    """
    def __init__(self, gold_name=GOLD_STANDARD, policy=closest_match):
        self.gold_name = gold_name
        self.store = TagStore(gold_name)
        self.ids = IdAssigner(self.store)
        self.overlaps = OverlapResolver(self.store)
        self.links = LinkAnchorResolver(self.store, policy=policy)
        self.state = SessionState.no_schema
        self.schema = None
        self.files = []
        self.current_type = None

    # -----------------------------------------------------------------
    # life cycle
    # -----------------------------------------------------------------

    def _restart(self):
        self.store.define_schema(self.schema)
        self.ids.reset_all()
        self.links.reset()
        self.files = []
        self.current_type = None

    def load_schema(self, schema):
        """
        Set the task schema, dropping any tags loaded so far
        """
        self.schema = schema
        self._restart()
        self.state = SessionState.schema_loaded
        _log.info('loaded schema for task %s', schema.name)

    def start_task(self):
        """
        Start a new task with the current schema: no files, empty gold
        standard
        """
        if self.state == SessionState.no_schema:
            raise SessionError('Cannot start a task without a schema')
        self._restart()
        self.state = SessionState.task_started

    def _require_task(self):
        if self.state not in [SessionState.task_started,
                              SessionState.task_with_files]:
            raise SessionError('No task started (session is in state %s)' %
                               self.state.name)

    def _load(self, file_name, records):
        with self.store.batch() as batch:
            for tag_type, attrs in records:
                batch.add(file_name, tag_type, attrs)
        return batch.tags

    def add_file(self, file_name, records):
        """
        Load the tags of an annotator file, given as a sequence of
        `(tag_type, attrs)` pairs. Either all of them are loaded or
        none is.

        :rtype: list of the new tags
        """
        self._require_task()
        if file_name == self.gold_name:
            raise SessionError('%s is reserved for the gold standard' %
                               file_name)
        if file_name in self.files:
            raise SessionError('%s is already loaded' % file_name)
        tags = self._load(file_name, records)
        self.files.append(file_name)
        self.state = SessionState.task_with_files
        _log.info('%s: %d tags', file_name, len(tags))
        return tags

    def add_gold_standard(self, records):
        """
        Load a gold standard saved earlier, and work out its overlaps
        with the annotator files
        """
        self._require_task()
        if self.store.extents(file_name=self.gold_name) or\
                self.store.links(file_name=self.gold_name):
            raise SessionError('There already are gold standard tags')
        tags = self._load(self.gold_name, records)
        self.overlaps.rebuild_all()
        _log.info('gold standard: %d tags', len(tags))
        return tags

    # -----------------------------------------------------------------
    # editing the gold standard
    # -----------------------------------------------------------------

    def add_gold_tag(self, tag_type, attrs):
        """
        Create a gold standard tag, or modify one if `attrs` has the id
        of an existing tag (which is then replaced as a whole).

        Tags without an id get a fresh one. Extents have their overlaps
        recorded; links without `fromText`/`toText` get them from their
        gold anchors.

        :rtype: the new tag
        """
        self._require_task()
        elem = self.store.element(tag_type)
        attrs = dict(attrs)
        replace = bool(attrs.get('id'))
        if not replace:
            attrs['id'] = self.ids.next_id(tag_type, self.gold_name)
        if elem.is_extent():
            tag = self.store.insert_extent(self.gold_name, tag_type, attrs,
                                           replace=replace)
            self.overlaps.record_for(tag)
        else:
            for id_key, text_key in [('fromID', 'fromText'),
                                     ('toID', 'toText')]:
                anchor_id = attrs.get(id_key)
                if anchor_id and not attrs.get(text_key):
                    anchor_type = self.store.element_of(self.gold_name,
                                                        anchor_id)
                    attrs[text_key] = self.store.text_of(self.gold_name,
                                                         anchor_type,
                                                         anchor_id)\
                        if anchor_type else ''
            tag = self.store.insert_link(self.gold_name, tag_type, attrs,
                                         replace=replace)
        _log.debug('gold standard: %s', tag)
        return tag

    def accept_tag(self, file_name, tag_type, tag_id):
        """
        Copy a tag from an annotator file into the gold standard, with
        a fresh id. Links are copied with their anchors resolved to the
        gold standard.

        :rtype: the new gold standard tag
        """
        self._require_task()
        if self.store.element(tag_type).is_extent():
            tag = self.store.get_extent(file_name, tag_type, tag_id)
            if tag is None:
                raise SessionError('No %s tag %s in %s' %
                                   (tag_type, tag_id, file_name))
            attrs = OrderedDict(tag.features)
        else:
            link = self.store.get_link(file_name, tag_type, tag_id)
            if link is None:
                raise SessionError('No %s tag %s in %s' %
                                   (tag_type, tag_id, file_name))
            resolved = self.links.resolve_link(link)
            if resolved is None:
                raise SessionError('%s link %s in %s has an anchor with no '
                                   'gold standard counterpart' %
                                   (tag_type, tag_id, file_name))
            attrs = OrderedDict(resolved.features)
        attrs.pop('id', None)
        return self.add_gold_tag(tag_type, attrs)

    def remove_gold_tag(self, tag_type, tag_id):
        """
        Delete a gold standard tag. Deleting an extent also deletes the
        gold standard links attached to it.

        :rtype: list of `(tag_type, tag_id)` for every tag deleted
        """
        self._require_task()
        removed = []
        if self.store.element(tag_type).is_extent():
            attached = self.store.links_by_anchor(self.gold_name, tag_type,
                                                  tag_id)
            for link_type, link_ids in attached.items():
                for link_id in link_ids:
                    if self.store.remove_link(self.gold_name, link_type,
                                              link_id):
                        removed.append((link_type, link_id))
            if self.store.remove_extent(self.gold_name, tag_type, tag_id):
                removed.append((tag_type, tag_id))
        elif self.store.remove_link(self.gold_name, tag_type, tag_id):
            removed.append((tag_type, tag_id))
        return removed

    def rebuild_overlaps(self):
        "recompute every overlap record from scratch"
        return self.overlaps.rebuild_all()

    # -----------------------------------------------------------------
    # agreement
    # -----------------------------------------------------------------

    def classify(self, files):
        """
        Agreement level for a set of files having a tag somewhere
        (None if there are no such files)
        """
        files = set(files)
        if not files:
            return None
        elif self.gold_name in files:
            return Agreement.gold
        elif all(f in files for f in self.files):
            return Agreement.unanimous
        else:
            return Agreement.partial

    @_quiet_query(dict)
    def agreement_map(self, tag_type):
        """
        Agreement level at every offset where something relevant to
        the tag type is found

        :rtype: dict from offset to `Agreement`
        """
        levels = {}
        if self.store.element(tag_type).is_extent():
            locations = self.store.locations_by_type(tag_type)
        else:
            for offset in self.store.locations_of_file(self.gold_name):
                levels[offset] = Agreement.anchor
            locations = self.links.resolve_links_of_type(tag_type).locations
        for offset, files in locations.items():
            levels[offset] = self.classify(files)
        levels.pop(NON_CONSUMING, None)
        return levels

    @_quiet_query(dict)
    def select_type(self, tag_type):
        """
        Make this the tag type being adjudicated, and return its
        agreement map. Unknown types leave the selection as it was.

        Links resolved for a previously selected link type are
        forgotten.
        """
        elem = self.store.element(tag_type)
        self.current_type = tag_type
        if elem.is_extent():
            self.links.reset()
        return self.agreement_map(tag_type)

    @_quiet_query(dict)
    def agreement_in_span(self, tag_type, begin, end):
        """
        Agreement levels from `begin` to `end` (excluded), eg. after
        the tags there have changed. Offsets with nothing on them map
        to None.
        """
        if self.store.element(tag_type).is_extent():
            return dict((offset,
                         self.classify(self.store.files_at(tag_type, offset)))
                        for offset in range(begin, end))
        levels = self.agreement_map(tag_type)
        return dict((offset, levels.get(offset))
                    for offset in range(begin, end))

    # -----------------------------------------------------------------
    # queries
    # -----------------------------------------------------------------

    @_quiet_query(OrderedDict)
    def tags_in_span(self, begin, end, tag_type=None):
        """
        Attribute rows of the extents of the current type (or the type
        given) from `begin` to `end` (inclusive), by file
        """
        tag_type = tag_type or self.current_type
        found = OrderedDict()
        for file_name, ids in self.store.tags_in_span(tag_type, begin,
                                                      end).items():
            found[file_name] = [self.store.get_row(tag_type, i, file_name)
                                for i in ids]
        return found

    def non_consuming_tags(self, tag_type=None):
        "attribute rows of the non-consuming extents of a type, by file"
        return self.tags_in_span(NON_CONSUMING, NON_CONSUMING, tag_type)

    @_quiet_query(OrderedDict)
    def links_in_span(self, begin, end):
        """
        Relevant links of the current link type touching the selection,
        by file (see `LinkAnchorResolver.links_in_span`)
        """
        return self.links.links_in_span(begin, end)

    @property
    def highlights(self):
        """
        Spans of the far anchors of the links found by the last call
        to `links_in_span`, by file
        """
        return self.links.highlights

    @_quiet_query(OrderedDict)
    def file_tags_in_span(self, file_name, begin, end):
        """
        Ids of the tags a file has from `begin` to `end` (included) or
        that have no span, by tag type
        """
        return self.store.file_tags_in_span(file_name, begin, end)

    @_quiet_query(frozenset)
    def overlaps_of(self, file_name, tag_type, tag_id):
        "ids of the gold extents an annotator extent overlaps"
        self.store.element(tag_type)
        return self.overlaps.query_overlaps_of(file_name, tag_type, tag_id)

    @_quiet_query(list)
    def gold_fragments(self):
        "XML fragments for the gold standard"
        return self.store.fragments(self.gold_name)
