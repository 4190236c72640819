"""
Matching gold standard extents with annotator extents.

A gold standard extent overlaps an annotator extent if both have the
same type and the annotator extent is indexed at some offset between
the start and the end of the gold extent. The end is taken inclusively,
so an annotator tag that begins right where the gold tag ends still
counts as overlapping it. Non-consuming gold extents have no text to
match on and so never overlap anything.
"""

# License: BSD3

import logging

from .annotation import OverlapRecord

_log = logging.getLogger(__name__)


class OverlapResolver(object):
    """
    Computes overlap records and keeps the store's copy of them up to
    date
    """
    def __init__(self, store):
        self._store = store

    def find_overlaps(self, gold_tag):
        """
        Overlap records for a gold standard extent, as of the current
        contents of the store (nothing is written)
        """
        if gold_tag.is_non_consuming():
            return []
        gold_name = self._store.gold_name
        found = self._store.tags_in_span(gold_tag.type,
                                         gold_tag.start, gold_tag.end)
        return [OverlapRecord(gold_tag.tag_id, gold_tag.type,
                              file_name, file_id)
                for file_name, file_ids in found.items()
                if file_name != gold_name
                for file_id in file_ids]

    def rebuild_all(self):
        """
        Throw away all overlap records and compute them again for
        every gold standard extent
        """
        records = []
        for tag in self._store.extents(file_name=self._store.gold_name):
            records.extend(self.find_overlaps(tag))
        self._store.clear_overlaps()
        self._store.add_overlaps(records)
        _log.debug('%d overlap records', len(records))
        return records

    def record_for(self, gold_tag):
        """
        Replace the overlap records of a single gold standard extent,
        eg. after it has been added or modified
        """
        if not gold_tag.is_gold(self._store.gold_name):
            raise ValueError('%s is not a gold standard tag' % gold_tag)
        self._store.remove_overlaps(gold_tag.tag_id, gold_tag.type)
        records = self.find_overlaps(gold_tag)
        self._store.add_overlaps(records)
        return records

    def query_overlaps_of(self, file_name, tag_type, tag_id):
        """
        Ids of the gold standard extents recorded as overlapping a
        given annotator extent
        """
        return self._store.gold_ids_overlapping(file_name, tag_type, tag_id)

    def overlapping_tags(self, tag_type, begin, end):
        """
        Annotator extents of a type found anywhere from `begin` to `end`
        (inclusive), whether or not there is a gold tag there.

        :rtype: dict from file name to list of ids
        """
        found = self._store.tags_in_span(tag_type, begin, end)
        found.pop(self._store.gold_name, None)
        return found
