"""
Bringing annotator links into the gold standard's id space.

Each file has its own ids, so a link from an annotator file cannot be
compared with the gold standard directly. Instead we go through the
overlap records (see `adjud.overlap`): an annotator link is relevant to
the adjudication if both its anchors overlap some gold standard extent,
in which case we can say which gold extents it would connect.

When an anchor overlaps several gold extents, an anchor policy picks
one of them. Policies are functions from the annotator anchor (an
`ExtentTag`) and a non-empty list of gold `ExtentTag` to one member of
that list; `closest_match` is the default.
"""

# License: BSD3

from collections import OrderedDict
import logging

from .annotation import Span
from .util import natural_key

_log = logging.getLogger(__name__)


def lowest_id(anchor, candidates):
    """
    Anchor policy: the candidate whose id comes first in natural order
    (`G2` before `G10`)
    """
    return min(candidates, key=lambda t: natural_key(t.tag_id))


def closest_match(anchor, candidates):
    """
    Anchor policy: a candidate with exactly the span of the anchor if
    there is one, otherwise the one sharing the most characters with
    it, otherwise the lowest id.

    Overlap ends are inclusive, so an anchor starting where a gold
    extent ends has that extent among its candidates even though they
    share no text. This policy never prefers such a candidate over one
    the anchor really covers.
    """
    anchor_span = anchor.span() if anchor is not None else None

    def closeness(tag):
        span = tag.span()
        if span is None or anchor_span is None:
            return (True, 0, natural_key(tag.tag_id))
        common = span.overlaps(anchor_span)
        shared = common.length() if common is not None else 0
        return (span != anchor_span, -shared, natural_key(tag.tag_id))

    return min(candidates, key=closeness)


def leftmost(anchor, candidates):
    """
    Anchor policy: the candidate starting first in the text (lowest id
    on ties)
    """
    return min(candidates, key=lambda t: (t.start, natural_key(t.tag_id)))


class ResolvedLink(object):
    """
    A link together with the attributes it would have in the gold
    standard.

    :param link: the link as stored
    :param features: copy of its attributes, with `fromID`/`fromText`
                     and `toID`/`toText` taken from the chosen gold
                     extents
    :param from_candidates: ids of all the gold extents the source
                            anchor overlaps (only the anchor itself
                            for gold links)
    :param to_candidates: same for the target anchor
    """
    def __init__(self, link, features, from_candidates, to_candidates):
        self.link = link
        self.features = features
        self.from_candidates = tuple(from_candidates)
        self.to_candidates = tuple(to_candidates)

    def __repr__(self):
        return 'ResolvedLink(%s:%s, %s -> %s)' % (
            self.file_name, self.tag_id, self.from_id, self.to_id)

    @property
    def file_name(self):
        return self.link.file_name

    @property
    def tag_id(self):
        return self.link.tag_id

    @property
    def type(self):
        return self.link.type

    @property
    def from_id(self):
        return self.features['fromID']

    @property
    def to_id(self):
        return self.features['toID']

    def ambiguous(self):
        """
        True if the policy had to choose between several gold extents
        for either anchor
        """
        return len(self.from_candidates) > 1 or len(self.to_candidates) > 1


class LinkResolution(object):
    """
    Result of resolving all links of a type.

    :param locations: dict from offset to the set of files having a
                      relevant link with a (gold equivalent) anchor
                      there
    :param links: list of `ResolvedLink`, gold standard links included
    """
    def __init__(self, tag_type, locations=None, links=None):
        self.tag_type = tag_type
        self.locations = locations if locations is not None else {}
        self.links = links if links is not None else []

    def files_at(self, offset):
        "files with a relevant link anchored at an offset"
        return self.locations.get(offset, set())


def _touches(tag, selection):
    if tag.is_non_consuming():
        return False
    return tag.span().overlaps(selection, inclusive=True) is not None


class LinkAnchorResolver(object):
    """
    Resolves links against the gold standard and keeps the working set
    of links relevant to the link type currently being adjudicated.
    """
    def __init__(self, store, policy=closest_match):
        self._store = store
        self.policy = policy
        self.current_type = None
        self.current_links = []
        self.highlights = OrderedDict()

    def reset(self):
        "forget the working set"
        self.current_type = None
        self.current_links = []
        self.highlights = OrderedDict()

    def _gold_candidates(self, file_name, tag_type, tag_id):
        """
        Gold extents recorded as overlapping an annotator extent, in
        natural id order
        """
        if tag_type is None:
            return []
        gold_name = self._store.gold_name
        gold_ids = self._store.gold_ids_overlapping(file_name, tag_type,
                                                    tag_id)
        tags = [self._store.get_extent(gold_name, tag_type, gid)
                for gid in sorted(gold_ids, key=natural_key)]
        return [t for t in tags if t is not None]

    def resolve_link(self, link):
        """
        Rewrite a link in gold standard terms.

        :rtype: `ResolvedLink`, or None if one of the anchors overlaps
                no gold standard extent
        """
        features = OrderedDict(link.features)
        if link.file_name == self._store.gold_name:
            return ResolvedLink(link, features, [link.from_id], [link.to_id])
        from_tags = self._gold_candidates(link.file_name, link.from_type,
                                          link.from_id)
        to_tags = self._gold_candidates(link.file_name, link.to_type,
                                        link.to_id)
        if not from_tags or not to_tags:
            return None
        new_from = self.policy(self._store.get_extent(link.file_name,
                                                      link.from_type,
                                                      link.from_id),
                               from_tags)
        new_to = self.policy(self._store.get_extent(link.file_name,
                                                    link.to_type,
                                                    link.to_id),
                             to_tags)
        features['fromID'] = new_from.tag_id
        features['fromText'] = new_from.text()
        features['toID'] = new_to.tag_id
        features['toText'] = new_to.text()
        resolved = ResolvedLink(link, features,
                                [t.tag_id for t in from_tags],
                                [t.tag_id for t in to_tags])
        if resolved.ambiguous():
            _log.info('%s link %s in %s: several gold anchors, chose %s -> %s',
                      link.type, link.tag_id, link.file_name,
                      new_from.tag_id, new_to.tag_id)
        return resolved

    def resolve_links_of_type(self, link_type):
        """
        Resolve every stored link of a type, and make those which are
        relevant (gold links, and annotator links whose anchors both
        overlap the gold standard) the new working set.

        Locations are those of the gold extents the relevant links
        point to, each credited to the file the link comes from. For
        annotator links, every candidate gold extent counts, not just
        the one chosen by the policy.

        :rtype: `LinkResolution`
        """
        self.reset()
        self.current_type = link_type
        gold_name = self._store.gold_name
        resolution = LinkResolution(link_type)
        anchors = OrderedDict()
        for link in self._store.links(tag_type=link_type):
            resolved = self.resolve_link(link)
            if resolved is None:
                continue
            if link.file_name == gold_name:
                anchors[(gold_name, link.from_type, link.from_id)] = True
                anchors[(gold_name, link.to_type, link.to_id)] = True
            else:
                for gold_id in resolved.from_candidates:
                    anchors[(link.file_name, link.from_type, gold_id)] = True
                for gold_id in resolved.to_candidates:
                    anchors[(link.file_name, link.to_type, gold_id)] = True
            self.current_links.append((link.file_name, link.tag_id))
            resolution.links.append(resolved)

        for file_name, tag_type, gold_id in anchors:
            if tag_type is None:
                continue
            tag = self._store.get_extent(gold_name, tag_type, gold_id)
            if tag is None:
                continue
            for offset in tag.offsets():
                resolution.locations.setdefault(offset, set()).add(file_name)
        _log.debug('%s: %d relevant links', link_type, len(resolution.links))
        return resolution

    def links_in_span(self, begin, end):
        """
        Links of the working set with at least one anchor touching the
        selection from `begin` to `end` (both included), resolved to
        gold anchors.

        As a side effect, `highlights` is set to the spans of the
        anchors on the other side (those not touching the selection),
        by file.

        :rtype: dict from file name to list of `ResolvedLink`
        """
        self.highlights = OrderedDict()
        found = OrderedDict()
        if self.current_type is None:
            return found
        selection = Span(begin, end)
        for file_name, link_id in self.current_links:
            link = self._store.get_link(file_name, self.current_type, link_id)
            if link is None or not link.is_resolved():
                continue
            from_tag = self._store.get_extent(file_name, link.from_type,
                                              link.from_id)
            to_tag = self._store.get_extent(file_name, link.to_type,
                                            link.to_id)
            if from_tag is None or to_tag is None:
                continue
            from_hit = _touches(from_tag, selection)
            to_hit = _touches(to_tag, selection)
            if not (from_hit or to_hit):
                continue
            resolved = self.resolve_link(link)
            if resolved is None:
                continue
            found.setdefault(file_name, []).append(resolved)
            for hit, tag in [(from_hit, from_tag), (to_hit, to_tag)]:
                if not hit and not tag.is_non_consuming():
                    self.highlights.setdefault(file_name, []).append(
                        tag.span())
        return found
