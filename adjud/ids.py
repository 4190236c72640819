"""
Fresh tag ids
"""

# License: BSD3


class IdAssigner(object):
    """
    Hands out ids of the form `<prefix><number>`, one counter per tag
    type, skipping any id already used in the target file (by a tag of
    any type, extent or link)
    """
    def __init__(self, store):
        self._store = store
        self._counters = {}

    def reset_all(self):
        "start every counter back at zero"
        self._counters = {}
        if self._store.schema is not None:
            for elem in self._store.schema.elements():
                if elem.id_attribute() is not None:
                    self._counters[elem.name] = 0

    def peek(self, tag_type):
        "next number to try for a tag type"
        return self._counters.get(tag_type, 0)

    def next_id(self, tag_type, file_name=None):
        """
        A new id for a tag of the given type in the given file (the
        gold standard by default).

        The counter moves past the id returned (and past any id found
        to be taken along the way)
        """
        if file_name is None:
            file_name = self._store.gold_name
        prefix = self._store.element(tag_type).id_prefix()
        number = self.peek(tag_type)
        candidate = prefix + str(number)
        while self._store.id_exists(file_name, candidate):
            number += 1
            candidate = prefix + str(number)
        self._counters[tag_type] = number + 1
        return candidate
