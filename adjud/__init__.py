# License: BSD3

"""
adjud is a library for reconciling several annotations of the same text
into a single gold standard.

Layers
------

Data model, schema and storage

    - adjud.annotation: extent and link tags, spans
    - adjud.schema: tag types of a task
    - adjud.store: tags, per-character index, overlap records

Adjudication

    - adjud.ids: fresh ids for gold standard tags
    - adjud.overlap: matching gold extents with annotator extents
    - adjud.links: bringing annotator links into the gold standard
    - adjud.session: the state of an adjudication task

Input/output

    - adjud.dtd: task definitions
    - adjud.mae: stand-off XML annotation files
"""

__all__ = ['annotation', 'dtd', 'ids', 'links', 'mae', 'overlap',
           'schema', 'session', 'store', 'util']
