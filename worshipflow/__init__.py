"""
WorshipFlow Song Manager - Single-process application.

A small song and lyrics catalog for a worship team: a FastAPI service over
an embedded document store, with tag management and an image-to-text
helper for importing lyric and chord sheets from photos.
"""
