"""Loci listening-event enrichment engine.

Attaches canonical Spotify metadata to partial listening events captured on
device, either in real time through a batched pending queue or at the end of
a session by reconciling against the recently-played history.
"""

__version__ = "0.1.0"
