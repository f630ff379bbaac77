"""
Lazy Read store - the embedded persistence layer of a reading-notes app.
Books own notes, notes own ordered images; everything lives in a single
SQLite file that is migrated forward in place on every start.

Blocking repositories live in ``lazyread.storage``; ``lazyread.store``
wraps them in an async facade for UI callers.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("lazyread")
except PackageNotFoundError:
    __version__ = "0.3.0"
