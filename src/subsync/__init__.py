"""subsync: keep a standalone repo in step with a sub-directory of an upstream repo."""

__version__ = "0.1.0"
