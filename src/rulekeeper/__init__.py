"""Keep shared rule files in sync across projects."""

__version__ = "0.1.0"
