"""dbsnap — copy a relational database into an embedded snapshot for tests."""

__version__ = "0.1.0"
