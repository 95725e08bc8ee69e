"""notetree - hierarchical note vault engine with schemas and wiki-link tracking."""

__version__ = "0.1.0"
