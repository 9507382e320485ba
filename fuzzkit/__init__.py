"""Building blocks for coverage-guided fuzzing: data provider, corpus scheduling and merging."""

__version__ = "0.1.0"