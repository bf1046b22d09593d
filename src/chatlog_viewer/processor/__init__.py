"""Processing pipeline: normalization, summarization and indexing."""
