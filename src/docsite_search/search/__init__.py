"""
Search indexing and query engine package.

This package provides a pure-Python search stack:
- analyzers: Tokenizers and filters (markup stripping, lowercase, length, stop, stemming)
- models: Postings and stored document metadata
- index: Immutable query-time index
- indexer: Corpus indexing with sharded accumulation
- stats: TF-IDF scoring statistics
- ranking: Field-weighted, length-normalized scoring with coordination
- snippet: Snippet extraction and highlighting
- engine: Query engine
- serialization: Versioned index persistence
- repository: Swappable index holder
"""
