"""Infrastructure adapters: extractors, storage, persistence, observability."""
