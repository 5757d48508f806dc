"""Application layer: configuration, composition root and HTTP API."""
