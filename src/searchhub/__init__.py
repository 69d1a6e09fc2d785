"""searchhub: asynchronous document indexing and semantic search pipeline."""
