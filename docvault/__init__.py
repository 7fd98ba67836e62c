"""docvault: local document ingestion, cleaning and similarity search."""

__version__ = "0.1.0"
