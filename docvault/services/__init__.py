"""Application services (ingestion, cleaning, indexing, search, insights)."""
