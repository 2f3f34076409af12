"""Transaction ingestion: normalization boundary and CSV reader."""
