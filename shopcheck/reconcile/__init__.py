"""Reference file ingestion, reconciliation and export."""
