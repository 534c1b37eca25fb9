"""CargoTrack scan ingestion and tracking server."""
