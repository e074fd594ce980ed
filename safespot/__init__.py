"""SafeSpot — seismic + weather hazard ingestion and proximity alerting."""

__version__ = "1.0.0"
