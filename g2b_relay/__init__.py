"""G2B (나라장터) bid-data ingestion and webhook relay service."""

__version__ = "0.1.0"
