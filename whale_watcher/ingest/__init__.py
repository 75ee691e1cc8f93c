"""Transaction ingestion."""

from .ingestor import Ingestor

__all__ = ["Ingestor"]
