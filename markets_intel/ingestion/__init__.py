"""
Seed data ingestion into the private markets knowledge graph.
"""

from .csv_ingester import CSVIngester, IngestionResult, parse_aum, extract_sector

__all__ = ["CSVIngester", "IngestionResult", "parse_aum", "extract_sector"]
