"""Batch processing for multiple regions.

- RegionProcessor: loads regional count tables, forecasts every region in
  a process pool, and writes JSON/CSV outputs plus error and validation
  reports
"""

from .processor import BatchConfig, BatchResult, RegionProcessor

__all__ = [
    "BatchConfig",
    "BatchResult",
    "RegionProcessor",
]
