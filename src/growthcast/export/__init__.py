"""Export modules for forecast reports."""

from .csv_export import CsvExporter
from .json_export import JsonExporter

__all__ = ["CsvExporter", "JsonExporter"]
