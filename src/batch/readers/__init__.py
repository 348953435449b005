"""
Readers for uploaded submission files.
"""

from .csv_reader import CSVParseError, CSVReader, read_csv_text

__all__ = ["CSVReader", "CSVParseError", "read_csv_text"]
