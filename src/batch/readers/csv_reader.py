"""
CSV reader for uploaded submission files.

Cells are returned as raw strings; typing is the validator's job. The
first row is the header. Blank lines are skipped.
"""

import csv
import io
from pathlib import Path
from typing import Iterator, List, Tuple


class CSVParseError(Exception):
    """Raised when a CSV file cannot be opened, decoded or tokenized."""

    def __init__(self, message: str, line_number: int | None = None):
        self.line_number = line_number
        location = f" (line {line_number})" if line_number is not None else ""
        super().__init__(f"{message}{location}")


class CSVReader:
    """
    Reads a delimited text file with a header row.

    Usage:
        reader = CSVReader("upload.csv")
        headers, rows = reader.read()
    """

    def __init__(self, file_path: str | Path, delimiter: str = ",", encoding: str = "utf-8-sig"):
        """
        Initialize CSV reader.

        Args:
            file_path: Path to the CSV file
            delimiter: Field delimiter
            encoding: Text encoding; the default tolerates a UTF-8 BOM
        """
        self.file_path = Path(file_path)
        self.delimiter = delimiter
        self.encoding = encoding

    def iter_rows(self) -> Iterator[Tuple[int, List[str]]]:
        """
        Yield ``(line_number, cells)`` for every non-blank row, header first.

        Raises:
            CSVParseError: On I/O, decoding or tokenizing failures
        """
        try:
            with open(self.file_path, "r", encoding=self.encoding, newline="") as f:
                yield from _iter_reader(csv.reader(f, delimiter=self.delimiter))
        except OSError as e:
            raise CSVParseError(f"Cannot read {self.file_path}: {e.strerror or e}") from e
        except UnicodeDecodeError as e:
            raise CSVParseError(f"{self.file_path} is not valid {self.encoding} text: {e.reason}") from e

    def read(self) -> Tuple[List[str], List[List[str]]]:
        """
        Read the whole file.

        Returns:
            (headers, rows)

        Raises:
            CSVParseError: If the file is unreadable, malformed or empty
        """
        return _split_header(self.iter_rows(), str(self.file_path))


def _iter_reader(reader) -> Iterator[Tuple[int, List[str]]]:
    try:
        for cells in reader:
            if not cells:
                continue
            yield reader.line_num, cells
    except csv.Error as e:
        raise CSVParseError(f"Malformed CSV: {e}", reader.line_num) from e


def _split_header(rows: Iterator[Tuple[int, List[str]]], source: str) -> Tuple[List[str], List[List[str]]]:
    try:
        _, headers = next(rows)
    except StopIteration:
        raise CSVParseError(f"{source} is empty; a header row is required") from None
    return headers, [cells for _, cells in rows]


def read_csv_text(text: str, delimiter: str = ",") -> Tuple[List[str], List[List[str]]]:
    """Parse CSV content already held in memory."""
    if text.startswith("\ufeff"):
        text = text[1:]
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
    return _split_header(_iter_reader(reader), "input")
