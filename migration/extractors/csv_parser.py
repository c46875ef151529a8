"""
Streaming CSV parser for the legacy listings export
"""

import pandas as pd
from typing import List, Dict, Any, Optional, Iterator, Tuple, Callable, Awaitable
from pathlib import Path
from core.exceptions import RecordParseError
import logging

logger = logging.getLogger(__name__)

RawRecord = Dict[str, Any]
RowCallback = Callable[[RawRecord, int], Awaitable[None]]


class CSVRecordParser:
    """
    Read the listings export as raw row records.

    Supports:
    - Fully materialized parsing with an optional row limit
    - Row counting without materializing the file
    - Callback-driven streaming that stops once the limit is reached

    Every cell is read as text (empty cells become ""), so composite
    JSON-in-string columns reach the transformer untouched.
    """

    def __init__(self, chunk_size: int = 1000):
        self.chunk_size = chunk_size

    def iter_rows(
        self,
        file_path: str,
        limit: Optional[int] = None
    ) -> Iterator[Tuple[int, RawRecord]]:
        """
        Lazily yield (index, row) pairs, index being 0-based.

        Raises:
            RecordParseError: If the file is missing, empty or malformed
        """
        path = Path(file_path)
        if not path.exists():
            raise RecordParseError(
                f"CSV file not found: {path}",
                context={"file_path": str(path)}
            )

        if limit is not None and limit <= 0:
            return

        index = 0
        try:
            with pd.read_csv(
                path,
                dtype=str,
                keep_default_na=False,
                encoding="utf-8-sig",
                chunksize=self.chunk_size,
            ) as reader:
                for chunk in reader:
                    for record in chunk.to_dict(orient="records"):
                        yield index, record
                        index += 1
                        if limit is not None and index >= limit:
                            return
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError, OSError) as e:
            raise RecordParseError(
                f"Failed to parse CSV file {path}",
                context={"file_path": str(path), "row_index": index},
                original_exception=e
            )

    def parse(self, file_path: str, limit: Optional[int] = None) -> List[RawRecord]:
        """Read rows into memory, in file order"""
        logger.info(f"Reading CSV from {file_path}")
        rows = [row for _, row in self.iter_rows(file_path, limit)]
        logger.info(f"Read {len(rows)} records from CSV")
        return rows

    def count(self, file_path: str) -> int:
        """Count data rows (header excluded)"""
        return sum(1 for _ in self.iter_rows(file_path))

    async def stream(
        self,
        file_path: str,
        on_row: RowCallback,
        limit: Optional[int] = None
    ) -> int:
        """
        Await on_row(row, index) for every row, halting once limit rows
        have been delivered.

        Errors raised by on_row propagate unchanged and stop the stream.

        Returns:
            Number of rows delivered
        """
        delivered = 0
        for index, row in self.iter_rows(file_path, limit):
            await on_row(row, index)
            delivered += 1
        return delivered
