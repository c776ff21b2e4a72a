"""
Timestamp ledger.

An ``.xlsx`` workbook with a single ``Timestamps`` sheet. Row 0 holds the
header, row ``n`` holds the hardware timestamp of the ``n``-th persisted frame.
The workbook is only written to disk when it is closed, so ``close`` must run
before the process exits.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import xlsxwriter

logger = logging.getLogger(__name__)

SHEET_NAME = 'Timestamps'
HEADER = 'Timestamps (ns)'
# Last row index an .xlsx worksheet can hold.
MAX_ROW = 1_048_575


class TimestampLedger:
    """Append-only ledger of frame timestamps backed by XlsxWriter."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        # Any existing file at ``path`` is replaced when the workbook closes.
        self.workbook = xlsxwriter.Workbook(str(self.path))
        self.worksheet = self.workbook.add_worksheet(SHEET_NAME)
        self.rows_written = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write_header(self) -> None:
        self.worksheet.write_string(0, 0, HEADER)

    def is_full(self, row_index: int) -> bool:
        return row_index > MAX_ROW

    def append_row(self, row_index: int, timestamp_ns: int) -> None:
        """Write ``timestamp_ns`` into ``row_index`` (1-based frame sequence number).

        Raises:
            ValueError: if the ledger is closed, the row is the header row, or
                the row is past the worksheet limit.
        """
        if self._closed:
            raise ValueError(f'Ledger {self.path} is closed')
        if row_index < 1:
            raise ValueError(f'Row {row_index} is reserved for the header')
        if self.worksheet.write_number(row_index, 0, timestamp_ns) < 0:
            raise ValueError(f'Row {row_index} is past the worksheet limit of {MAX_ROW} rows')
        self.rows_written += 1

    def close(self) -> None:
        """Finalize the workbook. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.workbook.close()
        logger.info('Timestamp ledger closed with %d rows: %s', self.rows_written, self.path)

    def __enter__(self) -> 'TimestampLedger':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
