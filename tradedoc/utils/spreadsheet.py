"""
TradeDoc Tracker - Spreadsheet Reader

Reads uploaded .xlsx batches into row dictionaries keyed by the header row.
Cell values keep their native types (datetime, int, float, str) so the
normalizer can tell the date encodings apart.
"""

import logging
import zipfile
from io import BytesIO
from typing import Any, Dict, List

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException as OpenpyxlInvalidFileException

from tradedoc.utils.error_handling import InvalidFileException

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/octet-stream",
}

# Spreadsheet row number of a record, set by read_rows
ROW_NUMBER_KEY = "__row__"


def is_xlsx_upload(filename: str, content_type: str = "") -> bool:
    """Accept by extension; a mismatching content type is tolerated for octet-stream."""
    if not filename or not filename.lower().endswith(".xlsx"):
        return False
    return not content_type or content_type in XLSX_CONTENT_TYPES


def read_rows(content: bytes) -> List[Dict[str, Any]]:
    """
    Read the first worksheet of an .xlsx file.

    Row 1 is the header. Fully empty rows are skipped; each record carries
    its spreadsheet row number under ROW_NUMBER_KEY so errors point at the
    right line.

    Raises:
        InvalidFileException: If the bytes are not a readable workbook
    """
    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except (OpenpyxlInvalidFileException, zipfile.BadZipFile, KeyError) as e:
        logger.warning(f"Rejected unreadable spreadsheet: {e}")
        raise InvalidFileException("File is not a valid .xlsx workbook")

    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        if not header:
            return []

        keys = [str(cell).strip() if cell is not None else "" for cell in header]
        records = []
        for row_number, values in enumerate(rows, start=2):
            if values is None or all(v is None or (isinstance(v, str) and not v.strip()) for v in values):
                continue
            record = {ROW_NUMBER_KEY: row_number}
            for key, value in zip(keys, values):
                if key:
                    record[key] = value
            records.append(record)
        return records
    finally:
        workbook.close()
