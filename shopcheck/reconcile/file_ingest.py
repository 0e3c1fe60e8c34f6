"""Reference file download and parsing (Excel workbooks and CSV)."""

import datetime
import io
import json
import logging
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import httpx
from openpyxl import load_workbook
from openpyxl.cell.rich_text import CellRichText

from shopcheck.exceptions import FileFetchError, UnsupportedFileTypeError

logger = logging.getLogger(__name__)

WORKBOOK_EXTENSIONS = {".xlsx", ".xls"}
CSV_EXTENSIONS = {".csv"}

ReferenceRow = Dict[str, str]


def file_extension(file_url: str) -> str:
    """Lowercased extension of the URL path, ignoring query and fragment."""
    return PurePosixPath(urlparse(file_url).path).suffix.lower()


def check_file_type(file_url: str) -> str:
    """
    Validate that a reference file URL points to a supported format.

    Returns:
        "workbook" or "csv"

    Raises:
        UnsupportedFileTypeError: For any other extension
    """
    extension = file_extension(file_url)
    if extension in WORKBOOK_EXTENSIONS:
        return "workbook"
    if extension in CSV_EXTENSIONS:
        return "csv"
    raise UnsupportedFileTypeError(file_url)


def cell_value_to_string(value: Any) -> str:
    """Render a spreadsheet cell value as text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, CellRichText):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, int):
        return str(value)

    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return "[Complex Value]"


def parse_workbook(content: bytes) -> List[ReferenceRow]:
    """
    Read every sheet of a workbook into header -> value mappings.

    The first row of each sheet holds the headers; blank rows are skipped.
    """
    workbook = load_workbook(io.BytesIO(content), data_only=True, rich_text=True)
    rows: List[ReferenceRow] = []

    try:
        for worksheet in workbook.worksheets:
            logger.info(f"Processing sheet: {worksheet.title}")
            sheet_rows = worksheet.iter_rows(values_only=True)
            header_row = next(sheet_rows, None)
            if not header_row:
                continue
            headers = [cell_value_to_string(value) for value in header_row]

            for values in sheet_rows:
                if all(value is None or value == "" for value in values):
                    continue
                rows.append(
                    {
                        header: cell_value_to_string(values[index] if index < len(values) else None)
                        for index, header in enumerate(headers)
                    }
                )
    finally:
        workbook.close()

    return rows


def parse_csv(content: bytes) -> List[ReferenceRow]:
    """
    Split CSV text on newlines and commas.

    Quoted fields are not understood; a comma inside quotes splits the field.
    """
    text = content.decode("utf-8-sig", errors="replace")
    lines = text.split("\n")
    if not lines:
        return []

    headers = [header.strip() for header in lines[0].split(",")]
    rows: List[ReferenceRow] = []
    for line in lines[1:]:
        if not line.strip():
            continue
        values = [value.strip() for value in line.split(",")]
        rows.append(
            {
                header: values[index] if index < len(values) else ""
                for index, header in enumerate(headers)
            }
        )
    return rows


async def fetch_file(file_url: str, client: Optional[httpx.AsyncClient] = None) -> bytes:
    """
    Download a reference file.

    Raises:
        FileFetchError: On connection failure or a non-2xx response
    """
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(follow_redirects=True, timeout=30.0)

    try:
        response = await client.get(file_url)
    except httpx.HTTPError as e:
        raise FileFetchError(file_url, None, str(e) or type(e).__name__) from e
    finally:
        if owns_client:
            await client.aclose()

    if not response.is_success:
        raise FileFetchError(file_url, response.status_code, response.reason_phrase)

    return response.content


async def fetch_reference_rows(
    file_url: str,
    client: Optional[httpx.AsyncClient] = None,
) -> List[ReferenceRow]:
    """
    Validate, download and parse a reference file.

    Raises:
        UnsupportedFileTypeError: Extension is not .xlsx, .xls or .csv
        FileFetchError: Download failed
    """
    kind = check_file_type(file_url)
    content = await fetch_file(file_url, client=client)

    if kind == "workbook":
        rows = parse_workbook(content)
    else:
        rows = parse_csv(content)

    logger.info(f"Parsed {len(rows)} reference rows from {file_url}")
    return rows
