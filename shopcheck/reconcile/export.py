"""Workbook export of crawled product data."""

import io
import logging
from typing import Any, Dict, List

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

logger = logging.getLogger(__name__)

SHEET_TITLE = "Products"
URL_HEADER = "Product URL"
NO_DATA_MESSAGE = "No product data could be extracted"

HEADER_FILL = PatternFill(fill_type="solid", fgColor="E5E7EB")
HEADER_FONT = Font(name="Calibri", size=11, bold=True, color="1F2937")
HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center")
MAX_COLUMN_WIDTH = 60


def _export_cell(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def export_products_workbook(products: List[Dict[str, Any]]) -> bytes:
    """
    Build an .xlsx workbook with one row per product.

    Args:
        products: Product summaries or crawl entries carrying `url` and `data`

    Returns:
        Workbook file contents
    """
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = SHEET_TITLE

    data_keys: List[str] = []
    for product in products:
        for key in (product.get("data") or {}):
            if key not in data_keys:
                data_keys.append(key)

    if not data_keys:
        logger.info("No product data to export")
        worksheet.append([URL_HEADER, "Message"])
        worksheet.append([None, NO_DATA_MESSAGE])
    else:
        worksheet.append([URL_HEADER] + data_keys)
        for product in products:
            data = product.get("data") or {}
            worksheet.append(
                [product.get("url")] + [_export_cell(data.get(key)) for key in data_keys]
            )

    worksheet.freeze_panes = "A2"
    for cell in worksheet[1]:
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT

    for index, column in enumerate(worksheet.iter_cols(), start=1):
        width = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column)
        worksheet.column_dimensions[get_column_letter(index)].width = min(width + 2, MAX_COLUMN_WIDTH)

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
