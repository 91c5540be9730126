"""
Spreadsheet row source for bulk imports.

Reads the first worksheet of an .xlsx upload into rows of strings. Which
cells are tracking codes is decided by the reconciliation engine.
"""

from io import BytesIO
from typing import List
from openpyxl import load_workbook
from cargo_backend.app.core.exceptions import InvalidImportFileError


def read_rows(content: bytes, file_name: str = "upload.xlsx") -> List[List[str]]:
    """
    All rows of the first worksheet, cells stringified (empty cells as "").

    Raises:
        InvalidImportFileError: if the bytes are not a readable workbook
    """
    if not content:
        raise InvalidImportFileError(file_name, "file is empty")

    try:
        workbook = load_workbook(BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise InvalidImportFileError(file_name, str(e) or type(e).__name__)

    try:
        sheet = workbook.worksheets[0]
        return [
            [_cell_text(cell) for cell in row]
            for row in sheet.iter_rows(values_only=True)
        ]
    finally:
        workbook.close()


def _cell_text(value) -> str:
    if value is None:
        return ""
    # Numeric codes typed into Excel come back as floats
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
