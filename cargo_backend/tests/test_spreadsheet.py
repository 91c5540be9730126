"""
Spreadsheet row source tests.
"""

from io import BytesIO

import pytest
from openpyxl import Workbook

from cargo_backend.app.core.exceptions import InvalidImportFileError
from cargo_backend.app.services.spreadsheet import _cell_text, read_rows


def workbook_bytes(rows) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def test_reads_first_sheet_as_strings():
    content = workbook_bytes([
        ["Tracking code", "Weight"],
        ["KH-0001", 1.5],
        [123456789.0, 2],
    ])

    assert read_rows(content, "arrivals.xlsx") == [
        ["Tracking code", "Weight"],
        ["KH-0001", "1.5"],
        ["123456789", "2"],
    ]


def test_empty_upload_rejected():
    with pytest.raises(InvalidImportFileError):
        read_rows(b"", "empty.xlsx")


def test_garbage_upload_rejected():
    with pytest.raises(InvalidImportFileError) as exc_info:
        read_rows(b"not a workbook at all", "notes.txt")
    assert exc_info.value.details == {"file_name": "notes.txt"}


def test_cell_text():
    assert _cell_text(None) == ""
    assert _cell_text(42.0) == "42"
    assert _cell_text(" KH-1 ") == " KH-1 "
