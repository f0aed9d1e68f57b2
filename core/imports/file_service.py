import csv
import io
import math
import struct
import zipfile
from datetime import date, datetime, time
from typing import List, Dict, Any, Optional, Tuple

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
import xlrd
from xlrd.compdoc import CompDocError

from core.imports.exceptions import (
    EmptyFileError,
    FileParseError,
    UnsupportedFileTypeError,
)
from core.imports.models import (
    FileValidationResult,
    ParsedFileData,
    ProcessingOptions,
    RawTable,
)
from utils.logger import logger


MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
ALLOWED_EXTENSIONS = {"csv", "xlsx", "xls"}

SAMPLE_HEADERS = [
    "First Name", "Last Name", "Email", "Phone",
    "Company", "Lead Score", "Assigned Agent",
]
SAMPLE_ROWS = [
    ["John", "Doe", "john.doe@example.com", "555-123-4567",
     "Acme Inc", "85", "sarah.johnson@example.com"],
    ["Jane", "Smith", "jane.smith@example.com", "555-987-6543",
     "Globex", "72", "mike.wilson@example.com"],
]


class FileProcessingService:
    """Turns uploaded CSV and workbook files into header/row tables"""

    @staticmethod
    def get_file_type(file_name: Optional[str]) -> str:
        """Map a file name to 'csv', 'xlsx' or 'unknown'"""
        if not file_name or not isinstance(file_name, str) or "." not in file_name:
            return "unknown"

        extension = file_name.lower().rsplit(".", 1)[-1]
        if extension == "csv":
            return "csv"
        if extension in ("xlsx", "xls"):
            return "xlsx"
        return "unknown"

    @staticmethod
    def validate_file(
        file_name: Optional[str],
        file_size: int,
        max_size: int = MAX_FILE_SIZE
    ) -> FileValidationResult:
        """Check name, size and extension before reading the content"""
        if not file_name or not isinstance(file_name, str):
            return FileValidationResult(valid=False, error="File name is required")

        if file_size > max_size:
            return FileValidationResult(
                valid=False,
                error=(
                    f"File size ({file_size / 1024 / 1024:.1f}MB) exceeds the "
                    f"{max_size / 1024 / 1024:.0f}MB limit"
                )
            )

        if FileProcessingService.get_file_type(file_name) == "unknown":
            return FileValidationResult(
                valid=False,
                error="Please upload a CSV or Excel (.xlsx, .xls) file"
            )

        return FileValidationResult(valid=True)

    @staticmethod
    def parse_file(
        content: bytes,
        file_name: str,
        options: Optional[ProcessingOptions] = None
    ) -> ParsedFileData:
        """Parse an upload according to its extension"""
        options = options or ProcessingOptions()
        file_type = FileProcessingService.get_file_type(file_name)

        if file_type == "csv":
            grid = FileProcessingService._read_csv_grid(content)
        elif file_type == "xlsx":
            grid = FileProcessingService._read_excel_grid(content, file_name)
        else:
            raise UnsupportedFileTypeError(
                f"Unsupported file type for '{file_name}'. Please upload a CSV or Excel file."
            )

        table = FileProcessingService._build_table(grid, options)
        logger.info(
            f"Parsed {file_type} file '{file_name}': "
            f"{len(table.headers)} columns, {len(table.rows)} rows"
        )

        return ParsedFileData(
            table=table,
            file_name=file_name,
            file_size=len(content),
            file_type=file_type
        )

    @staticmethod
    def parse_csv(content: bytes, file_name: str, options: Optional[ProcessingOptions] = None) -> ParsedFileData:
        """Parse comma separated content regardless of the file extension"""
        table = FileProcessingService._build_table(
            FileProcessingService._read_csv_grid(content),
            options or ProcessingOptions()
        )
        return ParsedFileData(table=table, file_name=file_name, file_size=len(content), file_type="csv")

    @staticmethod
    def parse_excel(content: bytes, file_name: str, options: Optional[ProcessingOptions] = None) -> ParsedFileData:
        """Parse the first worksheet of a workbook regardless of the file extension"""
        table = FileProcessingService._build_table(
            FileProcessingService._read_excel_grid(content, file_name),
            options or ProcessingOptions()
        )
        return ParsedFileData(table=table, file_name=file_name, file_size=len(content), file_type="xlsx")

    @staticmethod
    def _read_csv_grid(content: bytes) -> List[List[str]]:
        try:
            text = content.decode("utf-8-sig")  # Handle BOM
            return [list(row) for row in csv.reader(io.StringIO(text, newline=""))]
        except UnicodeDecodeError:
            raise FileParseError("File encoding error. Please ensure the file is UTF-8 encoded")
        except csv.Error as e:
            raise FileParseError(f"CSV parsing error: {str(e)}")

    @staticmethod
    def _read_excel_grid(content: bytes, file_name: str) -> List[List[str]]:
        # .xls names are only trusted when the bytes are not a zip (xlsx) package
        is_legacy = file_name.lower().endswith(".xls") and not content.startswith(b"PK")
        if is_legacy:
            return FileProcessingService._read_legacy_workbook_grid(content)
        return FileProcessingService._read_workbook_grid(content)

    @staticmethod
    def _read_workbook_grid(content: bytes) -> List[List[str]]:
        try:
            workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
            raise FileParseError(f"Failed to parse Excel file: {str(e)}")

        try:
            if not workbook.worksheets:
                raise EmptyFileError("No worksheets found in Excel file")

            # Only the first worksheet is imported
            sheet = workbook.worksheets[0]
            return [
                [_cell_to_text(cell) for cell in row]
                for row in sheet.iter_rows(values_only=True)
            ]
        finally:
            workbook.close()

    @staticmethod
    def _read_legacy_workbook_grid(content: bytes) -> List[List[str]]:
        """First sheet of a BIFF (.xls) workbook"""
        try:
            book = xlrd.open_workbook(file_contents=content, on_demand=True)
        except (xlrd.XLRDError, CompDocError, struct.error, IndexError, ValueError) as e:
            raise FileParseError(f"Failed to parse Excel file: {str(e)}")

        try:
            if book.nsheets == 0:
                raise EmptyFileError("No worksheets found in Excel file")

            sheet = book.sheet_by_index(0)
            return [
                [_xls_cell_to_text(cell, book.datemode) for cell in sheet.row(row_index)]
                for row_index in range(sheet.nrows)
            ]
        finally:
            book.release_resources()

    @staticmethod
    def _build_table(grid: List[List[str]], options: ProcessingOptions) -> RawTable:
        if not grid:
            raise EmptyFileError("File is empty")

        header_row = grid[0]
        kept_columns, headers = FileProcessingService.clean_headers(
            header_row, options.trim_whitespace
        )
        if not headers:
            raise EmptyFileError("No headers found in file")

        rows = []
        for raw_row in grid[1:]:
            # Rows beyond the cap are dropped silently
            if options.max_rows is not None and len(rows) >= options.max_rows:
                break
            cells = [raw_row[i] if i < len(raw_row) else "" for i in kept_columns]
            cells = ["" if cell is None else str(cell) for cell in cells]
            if options.trim_whitespace:
                cells = [cell.strip() for cell in cells]
            if options.skip_empty_rows and not any(cell.strip() for cell in cells):
                continue
            rows.append(cells)

        return RawTable(headers=headers, rows=rows)

    @staticmethod
    def clean_headers(
        headers: List[Any],
        trim_whitespace: bool = True
    ) -> Tuple[List[int], List[str]]:
        """Drop blank headers; returns kept column positions and header text"""
        kept_columns = []
        cleaned = []
        for index, header in enumerate(headers):
            text = "" if header is None else str(header)
            if trim_whitespace:
                text = text.strip()
            if not text.strip():
                continue
            kept_columns.append(index)
            cleaned.append(text)
        return kept_columns, cleaned

    @staticmethod
    def get_sample_data(rows: List[List[str]], sample_size: int = 5) -> List[List[str]]:
        """First rows of the table for previews"""
        return rows[:sample_size]

    @staticmethod
    def get_unique_values(rows: List[List[str]], column_index: int, limit: int = 50) -> List[str]:
        """Sorted distinct non-blank values of a column"""
        values = set()
        for row in rows:
            value = row[column_index].strip() if column_index < len(row) else ""
            if value:
                values.add(value)
                if len(values) >= limit:
                    break
        return sorted(values)

    @staticmethod
    def get_column_stats(rows: List[List[str]], column_index: int) -> Dict[str, Any]:
        """Fill statistics for a column"""
        values = set()
        empty_rows = 0
        for row in rows:
            value = row[column_index].strip() if column_index < len(row) else ""
            if not value:
                empty_rows += 1
            else:
                values.add(value)

        total_rows = len(rows)
        filled_rows = total_rows - empty_rows
        return {
            "total_rows": total_rows,
            "empty_rows": empty_rows,
            "filled_rows": filled_rows,
            "fill_percentage": round(filled_rows / total_rows * 100) if total_rows else 0,
            "unique_values": len(values),
        }

    @staticmethod
    def format_file_size(size: int) -> str:
        if size <= 0:
            return "0 Bytes"
        units = ["Bytes", "KB", "MB", "GB"]
        exponent = min(int(math.floor(math.log(size, 1024))), len(units) - 1)
        value = round(size / math.pow(1024, exponent), 2)
        return f"{value:g} {units[exponent]}"

    @staticmethod
    def export_to_csv(headers: List[str], rows: List[List[str]]) -> str:
        """Write a table back out as CSV text"""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(headers)
        writer.writerows(rows)
        return buffer.getvalue()

    @staticmethod
    def generate_sample_file() -> str:
        """Example import file with the canonical header row"""
        return FileProcessingService.export_to_csv(SAMPLE_HEADERS, SAMPLE_ROWS)


def _cell_to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value)


def _xls_cell_to_text(cell: xlrd.sheet.Cell, datemode: int) -> str:
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
        return ""
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return _cell_to_text(bool(cell.value))
    if cell.ctype == xlrd.XL_CELL_DATE:
        try:
            return _cell_to_text(xlrd.xldate_as_datetime(cell.value, datemode))
        except xlrd.XLDateError:
            return _cell_to_text(cell.value)
    return _cell_to_text(cell.value)
