# storage/writer.py
from __future__ import annotations

import codecs
import csv
import logging
import re
import threading
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE


logger = logging.getLogger("product_type_export")

SUPPORTED_FORMATS = ("csv", "xlsx")
DEFAULT_ENCODING = "utf8"
WORKSHEET_TITLE = "Worksheet1"


def normalize_encoding(encoding: Optional[str]) -> str:
    """
    Resolve an encoding name to Python's codec name.
    Accepts iconv-style Windows code page names (win1250 -> cp1250).
    """
    name = (encoding or "").strip().lower()
    m = re.fullmatch(r"win(?:dows)?-?(\d{3,4})", name)
    if m:
        name = f"cp{m.group(1)}"
    try:
        return codecs.lookup(name).name
    except LookupError:
        raise ValueError(f"Encoding does not exist: {encoding}")


def _csv_cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, (dict, list)):
        return ""
    return value


def _xlsx_cell(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return None
    if isinstance(value, str):
        # control characters are not allowed in worksheet XML
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


class TabularWriter:
    """
    Append-only table sink: one header, then batches of rows.

      - csv: written through the configured encoding (unencodable chars become '?')
      - xlsx: write-only workbook, saved on flush(); control characters are dropped

    Writes from several threads are serialized by a lock.
    """

    def __init__(
        self,
        export_format: str,
        output_file: Optional[str],
        encoding: str = DEFAULT_ENCODING,
        delimiter: str = ",",
    ) -> None:
        if export_format not in SUPPORTED_FORMATS:
            raise ValueError(
                f"Unsupported file type: {export_format}, "
                f"allowed formats are {', '.join(SUPPORTED_FORMATS)}"
            )
        if not output_file:
            raise ValueError("Missing output file")

        self.export_format = export_format
        self.encoding = normalize_encoding(encoding)
        self.delimiter = delimiter
        self.output_file = Path(output_file)
        self.output_file.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._closed = False
        self.rows_written = 0

        if export_format == "csv":
            self._stream = open(self.output_file, "w", encoding=self.encoding, errors="replace", newline="")
            self._csv = csv.writer(self._stream, delimiter=delimiter, lineterminator="\n")
        else:
            self._workbook = Workbook(write_only=True)
            self._worksheet = self._workbook.create_sheet(WORKSHEET_TITLE)

    def set_header(self, header: Sequence[str]) -> None:
        logger.debug("writing header of len %d to %s", len(header), self.output_file)
        with self._lock:
            self._append([str(h) for h in header])

    def write(self, rows: Iterable[Sequence[Any]]) -> None:
        with self._lock:
            for row in rows:
                self._append(list(row))
                self.rows_written += 1

    def _append(self, row: List[Any]) -> None:
        if self._closed:
            raise RuntimeError(f"Writer for {self.output_file} is already flushed")
        if self.export_format == "csv":
            self._csv.writerow([_csv_cell(v) for v in row])
        else:
            self._worksheet.append([_xlsx_cell(v) for v in row])

    def flush(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self.export_format == "csv":
                self._stream.close()
            else:
                self._workbook.save(str(self.output_file))
