import csv
import io
import math
import os
from datetime import date, datetime, time as dt_time, timedelta
from pathlib import Path
from time import time
from typing import Any, Dict, List, Optional, Tuple

import chardet
import numpy as np
import pandas as pd

from models.schemas import Cell, Grid
from utils.logging import get_logger, timer, timing_decorator

EXCEL_EXTENSIONS = ('.xlsx', '.xls')
CSV_EXTENSIONS = ('.csv',)
SUPPORTED_EXTENSIONS = EXCEL_EXTENSIONS + CSV_EXTENSIONS
FALLBACK_ENCODINGS = ['utf-8', 'cp1252', 'iso-8859-1', 'latin1']

UNSUPPORTED_FORMAT_MESSAGE = "Unsupported file format. Please use XLSX or CSV."


class FileProcessingError(Exception):
    """Raised when an upload cannot be turned into a grid."""


def is_supported_file(filename: str) -> bool:
    return Path(filename or "").suffix.lower() in SUPPORTED_EXTENSIONS


def to_cell(value: Any) -> Cell:
    """Convert a pandas/numpy value into a JSON-friendly scalar."""
    if value is None:
        return None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return value
    if isinstance(value, (pd.Timestamp, datetime)):
        if pd.isna(value):
            return None
        if value.hour == 0 and value.minute == 0 and value.second == 0 and value.microsecond == 0:
            return value.date().isoformat()
        return value.isoformat(sep=' ')
    if isinstance(value, (date, dt_time)):
        return value.isoformat()
    if isinstance(value, (pd.Timedelta, timedelta)):
        return None if pd.isna(value) else str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return None
        return int(value) if value.is_integer() else value
    if isinstance(value, int):
        return value
    if pd.isna(value):
        return None
    return str(value)


class FileProcessor:
    def __init__(self, base_folder: str):
        self.base_folder = base_folder
        self.raw_folder = os.path.join(base_folder, "raw")
        self._ensure_folders()

        self.logger = get_logger(__name__)

    def _ensure_folders(self) -> None:
        """Ensure necessary folders exist."""
        Path(self.base_folder).mkdir(parents=True, exist_ok=True)
        Path(self.raw_folder).mkdir(exist_ok=True)

    @timing_decorator
    def detect_file_encoding(self, file_path: str) -> str:
        """Detect the encoding of a file using chardet."""
        with open(file_path, 'rb') as file:
            raw_data = file.read()
        result = chardet.detect(raw_data)
        encoding = result['encoding']
        confidence = result['confidence'] or 0

        # Low confidence: take the first common encoding that decodes cleanly
        if confidence < 0.7:
            for enc in FALLBACK_ENCODINGS:
                try:
                    raw_data.decode(enc)
                    return enc
                except UnicodeDecodeError:
                    continue

        return encoding or 'utf-8'

    @timing_decorator
    def save_uploaded_file(self, file_data: bytes, filename: str) -> str:
        """Save uploaded file to raw folder."""
        if not is_supported_file(filename):
            raise FileProcessingError(UNSUPPORTED_FORMAT_MESSAGE)
        # Never let the client pick a directory
        safe_name = os.path.basename(filename)
        file_path = os.path.join(self.raw_folder, safe_name)
        with open(file_path, "wb") as f:
            f.write(file_data)
        return file_path

    @timing_decorator
    def read_grid(self, file_path: str) -> Tuple[Grid, Dict[str, Any]]:
        """Read the first sheet (or the CSV) as a row-major grid, with stats."""
        start_time = time()
        file_extension = Path(file_path).suffix.lower()
        encoding: Optional[str] = None

        try:
            if file_extension in CSV_EXTENSIONS:
                encoding = self.detect_file_encoding(file_path)
                df = self._read_csv(file_path, encoding)
            elif file_extension in EXCEL_EXTENSIONS:
                df = self._read_excel(file_path)
            else:
                raise FileProcessingError(UNSUPPORTED_FORMAT_MESSAGE)

            with timer("DataFrame to grid conversion", logger_name=__name__):
                grid = self._dataframe_to_grid(df)
        except FileProcessingError:
            raise
        except Exception as e:
            self.logger.error(f"Error processing file {file_path}: {e}")
            raise FileProcessingError(f"Could not read {os.path.basename(file_path)}: {e}") from e

        stats = {
            'total_rows': len(grid),
            'total_columns': max((len(row) for row in grid), default=0),
            'file_type': file_extension.lstrip('.'),
            'encoding': encoding,
            'processing_time_seconds': time() - start_time,
        }
        return grid, stats

    def _decode_csv(self, raw_data: bytes, encoding: str) -> str:
        for enc in [encoding] + FALLBACK_ENCODINGS:
            try:
                return raw_data.decode(enc)
            except (UnicodeDecodeError, LookupError):
                continue
        raise FileProcessingError("Could not read CSV with any common encoding")

    def _read_csv(self, file_path: str, encoding: str) -> pd.DataFrame:
        with open(file_path, 'rb') as file:
            text = self._decode_csv(file.read(), encoding)

        # Widest row sets the column count, so longer rows are never cut short
        width = max((len(row) for row in csv.reader(io.StringIO(text))), default=0)
        if width == 0:
            return pd.DataFrame()

        # Every CSV cell stays a string
        return pd.read_csv(
            io.StringIO(text),
            header=None,
            names=list(range(width)),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            engine='c',
        )

    def _read_excel(self, file_path: str) -> pd.DataFrame:
        file_size_mb = os.path.getsize(file_path) / (1024 * 1024)
        self.logger.info(f"Processing file: {file_path}, Size: {file_size_mb:.2f} MB")

        with timer("Excel read", logger_name=__name__):
            # First sheet only, no header row: every row is data.
            # dtype=object keeps each cell's own type instead of one type per column.
            return pd.read_excel(
                file_path,
                sheet_name=0,
                header=None,
                engine="calamine",
                dtype=object,
                keep_default_na=False,
                na_values=[""],
            )

    def _dataframe_to_grid(self, df: pd.DataFrame) -> Grid:
        grid: List[List[Cell]] = []
        for row in df.itertuples(index=False, name=None):
            cells = [to_cell(value) for value in row]
            if all(cell is None or cell == "" for cell in cells):
                continue
            grid.append(cells)
        return grid
