"""
FILE: core/loader_engine.py
----------------------------
Reads the semicolon-delimited Air Quality export into a DataFrame.
Pure pandas — no orchestration dependencies.

Every field is kept as a raw string: decimal commas, sentinels and empty
cells are resolved later by the preprocessor engine.
"""

import csv
import logging
from pathlib import Path

import pandas as pd

from constants.loader import DEFAULT_DELIMITER, REQUIRED_COLUMNS
from core.errors import DataLoadError, ParseError

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────

def _check_row_widths(path: Path, delimiter: str) -> int:
    """
    Verifies every non-blank record has as many fields as the header.
    pandas silently pads short rows with NaN, so widths are checked on
    the raw records first, with the same quoting rules read_csv applies.
    Returns the header width.
    """
    expected = None
    with path.open("r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.reader(handle, delimiter=delimiter, quotechar='"')
        for record in reader:
            if len(record) <= 1 and not "".join(record).strip():
                continue
            width = len(record)
            if expected is None:
                expected = width
            elif width != expected:
                raise ParseError(
                    f"Line {reader.line_num} of '{path}' has {width} field(s); "
                    f"the header declares {expected}."
                )
    if expected is None:
        raise ParseError(f"'{path}' is empty — no header row found.")
    return expected


# ─────────────────────────────────────────────
# MAIN — LOAD DATASET
# ─────────────────────────────────────────────

def load_dataset(csv_path: str | Path, delimiter: str = DEFAULT_DELIMITER) -> pd.DataFrame:
    """
    Loads the delimited file into a DataFrame of raw string fields.

    Raises:
        DataLoadError: file missing or unreadable
        ParseError:    inconsistent row width, missing declared column, empty file
    """
    path = Path(csv_path)
    try:
        _check_row_widths(path, delimiter)
        df = pd.read_csv(
            path,
            sep=delimiter,
            dtype=str,
            skip_blank_lines=True,
            encoding="utf-8-sig",
        )
    except FileNotFoundError as e:
        raise DataLoadError(f"Input file not found: '{path}'.") from e
    except (PermissionError, IsADirectoryError, UnicodeDecodeError) as e:
        raise DataLoadError(f"Could not read '{path}': {e}") from e
    except pd.errors.EmptyDataError as e:
        raise ParseError(f"'{path}' has no data.") from e
    except pd.errors.ParserError as e:
        raise ParseError(f"Could not parse '{path}': {e}") from e

    df.columns = [str(c).strip() for c in df.columns]
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ParseError(
            f"'{path}' is missing declared column(s) {missing}. "
            f"Found: {list(df.columns)}"
        )

    logger.info("Loaded %d rows × %d columns from %s", df.shape[0], df.shape[1], path)
    return df
