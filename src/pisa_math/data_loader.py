from typing import Callable, Iterable, Optional

import pandas as pd

from .errors import DataLoadError, DataShapeError
from .utils.logger import get_logger

RowFilter = Callable[[pd.DataFrame], pd.Series]
ColumnFilter = Callable[[str], bool]


def country_filter(column: str, code: str) -> RowFilter:
    """Row predicate keeping one country (e.g. ``CNT == "CAN"``)."""
    def _filter(df: pd.DataFrame) -> pd.Series:
        if column not in df.columns:
            raise DataShapeError("DataLoader", f"country column '{column}' not found")
        return df[column].astype(str).str.strip() == code
    return _filter


def prefix_filter(prefix: str) -> ColumnFilter:
    """Column predicate matching questionnaire item codes by prefix."""
    return lambda name: str(name).startswith(prefix)


class DataLoader:
    """Loads the survey CSV, keeps one subpopulation and a column subset."""

    def __init__(
        self,
        path: str,
        row_filter: Optional[RowFilter] = None,
        column_filter: Optional[ColumnFilter] = None,
        keep_columns: Iterable[str] = (),
        sample_size: Optional[int] = None,
        random_state: int = 42,
    ):
        self.path = path
        self.row_filter = row_filter
        self.column_filter = column_filter
        self.keep_columns = list(keep_columns)
        self.sample_size = sample_size
        self.random_state = random_state
        self.logger = get_logger(self.__class__.__name__)

    def load(self) -> pd.DataFrame:
        try:
            df = pd.read_csv(self.path, low_memory=False)
        except FileNotFoundError as exc:
            raise DataLoadError("DataLoader", f"file not found: {self.path}") from exc
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
            raise DataLoadError("DataLoader", f"cannot read {self.path}: {exc}") from exc

        self.logger.info(f"Read {self.path}: {df.shape[0]:,} rows x {df.shape[1]} cols")

        if self.row_filter is not None:
            df = df.loc[self.row_filter(df)]
        if self.column_filter is not None:
            cols = [c for c in df.columns if self.column_filter(c) or c in self.keep_columns]
            df = df[cols]

        if self.sample_size and self.sample_size < len(df):
            df = df.sample(self.sample_size, random_state=self.random_state)

        if df.empty or df.shape[1] == 0:
            raise DataShapeError(
                "DataLoader",
                f"filters left an empty table ({df.shape[0]} rows x {df.shape[1]} cols)",
            )
        missing_keep = [c for c in self.keep_columns if c not in df.columns]
        if missing_keep:
            raise DataShapeError("DataLoader", f"required columns not found: {missing_keep}")

        return df
