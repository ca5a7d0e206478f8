"""
Column type registry.

Every column is classified into a TypeTag. Each tag owns an encoder,
which turns the column into a float64 array the learners can consume
(missing values are NaN), and a decoder, which turns model output back
into a pandas Series carrying the column's original dtype.
"""

from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np
from pandas import (
    Categorical,
    CategoricalDtype,
    Index,
    Series,
    StringDtype,
    Timedelta,
    Timestamp,
    isna,
    to_datetime,
)
from pandas.api.types import (
    is_bool_dtype,
    is_complex_dtype,
    is_datetime64_any_dtype,
    is_integer_dtype,
    is_numeric_dtype,
    is_object_dtype,
)

from .errors import UnsupportedColumnType

_EPOCH_INSTANT = Timestamp("1970-01-01")
_EPOCH_DATE = date(1970, 1, 1)


class TypeTag(Enum):
    CONTINUOUS = "continuous"
    UNORDERED_CATEGORICAL = "unordered_categorical"
    ORDERED_CATEGORICAL = "ordered_categorical"
    BOOLEAN = "boolean"
    TEMPORAL_INSTANT = "temporal_instant"
    TEMPORAL_DATE = "temporal_date"
    TEXT = "text"

    @property
    def is_classification(self) -> bool:
        """Models for these types predict a class, not a number."""
        return self in _CLASSIFICATION_TAGS

    @property
    def is_nominal(self) -> bool:
        """Codes carry no order, so learners should split them as categories."""
        return self in (TypeTag.UNORDERED_CATEGORICAL, TypeTag.TEXT)


_CLASSIFICATION_TAGS = frozenset(
    [
        TypeTag.UNORDERED_CATEGORICAL,
        TypeTag.ORDERED_CATEGORICAL,
        TypeTag.BOOLEAN,
        TypeTag.TEXT,
    ]
)


def _classify_objects(series: Series) -> TypeTag:
    values = series.dropna()
    if len(values) == 0:
        return TypeTag.TEXT
    if all(isinstance(v, (bool, np.bool_)) for v in values):
        return TypeTag.BOOLEAN
    # datetime is a subclass of date, so it needs to be checked first.
    if all(isinstance(v, datetime) for v in values):
        return TypeTag.TEMPORAL_INSTANT
    if all(isinstance(v, date) for v in values):
        return TypeTag.TEMPORAL_DATE
    if all(isinstance(v, str) for v in values):
        return TypeTag.TEXT
    raise UnsupportedColumnType(series.name, series.dtype)


def classify(series: Series) -> TypeTag:
    """
    Determine the TypeTag of a column.

    Raises
    ------
    UnsupportedColumnType
        If the column holds values no encoder exists for.
    """
    dtype = series.dtype
    if isinstance(dtype, CategoricalDtype):
        if dtype.ordered:
            return TypeTag.ORDERED_CATEGORICAL
        return TypeTag.UNORDERED_CATEGORICAL
    if is_bool_dtype(dtype):
        return TypeTag.BOOLEAN
    if is_datetime64_any_dtype(dtype):
        return TypeTag.TEMPORAL_INSTANT
    if is_numeric_dtype(dtype) and not is_complex_dtype(dtype):
        return TypeTag.CONTINUOUS
    if isinstance(dtype, StringDtype):
        return TypeTag.TEXT
    if is_object_dtype(dtype):
        return _classify_objects(series)
    raise UnsupportedColumnType(series.name, dtype)


class ColumnCodec:
    """
    Holds what is needed to turn encoded values back into the
    original representation of one column.

    Parameters
    ----------
    name: Any
        The column name.
    type_tag: TypeTag
        The classification of the column.
    dtype:
        The original pandas / numpy dtype.
    categories: pandas.Index, optional
        The fixed lookup table for categorical and text columns.
        Codes index into this table.
    tz: optional
        The timezone of tz-aware instant columns.
    """

    def __init__(
        self,
        name: Any,
        type_tag: TypeTag,
        dtype,
        categories: Optional[Index] = None,
        tz=None,
    ):
        self.name = name
        self.type_tag = type_tag
        self.dtype = dtype
        self.categories = categories
        self.tz = tz

    @property
    def n_categories(self) -> int:
        if self.type_tag == TypeTag.BOOLEAN:
            return 2
        if self.categories is None:
            return 0
        return len(self.categories)

    @property
    def objective(self) -> str:
        if not self.type_tag.is_classification:
            return "regression"
        if self.n_categories <= 2:
            return "binary"
        return "multiclass"

    def decode(self, values: np.ndarray, index=None) -> Series:
        """
        Convert encoded values (numbers or class codes) back into
        a Series of the original dtype. Values must not be missing.
        """
        values = np.asarray(values, dtype="float64")
        assert not np.isnan(
            values
        ).any(), f"Cannot decode missing values for {self.name}"
        decoder = _CODECS[self.type_tag][1]
        decoded = decoder(values, self)
        decoded.index = index if index is not None else np.arange(len(values))
        decoded.name = self.name
        return decoded

    def __repr__(self):
        return f"ColumnCodec({self.name!r}, {self.type_tag.value}, {self.dtype})"


def _encode_continuous(series: Series, codec=None):
    return series.to_numpy(dtype="float64", na_value=np.nan), {}


def _decode_continuous(values: np.ndarray, codec: ColumnCodec) -> Series:
    if is_integer_dtype(codec.dtype):
        values = values.round(0)
    return Series(values).astype(codec.dtype)


def _encode_categorical(series: Series, codec=None):
    codes = series.cat.codes.to_numpy().astype("float64")
    codes[codes < 0] = np.nan
    return codes, {"categories": series.dtype.categories}


def _decode_categorical(values: np.ndarray, codec: ColumnCodec) -> Series:
    codes = values.astype("int64")
    return Series(Categorical.from_codes(codes=codes, dtype=codec.dtype))


def _encode_boolean(series: Series, codec=None):
    return series.astype("boolean").to_numpy(dtype="float64", na_value=np.nan), {}


def _decode_boolean(values: np.ndarray, codec: ColumnCodec) -> Series:
    decoded = Series(values > 0.5)
    if is_object_dtype(codec.dtype):
        return Series([bool(v) for v in decoded], dtype="object")
    return decoded.astype(codec.dtype)


def _encode_text(series: Series, codec=None):
    # Reuse the lookup table of an earlier encoding so codes line up.
    categories = None if codec is None else codec.categories
    categorical = Categorical(series.astype("object"), categories=categories)
    codes = categorical.codes.astype("float64")
    codes[codes < 0] = np.nan
    return codes, {"categories": categorical.categories}


def _decode_text(values: np.ndarray, codec: ColumnCodec) -> Series:
    codes = values.astype("int64")
    return Series(codec.categories.to_numpy()[codes], dtype="object").astype(
        codec.dtype
    )


def _encode_instant(series: Series, codec=None):
    if is_object_dtype(series.dtype):
        try:
            series = to_datetime(series)
        except (TypeError, ValueError):
            raise UnsupportedColumnType(series.name, series.dtype)
    tz = series.dt.tz
    if tz is not None:
        series = series.dt.tz_convert(None)
    seconds = (series - _EPOCH_INSTANT) / Timedelta(seconds=1)
    return seconds.to_numpy(dtype="float64", na_value=np.nan), {"tz": tz}


def _decode_instant(values: np.ndarray, codec: ColumnCodec) -> Series:
    stamps = Series(to_datetime(values.round(0), unit="s"))
    if codec.tz is not None:
        stamps = stamps.dt.tz_localize("UTC").dt.tz_convert(codec.tz)
    if is_object_dtype(codec.dtype):
        return stamps.astype("object")
    return stamps.astype(codec.dtype)


def _encode_date(series: Series, codec=None):
    days = np.array(
        [np.nan if isna(v) else (v - _EPOCH_DATE).days for v in series],
        dtype="float64",
    )
    return days, {}


def _decode_date(values: np.ndarray, codec: ColumnCodec) -> Series:
    return Series(
        [_EPOCH_DATE + timedelta(days=int(d)) for d in values.round(0)],
        dtype="object",
    )


_CODECS: Dict[TypeTag, Tuple[Callable, Callable]] = {
    TypeTag.CONTINUOUS: (_encode_continuous, _decode_continuous),
    TypeTag.UNORDERED_CATEGORICAL: (_encode_categorical, _decode_categorical),
    TypeTag.ORDERED_CATEGORICAL: (_encode_categorical, _decode_categorical),
    TypeTag.BOOLEAN: (_encode_boolean, _decode_boolean),
    TypeTag.TEMPORAL_INSTANT: (_encode_instant, _decode_instant),
    TypeTag.TEMPORAL_DATE: (_encode_date, _decode_date),
    TypeTag.TEXT: (_encode_text, _decode_text),
}


def encode(
    series: Series,
    type_tag: Optional[TypeTag] = None,
    codec: Optional[ColumnCodec] = None,
):
    """
    Encode a column for model consumption.

    Parameters
    ----------
    series: pandas.Series
        The column to encode.
    type_tag: TypeTag, optional
        If not provided, the column is classified first.
    codec: ColumnCodec, optional
        The codec of an earlier encoding of the same column. Its lookup
        tables are reused, so new data is encoded the same way.

    Returns
    -------
    Tuple of (float64 np.ndarray with NaN for missing values, ColumnCodec)
    """
    if codec is not None:
        type_tag = codec.type_tag
    elif type_tag is None:
        type_tag = classify(series)
    encoder = _CODECS[type_tag][0]
    values, artifacts = encoder(series, codec)
    codec = ColumnCodec(
        name=series.name, type_tag=type_tag, dtype=series.dtype, **artifacts
    )
    return values, codec
