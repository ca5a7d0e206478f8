from datetime import date, datetime
import numpy as np
import pandas as pd
import pytest
from forestfill import TypeTag, UnsupportedColumnType, classify, encode


def test_classify():
    assert classify(pd.Series([1.0, np.nan])) == TypeTag.CONTINUOUS
    assert classify(pd.Series([1, 2], dtype="Int64")) == TypeTag.CONTINUOUS
    assert classify(pd.Series([1, 2], dtype="uint8")) == TypeTag.CONTINUOUS
    assert classify(pd.Series(["a", "b"], dtype="category")) == (
        TypeTag.UNORDERED_CATEGORICAL
    )
    ordered = pd.Series(
        pd.Categorical(["lo", "hi"], categories=["lo", "hi"], ordered=True)
    )
    assert classify(ordered) == TypeTag.ORDERED_CATEGORICAL
    assert classify(pd.Series([True, False])) == TypeTag.BOOLEAN
    assert classify(pd.Series([True, None], dtype="boolean")) == TypeTag.BOOLEAN
    assert classify(pd.Series([True, np.nan], dtype="object")) == TypeTag.BOOLEAN
    assert classify(pd.Series(pd.date_range("2020-01-01", periods=2))) == (
        TypeTag.TEMPORAL_INSTANT
    )
    assert classify(pd.Series([datetime(2020, 1, 1), None], dtype="object")) == (
        TypeTag.TEMPORAL_INSTANT
    )
    assert classify(pd.Series([date(2020, 1, 1), np.nan])) == TypeTag.TEMPORAL_DATE
    assert classify(pd.Series(["x", np.nan, "y"])) == TypeTag.TEXT
    assert classify(pd.Series(["x", "y"], dtype="string")) == TypeTag.TEXT


def test_classify_unsupported():
    with pytest.raises(UnsupportedColumnType):
        classify(pd.Series([1 + 1j, 2 + 0j]))
    with pytest.raises(UnsupportedColumnType):
        classify(pd.Series(["a", 1, 2.5], dtype="object"))
    with pytest.raises(UnsupportedColumnType):
        classify(pd.Series(pd.to_timedelta([1, 2], unit="s")))
    # Also a TypeError
    with pytest.raises(TypeError):
        classify(pd.Series([[1], [2]]))


def test_type_tag_properties():
    assert not TypeTag.CONTINUOUS.is_classification
    assert not TypeTag.TEMPORAL_DATE.is_classification
    assert TypeTag.BOOLEAN.is_classification
    assert TypeTag.ORDERED_CATEGORICAL.is_classification
    assert TypeTag.TEXT.is_nominal
    assert not TypeTag.ORDERED_CATEGORICAL.is_nominal


def test_encode_continuous():
    series = pd.Series([1, 2, None, 4], dtype="Int64", name="ints")
    values, codec = encode(series)
    assert values.dtype == np.float64
    assert np.isnan(values[2])
    assert codec.objective == "regression"

    decoded = codec.decode(np.array([1.4, 2.6]), index=[5, 6])
    assert decoded.dtype == series.dtype
    assert decoded.tolist() == [1, 3]
    assert decoded.index.tolist() == [5, 6]
    assert decoded.name == "ints"

    with pytest.raises(AssertionError):
        codec.decode(np.array([np.nan]))


def test_encode_categorical():
    series = pd.Series(["b", "a", None, "c"], dtype="category")
    values, codec = encode(series)
    assert np.array_equal(values, [1.0, 0.0, np.nan, 2.0], equal_nan=True)
    assert codec.n_categories == 3
    assert codec.objective == "multiclass"
    decoded = codec.decode(np.array([2.0, 0.0]))
    assert decoded.dtype == series.dtype
    assert decoded.tolist() == ["c", "a"]

    two_levels = pd.Series(["x", "y", "x"], dtype="category")
    assert encode(two_levels)[1].objective == "binary"


def test_encode_boolean():
    series = pd.Series([True, np.nan, False], dtype="object")
    values, codec = encode(series)
    assert np.array_equal(values, [1.0, np.nan, 0.0], equal_nan=True)
    assert codec.objective == "binary"
    decoded = codec.decode(np.array([1.0, 0.0]))
    assert decoded.dtype == object
    assert decoded.tolist() == [True, False]
    assert isinstance(decoded[0], bool)

    nullable = pd.Series([True, None], dtype="boolean")
    values, codec = encode(nullable)
    assert codec.decode(np.array([0.0])).dtype == nullable.dtype


def test_encode_text_reuses_lookup():
    series = pd.Series(["red", "blue", np.nan, "red"], name="color", dtype="object")
    values, codec = encode(series)
    assert codec.type_tag == TypeTag.TEXT
    assert list(codec.categories) == ["blue", "red"]
    assert np.array_equal(values, [1.0, 0.0, np.nan, 1.0], equal_nan=True)

    new_values, new_codec = encode(pd.Series(["blue", "green"]), codec=codec)
    # Unseen levels are encoded as missing
    assert np.array_equal(new_values, [0.0, np.nan], equal_nan=True)
    assert list(new_codec.categories) == ["blue", "red"]

    decoded = codec.decode(np.array([0.0, 1.0]))
    assert decoded.tolist() == ["blue", "red"]
    assert decoded.dtype == object


def test_encode_instant():
    stamps = pd.Series(
        pd.to_datetime(["2021-01-01 00:00:00", None, "2021-01-02 12:00:00"])
    )
    values, codec = encode(stamps)
    assert values[0] == 1609459200.0
    assert np.isnan(values[1])
    decoded = codec.decode(np.array([values[2]]))
    assert decoded[0] == pd.Timestamp("2021-01-02 12:00:00")
    assert decoded.dtype == stamps.dtype

    aware = stamps.dt.tz_localize("US/Eastern")
    values, codec = encode(aware)
    decoded = codec.decode(np.array([values[0]]))
    assert decoded.dtype == aware.dtype
    assert decoded[0] == aware[0]


def test_encode_date():
    series = pd.Series([date(1970, 1, 2), None, date(2000, 3, 1)])
    values, codec = encode(series)
    assert codec.type_tag == TypeTag.TEMPORAL_DATE
    assert values[0] == 1.0
    assert np.isnan(values[1])
    decoded = codec.decode(np.array([values[2] + 0.4]))
    assert decoded[0] == date(2000, 3, 1)
