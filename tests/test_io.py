"""
Tests for file I/O and logging utilities.
"""

import numpy as np
import pandas as pd
import pytest

from phenocount.exceptions import MissingInputError
from phenocount.utils.io import (
    ensure_dir,
    load_json,
    read_table,
    require_file,
    save_json,
    save_table,
)
from phenocount.utils.logging import get_logger, logger, setup_logging


@pytest.fixture
def table():
    return pd.DataFrame({"well": ["A01_01", "A02_01"], "count": [3, 4]})


class TestTableIO:
    """Tests for read_table and save_table."""

    @pytest.mark.parametrize("suffix", [".csv", ".tsv", ".pkl"])
    def test_round_trip(self, tmp_path, table, suffix):
        path = save_table(table, tmp_path / f"table{suffix}")
        pd.testing.assert_frame_equal(read_table(path), table)

    def test_index_col(self, tmp_path, table):
        path = save_table(table.set_index("well"), tmp_path / "indexed.csv", index=True)
        loaded = read_table(path, index_col=0)
        assert loaded.index.tolist() == ["A01_01", "A02_01"]

    def test_excel_sheet(self, tmp_path, table):
        path = tmp_path / "book.xlsx"
        with pd.ExcelWriter(path) as writer:
            table.to_excel(writer, sheet_name="first", index=False)
            table.assign(count=[5, 6]).to_excel(writer, sheet_name="second", index=False)

        assert read_table(path)["count"].tolist() == [3, 4]
        assert read_table(path, sheet_name="second")["count"].tolist() == [5, 6]

    def test_missing(self, tmp_path):
        with pytest.raises(MissingInputError) as exc_info:
            read_table(tmp_path / "absent.csv")
        assert isinstance(exc_info.value, FileNotFoundError)

    def test_unparseable(self, tmp_path):
        path = tmp_path / "broken.xlsx"
        path.write_text("not a workbook")
        with pytest.raises(MissingInputError):
            read_table(path)

    def test_corrupt_pickle(self, tmp_path):
        path = tmp_path / "counts.pkl"
        path.write_bytes(b"not a pickle")
        with pytest.raises(MissingInputError):
            read_table(path)

    def test_truncated_pickle(self, tmp_path, table):
        path = save_table(table, tmp_path / "counts.pkl")
        path.write_bytes(path.read_bytes()[:10])
        with pytest.raises(MissingInputError):
            read_table(path)

    def test_truncated_workbook(self, tmp_path):
        path = tmp_path / "layout.xlsx"
        path.write_bytes(b"PK\x03\x04truncated")
        with pytest.raises(MissingInputError):
            read_table(path)

    def test_pickle_of_non_frame(self, tmp_path):
        path = tmp_path / "list.pkl"
        pd.to_pickle([1, 2, 3], path)
        with pytest.raises(MissingInputError, match="not a DataFrame"):
            read_table(path)


class TestPaths:
    """Tests for path helpers."""

    def test_ensure_dir(self, tmp_path):
        path = ensure_dir(tmp_path / "a" / "b")
        assert path.is_dir()

    def test_require_directory_rejected(self, tmp_path):
        with pytest.raises(MissingInputError, match="not a regular file"):
            require_file(tmp_path)


class TestJSON:
    """Tests for JSON helpers."""

    def test_numpy_values(self, tmp_path):
        data = {"rate": np.float64(0.25), "k": np.int64(3), "ratios": np.array([0.5, 0.5]), "ok": np.bool_(True)}
        path = save_json(data, tmp_path / "out" / "report.json")

        assert load_json(path) == {"rate": 0.25, "k": 3, "ratios": [0.5, 0.5], "ok": True}

    def test_unserialisable(self, tmp_path):
        with pytest.raises(TypeError):
            save_json({"bad": object()}, tmp_path / "bad.json")


class TestLogging:
    """Tests for setup_logging."""

    def test_log_file(self, tmp_path):
        log_path = tmp_path / "logs" / "run.log"
        setup_logging(level="DEBUG", log_file=log_path)
        try:
            logger.info("plate processed")
        finally:
            setup_logging(level="INFO")

        assert "plate processed" in log_path.read_text()

    def test_get_logger_binds_name(self, tmp_path):
        log_path = tmp_path / "named.log"
        setup_logging(level="INFO", log_file=log_path, show_location=True)
        try:
            get_logger("reshape").info("bound message")
        finally:
            setup_logging(level="INFO")

        assert "bound message" in log_path.read_text()
