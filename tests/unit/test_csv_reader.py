"""
Unit tests for the CSV row stream.
"""

import pytest

from ev_ingest.batch.readers import CSVReader, clean_fields
from ev_ingest.core.errors import DecodeError, SourceUnavailable
from ev_ingest.store import LocalBlobStore


@pytest.fixture
def reader(tmp_path):
    return CSVReader(LocalBlobStore(tmp_path))


@pytest.mark.unit
class TestCleanFields:
    """Tests for field trimming"""

    def test_trims_whitespace(self):
        assert clean_fields([" a ", "b  "]) == ["a", "b"]

    def test_drops_trailing_empty_fields(self):
        assert clean_fields(["a", "", " "]) == ["a"]

    def test_keeps_inner_empty_fields(self):
        assert clean_fields(["a", "", "c"]) == ["a", "", "c"]


@pytest.mark.unit
class TestCSVReader:
    """Tests for CSVReader"""

    def test_header_mode_yields_dicts(self, reader, tmp_path):
        """Test rows are mapped by header in header mode"""
        (tmp_path / "a.csv").write_text("id,name\n1,alpha\n2,beta\n")

        rows = list(reader.read("a.csv"))

        assert rows == [{"id": "1", "name": "alpha"}, {"id": "2", "name": "beta"}]

    def test_headerless_mode_yields_lists(self, reader, tmp_path):
        (tmp_path / "a.csv").write_text("time,102\n2023-01-01 00:00,5.0\n")

        rows = list(reader.read("a.csv", header=False))

        assert rows == [["time", "102"], ["2023-01-01 00:00", "5.0"]]

    def test_missing_trailing_field_is_absent(self, reader, tmp_path):
        """Test a short row leaves trailing columns out of the dict"""
        (tmp_path / "a.csv").write_text("time,102,104\n2023-01-01 00:00,5.0,\n")

        rows = list(reader.read("a.csv"))

        assert rows == [{"time": "2023-01-01 00:00", "102": "5.0"}]

    def test_skips_empty_lines_and_trims(self, reader, tmp_path):
        (tmp_path / "a.csv").write_text("id , name\n\n 1 , alpha \n,,\n")

        rows = list(reader.read("a.csv"))

        assert rows == [{"id": "1", "name": "alpha"}]

    def test_strips_utf8_bom(self, reader, tmp_path):
        """Test a byte order mark does not leak into the first header"""
        (tmp_path / "a.csv").write_bytes(b"\xef\xbb\xbftime,102\nx,1\n")

        header = reader.read_header("a.csv")

        assert header == ["time", "102"]

    def test_quoted_fields(self, reader, tmp_path):
        (tmp_path / "a.csv").write_text('id,name\n1,"Shenzhen, Futian"\n')

        rows = list(reader.read("a.csv"))

        assert rows[0]["name"] == "Shenzhen, Futian"

    def test_read_all_returns_header_and_rows(self, reader, tmp_path):
        (tmp_path / "a.csv").write_text("id,name\n1,alpha\n")

        columns, rows = reader.read_all("a.csv")

        assert columns == ["id", "name"]
        assert rows == [{"id": "1", "name": "alpha"}]

    def test_read_all_header_only(self, reader, tmp_path):
        """Test a header-only file has columns but no rows"""
        (tmp_path / "a.csv").write_text("id,name\n")

        columns, rows = reader.read_all("a.csv")

        assert columns == ["id", "name"]
        assert rows == []

    def test_read_header_of_empty_file(self, reader, tmp_path):
        (tmp_path / "a.csv").write_text("")

        assert reader.read_header("a.csv") == []

    def test_missing_blob_raises_source_unavailable(self, reader):
        with pytest.raises(SourceUnavailable) as exc_info:
            list(reader.read("missing.csv"))

        assert exc_info.value.key == "missing.csv"

    def test_invalid_utf8_raises_decode_error(self, reader, tmp_path):
        (tmp_path / "a.csv").write_bytes(b"id,name\n1,\xff\xfe\n")

        with pytest.raises(DecodeError) as exc_info:
            list(reader.read("a.csv"))

        assert "UTF-8" in exc_info.value.message

    def test_malformed_quoting_raises_decode_error(self, reader, tmp_path):
        (tmp_path / "a.csv").write_text('id,name\n1,"alpha"beta\n')

        with pytest.raises(DecodeError):
            list(reader.read("a.csv"))

    def test_rows_are_streamed(self, reader, tmp_path):
        """Test rows can be pulled one at a time and the stream closed early"""
        lines = ["n"] + [str(i) for i in range(1000)]
        (tmp_path / "big.csv").write_text("\n".join(lines) + "\n")

        rows = reader.read("big.csv")
        first = next(rows)
        rows.close()

        assert first == {"n": "0"}
