import csv
import io

import pytest

from pipeyard.csvclean import analyze_columns, process_csv_file, process_directory


def _write(path, text):
    path.write_text(text, encoding="utf-8")
    return path


def _read(path):
    with path.open(newline="", encoding="utf-8") as fh:
        return list(csv.reader(fh))


def test_headers_normalised_and_rows_shaped(tmp_path, capsys):
    src = _write(tmp_path / "in.csv", "CustID,WkOrder,Name\n1,W1\n2,W2,Bob,extra\n")
    dst = tmp_path / "out.csv"

    result = process_csv_file(src, dst, "")
    rows = _read(dst)

    assert rows[0] == ["customer_id", "work_order", "name"]
    assert rows[1] == ["1", "W1", ""]
    assert rows[2] == ["2", "W2", "Bob"]
    assert result.rows == len(rows) - 1
    assert result.columns == len(rows[0])
    assert result.mapped == 2
    assert result.skipped is None
    assert f"({result.mapped} columns mapped)" in capsys.readouterr().out


def test_blank_header_gets_positional_name(tmp_path):
    src = _write(tmp_path / "in.csv", "a,,b\n1,2,3\n")
    dst = tmp_path / "out.csv"
    process_csv_file(src, dst, "")
    assert _read(dst)[0] == ["a", "column_2", "b"]


def test_leading_space_trimmed_and_quotes_round_trip(tmp_path):
    src = _write(tmp_path / "in.csv", 'a, b\n1, "x,y"\n')
    dst = tmp_path / "out.csv"
    process_csv_file(src, dst, "")
    assert _read(dst) == [["a", "b"], ["1", "x,y"]]


def test_empty_file_is_skipped_without_output(tmp_path, capsys):
    src = _write(tmp_path / "in.csv", "")
    dst = tmp_path / "out.csv"
    result = process_csv_file(src, dst, "  ")
    assert result.skipped is not None and result.rows == 0
    assert not dst.exists()
    assert "  ⚠️  Skipping empty file: in.csv" in capsys.readouterr().out


def test_blank_lines_only_is_skipped(tmp_path):
    src = _write(tmp_path / "in.csv", "\n\n")
    dst = tmp_path / "out.csv"
    result = process_csv_file(src, dst, "")
    assert result.skipped is not None
    assert dst.read_text() == ""


def test_missing_input_raises(tmp_path):
    with pytest.raises(OSError):
        process_csv_file(tmp_path / "nope.csv", tmp_path / "out.csv", "")


def test_process_directory_lowercases_and_filters(tmp_path):
    src_dir = tmp_path / "in"
    src_dir.mkdir()
    _write(src_dir / "A.CSV", "CustID\n1\n")
    _write(src_dir / "b.csv", "x\n")
    _write(src_dir / "empty.csv", "")
    _write(src_dir / "notes.txt", "ignored\n")
    (src_dir / "dir.csv").mkdir()
    out_dir = tmp_path / "out" / "nested"

    summary = process_directory(src_dir, out_dir)

    assert summary.processed == 3
    assert summary.skipped == 0
    assert summary.output_dir == out_dir
    assert _read(out_dir / "a.csv") == [["customer_id"], ["1"]]
    assert (out_dir / "b.csv").exists()
    assert not (out_dir / "notes.txt").exists()
    assert not (out_dir / "empty.csv").exists()


def test_process_directory_missing_input_raises(tmp_path):
    with pytest.raises(OSError):
        process_directory(tmp_path / "missing", tmp_path / "out")


def test_analyze_columns_report(tmp_path):
    _write(tmp_path / "a.csv", "CustID,Name,\n1,x,y\n")
    _write(tmp_path / "e.csv", "")
    _write(tmp_path / "other.txt", "CustID\n")
    out = io.StringIO()

    total, analysed = analyze_columns(tmp_path, out)
    text = out.getvalue()

    assert (total, analysed) == (2, 1)
    assert "## a.csv" in text
    assert " 1. CustID -> customer_id" in text
    assert " 2. Name\n" in text
    assert " 3. (empty) -> column_3" in text
    assert "## e.csv\n❌ Empty or inaccessible file" in text
    assert "other.txt" not in text
    assert "- Successfully analyzed: 1" in text