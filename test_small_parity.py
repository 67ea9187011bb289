import json, os, re, subprocess, sys

import polars as pl
import pytest

from make_csv import write_csv
from streamstat import process

ROOT = os.path.dirname(os.path.abspath(__file__))


def _cli(*args):
    return subprocess.check_output([sys.executable, "-m", "streamstat", *args], text=True, cwd=ROOT)


def test_stream_prints_columns_and_counts(tmp_path):
    path = tmp_path / "small.csv"
    path.write_text("a,b\n1,2\n,3\n4,\n")
    out = _cli(str(path))
    assert re.search(r'1\. "a"', out)
    assert re.search(r'2\. "b"', out)
    assert re.search(r'Row count:\s*3', out)
    assert re.search(r'Sample rows:\s*3', out)


def test_cli_json_and_sample_out(tmp_path):
    path = tmp_path / "small.csv"
    path.write_text("name,score\nann,1.5\nbob,2\ncy,\n")
    sample_path = tmp_path / "sample.csv"
    doc = json.loads(_cli(str(path), "--json", "--seed", "7", "--sample-out", str(sample_path)))
    assert doc["summary"]["row_count"] == 3
    assert doc["summary"]["column_stats"]["score"]["data_type"] == "numeric"
    assert doc["summary"]["column_stats"]["name"]["data_type"] == "categorical"
    assert sorted(r["name"] for r in doc["sample"]) == ["ann", "bob", "cy"]
    assert sample_path.read_text().splitlines()[0] == "name,score"


def test_cli_reports_missing_file(tmp_path):
    proc = subprocess.run([sys.executable, "-m", "streamstat", str(tmp_path / "nope.csv")],
                          capture_output=True, text=True, cwd=ROOT)
    assert proc.returncode == 1
    assert "SourceNotFound" in proc.stderr


def test_aggregates_match_polars(tmp_path):
    path = write_csv(tmp_path / "mixed.csv", rows=20_000, nnum=3, nstr=2, null_rate=0.05, seed=42)
    result = process(path, {"batchSizeInitial": 700, "sampleSize": 50, "seed": 1})
    df = pl.read_csv(path, infer_schema_length=0)
    summary = result.summary
    assert summary.row_count == df.height
    for col in ["n0", "n1", "n2"]:
        ours = summary.column_stats[col]
        values = df[col].cast(pl.Float64)
        assert ours["data_type"] == "numeric"
        assert ours["null_count"] == values.null_count()
        assert ours["numeric_count"] == len(values) - values.null_count()
        assert ours["min"] == values.min()
        assert ours["max"] == values.max()
        assert ours["sum"] == pytest.approx(values.sum(), rel=1e-9)
        assert ours["stdev"] == pytest.approx(values.std(), rel=1e-6)
    for col in ["s0", "s1"]:
        ours = summary.column_stats[col]
        assert ours["data_type"] == "categorical"
        assert ours["null_count"] == df[col].null_count()
        assert ours["longest_len"] == df[col].str.len_chars().max()
