import pandas as pd
import pytest

from core.data import (
    CurReportError,
    FileRecordSource,
    StaticRecordSource,
    frame_to_line_items,
    get_source_files,
    summarize_line_items,
)
from core.records import LineItem


def _write_csv(path, rows):
    pd.DataFrame(rows).to_csv(path, index=False)


def test_file_source_reads_display_columns(tmp_path):
    _write_csv(
        tmp_path / "cur-2024-01.csv",
        [
            {"Product Code": "AmazonEC2", "Cost": "1.50", "Period Start": "2024-01-01", "Period End": "2024-01-02"},
            {"Product Code": None, "Cost": None, "Period Start": "2024-01-03", "Period End": "2024-01-04"},
        ],
    )
    report = FileRecordSource(tmp_path).fetch_report()
    assert len(report.line_items) == 2
    first, second = report.line_items
    assert first.cost == "1.50"
    assert first.product_code == "AmazonEC2"
    assert second.product_code is None
    assert second.cost is None
    assert report.aggregate["line_item_count"] == 2
    assert report.aggregate["total_cost"] == 1.5
    assert report.aggregate["files"] == ["cur-2024-01.csv"]


def test_file_source_maps_raw_cur_headers(tmp_path):
    _write_csv(
        tmp_path / "export.csv",
        [
            {
                "lineItem/ProductCode": "AmazonS3",
                "lineItem/UnblendedCost": "0.25",
                "lineItem/UsageStartDate": "2024-02-01",
                "lineItem/UsageEndDate": "2024-02-02",
            }
        ],
    )
    (item,) = FileRecordSource(tmp_path).fetch_report().line_items
    assert item.product_code == "AmazonS3"
    assert item.cost == "0.25"
    assert item.period_end == "2024-02-02"


def test_file_source_reads_xlsx(tmp_path):
    pd.DataFrame([{"Product Code": "AWSLambda", "Cost": "0.1", "Period Start": "2024-03-01"}]).to_excel(
        tmp_path / "cur.xlsx", index=False
    )
    (item,) = FileRecordSource(tmp_path).fetch_report().line_items
    assert item.product_code == "AWSLambda"
    assert item.cost == "0.1"


def test_file_source_merges_files_in_name_order(tmp_path):
    _write_csv(tmp_path / "b.csv", [{"Product Code": "B", "Cost": "2"}])
    _write_csv(tmp_path / "a.csv", [{"Product Code": "A", "Cost": "1"}])
    report = FileRecordSource(tmp_path).fetch_report()
    assert [i.product_code for i in report.line_items] == ["A", "B"]
    assert [p.name for p in get_source_files(tmp_path)] == ["a.csv", "b.csv"]


def test_file_source_missing_directory(tmp_path):
    with pytest.raises(CurReportError, match="not found"):
        FileRecordSource(tmp_path / "missing").fetch_report()


def test_file_source_no_files(tmp_path):
    with pytest.raises(CurReportError, match="No CUR export files"):
        FileRecordSource(tmp_path).fetch_report()


def test_frame_to_line_items_empty():
    assert frame_to_line_items(pd.DataFrame()) == []


def test_static_source_accepts_mappings_and_items():
    source = StaticRecordSource([{"Cost": "1"}, LineItem(cost=2.0)])
    report = source.fetch_report()
    assert [i.cost for i in report.line_items] == ["1", 2.0]
    assert report.aggregate["total_cost"] == 3.0

    report.aggregate["mutated"] = True
    assert "mutated" not in source.fetch_report().aggregate


def test_summarize_line_items():
    summary = summarize_line_items([LineItem(cost="1.005", product_code="X"), LineItem(cost="bad")])
    assert summary["line_item_count"] == 2
    assert summary["product_codes"] == ["X"]


def test_file_source_corrupt_xlsx(tmp_path):
    (tmp_path / "cur.xlsx").write_bytes(b"PK\x03\x04truncated-download")
    with pytest.raises(CurReportError, match="Failed to read CUR exports"):
        FileRecordSource(tmp_path).fetch_report()
