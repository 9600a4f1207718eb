"""Tests for loading strategies from report files and the forward log."""
import json
import os
from datetime import datetime

import pytest

from quantfolio.core.exceptions import StrategyNotFoundError
from quantfolio.data.loader import StrategyLoader, build_strategy_records
from quantfolio.parsers.excel_report import MT5ReportParser

FORWARD_LOG = """Ticket,Magic Number,Open Date,Open Time,Type,Symbol,Volume,Open Price,Close Price,Profit,Swap,Commission,Comment
501,200,2024/04/01,10:00:00,Buy,XAUUSD,0.10,2300.00,2310.00,40.00,0.00,-0.50,live
502,200,2024/04/03,10:00:00,Sell,XAUUSD,0.10,2320.00,2315.00,20.00,0.00,-0.50,live
503,999,2024/04/03,11:00:00,Sell,XAUUSD,0.10,2320.00,2315.00,20.00,0.00,-0.50,orphan
"""


@pytest.fixture
def data_dirs(tmp_path, report_grid, workbook_writer):
    backtest = tmp_path / "backtest"
    forward = tmp_path / "forward"
    backtest.mkdir()
    forward.mkdir()

    workbook_writer(backtest / "a_100.xlsx", report_grid(100))
    workbook_writer(backtest / "b_200.xlsx", report_grid(200, symbol="EURUSD"))
    workbook_writer(backtest / "c_duplicate.xlsx", report_grid(100, symbol="GBPUSD"))
    workbook_writer(backtest / "d_no_trades.xlsx", report_grid(300, deals=[]))
    (backtest / "e_corrupt.xlsx").write_bytes(b"not a workbook")
    (backtest / "~$a_100.xlsx").write_bytes(b"lock")
    (backtest / "notes.txt").write_text("ignored")

    (forward / "forward.csv").write_text(FORWARD_LOG)
    names = tmp_path / "names.json"
    names.write_text(json.dumps({"100": "Gold Breakout"}))
    return backtest, forward, names


@pytest.fixture
def loader(data_dirs):
    backtest, forward, names = data_dirs
    return StrategyLoader(backtest, forward, names, max_workers=2, target_drawdown=1000.0)


def test_backtest_files_skip_lock_files(loader):
    names = [path.name for path in loader.backtest_files()]
    assert names == ["a_100.xlsx", "b_200.xlsx", "c_duplicate.xlsx", "d_no_trades.xlsx", "e_corrupt.xlsx"]


def test_get_all_strategies(loader):
    records = loader.get_all_strategies()

    assert [record.magic_number for record in records] == [100, 200]
    gold, euro = records
    # The duplicate report sorts after the first one and is dropped.
    assert gold.symbol == "XAUUSD"
    assert gold.source_file == "a_100.xlsx"
    assert gold.name == "Gold Breakout"
    assert gold.has_forward_test is False
    assert euro.name == "Strategy 200"
    assert euro.has_forward_test is True
    assert euro.forward_test_start == datetime(2024, 4, 1, 10, 0)
    assert euro.total_trades == 5


def test_records_are_normalized(loader):
    for record in loader.get_all_strategies():
        assert record.max_drawdown == pytest.approx(1000.0)


def test_get_strategy(loader):
    assert loader.get_strategy(200).symbol == "EURUSD"
    with pytest.raises(StrategyNotFoundError):
        loader.get_strategy(999)


def test_missing_directories(tmp_path):
    loader = StrategyLoader(tmp_path / "none", tmp_path / "none", tmp_path / "none.json")
    assert loader.backtest_files() == []
    assert loader.load_forward_log() is None
    assert loader.load_strategy_names() == {}
    assert loader.get_all_strategies() == []


def test_newest_forward_log_wins(data_dirs):
    backtest, forward, names = data_dirs
    older = forward / "older.csv"
    older.write_text(FORWARD_LOG.replace(",200,", ",100,"))
    os.utime(older, (1_000_000, 1_000_000))

    loader = StrategyLoader(backtest, forward, names)
    assert loader.forward_file().name == "forward.csv"
    assert list(loader.load_forward_log().transactions_by_strategy) == [200, 999]


def test_unreadable_forward_log_is_ignored(data_dirs):
    backtest, forward, names = data_dirs
    (forward / "forward.csv").write_bytes(b"\xff\xfe\x00\xd8")
    loader = StrategyLoader(backtest, forward, names)
    assert loader.load_forward_log() is None


def test_strategy_names_from_yaml(tmp_path):
    names = tmp_path / "names.yaml"
    names.write_text("100: Gold Breakout\n200: Euro Scalper\n")
    loader = StrategyLoader(tmp_path, tmp_path, names)
    assert loader.load_strategy_names() == {"100": "Gold Breakout", "200": "Euro Scalper"}


@pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
def test_bad_strategy_names_are_ignored(tmp_path, content):
    names = tmp_path / "names.json"
    names.write_text(content)
    assert StrategyLoader(tmp_path, tmp_path, names).load_strategy_names() == {}


def test_build_strategy_records_without_forward(report_grid):
    parser = MT5ReportParser()
    reports = [("b.xlsx", parser.parse_grid(report_grid(7))), ("a.xlsx", parser.parse_grid(report_grid(3)))]
    records = build_strategy_records(reports)
    assert [record.magic_number for record in records] == [3, 7]
    assert not any(record.has_forward_test for record in records)
