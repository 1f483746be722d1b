import json

import pytest

from smc_signal_engine.cli import main


@pytest.fixture
def csv_path(tmp_path, uptrend):
    path = tmp_path / "history.csv"
    lines = ["date,code,high,low,close,volume"]
    for i, (h, l, c, v) in enumerate(zip(uptrend.highs, uptrend.lows, uptrend.closes, uptrend.volumes)):
        lines.append(f"{i:05d},BTC,{h},{l},{c},{v}")
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return str(path)


def _run(capsys, tmp_path, *argv):
    main(["--db", str(tmp_path / "engine.db"), "--state", str(tmp_path / "state.json"), *argv])
    return json.loads(capsys.readouterr().out)


def test_signal_from_csv(capsys, tmp_path, csv_path):
    out = _run(capsys, tmp_path, "signal", "--symbol", "BTC", "--csv", csv_path)
    assert out["ok"] is True
    assert out["signal"] == "BUY"
    assert out["confidence"] == 51
    assert out["entry_price"] == 163.0


def test_signal_without_history(capsys, tmp_path):
    empty = tmp_path / "empty.csv"
    empty.write_text("date,code,close\n", encoding="utf-8")
    out = _run(capsys, tmp_path, "signal", "--symbol", "BTC", "--csv", str(empty))
    assert out == {"ok": False, "symbol": "BTC", "error": "no_history"}


def test_predict_report_train(capsys, tmp_path, csv_path):
    pred = _run(capsys, tmp_path, "predict", "--symbol", "BTC", "--csv", csv_path)
    assert pred["state"] == "r4_tB_smc2"
    pid = pred["prediction_id"]

    rep = _run(
        capsys, tmp_path, "report", "--prediction-id", pid, "--symbol", "BTC",
        "--entry", "100", "--exit", "102", "--outcome", "WIN",
    )
    assert rep["reward"] == 2.0
    assert rep["saved"] is True

    tr = _run(capsys, tmp_path, "train")
    assert tr["processed"] == 1

    again = _run(capsys, tmp_path, "predict", "--symbol", "BTC", "--csv", csv_path, "--no-journal")
    assert again["mode"] == "TRAINED"
    assert "prediction_id" not in again


def test_train_with_empty_journal(capsys, tmp_path):
    assert _run(capsys, tmp_path, "train") == {"ok": True, "message": "no training samples"}
