from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from smc_signal_engine.config import EngineConfig
from smc_signal_engine.db import TradeJournal
from smc_signal_engine.engine import ConfidenceEngine
from smc_signal_engine.models import Candle, Outcome, PriceSeries
from smc_signal_engine.store import SnapshotStore
from smc_signal_engine.utils import is_finite, to_float

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")


def _bad_request(msg: str):
    return jsonify({"ok": False, "error": msg}), 400


def _parse_market(body: Dict[str, Any]) -> Tuple[PriceSeries, Optional[float], Optional[float], Optional[Candle]]:
    history = body.get("history") if isinstance(body.get("history"), dict) else body
    series = PriceSeries.from_dict(history)
    candle = None
    ohlc = body.get("ohlc")
    if isinstance(ohlc, dict):
        vals = [to_float(ohlc.get(k)) for k in ("open", "high", "low", "close")]
        if all(v is not None for v in vals):
            candle = Candle(*vals)
    return series, to_float(body.get("current")), to_float(body.get("previous_close", body.get("previousClose"))), candle


def create_app(
    cfg: Optional[EngineConfig] = None,
    store: Optional[SnapshotStore] = None,
    journal: Optional[TradeJournal] = None,
) -> Flask:
    cfg = cfg or EngineConfig()
    store = store or SnapshotStore(cfg.state_path)
    journal = journal or TradeJournal(cfg.db_path)
    engine = ConfidenceEngine.from_store(store, cfg)
    # one training run at a time; snapshot saves are serialized with it
    train_lock = threading.Lock()

    app = Flask(__name__)
    CORS(app)
    app.config["ENGINE"] = engine

    @app.errorhandler(Exception)
    def _unhandled(exc):
        if isinstance(exc, HTTPException):
            return exc
        logging.exception("request failed: %s", request.path)
        return jsonify({"ok": False, "error": str(exc) or exc.__class__.__name__}), 500

    @app.get("/api/health")
    def health():
        return jsonify({
            "ok": True,
            "q_states": len(engine.qtable),
            "instruments": len(engine.rewards.memory),
        })

    @app.post("/api/signal")
    def signal():
        body = request.get_json(silent=True) or {}
        symbol = body.get("symbol")
        if not symbol:
            return _bad_request("symbol required")
        series, current, prev, candle = _parse_market(body)
        res = engine.evaluate(symbol, series, current, prev, candle)
        return jsonify({"ok": True, "symbol": symbol, **res.to_dict()})

    @app.post("/api/predict")
    def predict():
        body = request.get_json(silent=True) or {}
        symbol = body.get("symbol")
        if not symbol:
            return _bad_request("symbol required")
        series, current, prev, candle = _parse_market(body)
        out = engine.predict(symbol, series, current, prev, candle)
        context = {**out["context"], "signal": out["signal"]}
        try:
            out["prediction_id"] = journal.save_prediction(symbol, out["signal"], out["confidence"], context)
        except Exception as exc:
            logging.warning("save prediction failed for %s: %s", symbol, exc)
            out["prediction_id"] = None
        return jsonify({"ok": True, **out})

    @app.post("/api/report")
    def report():
        body = request.get_json(silent=True) or {}
        pred_id = body.get("prediction_id") or body.get("predictionId")
        symbol = body.get("symbol")
        if not pred_id or not symbol:
            return _bad_request("missing fields")
        entry = to_float(body.get("entry_price", body.get("entryPrice")))
        exit_ = to_float(body.get("exit_price", body.get("exitPrice")))
        if entry is None or exit_ is None or not is_finite(entry, exit_):
            return _bad_request("entry_price and exit_price required")
        duration = to_float(body.get("duration_seconds", body.get("durationSeconds")))
        if duration is not None and not is_finite(duration):
            return _bad_request("duration_seconds must be a finite number")
        outcome = body.get("outcome")
        if outcome is not None and str(outcome).upper() not in Outcome.__members__:
            return _bad_request("outcome must be WIN or LOSS")

        reward = journal.record_trade(
            pred_id, symbol, entry, exit_,
            outcome=str(outcome).upper() if outcome else None,
            duration_seconds=int(duration or 0),
            metadata=body.get("metadata") if isinstance(body.get("metadata"), dict) else None,
        )
        out: Dict[str, Any] = {"ok": True, "reward": reward}
        if outcome:
            out["reward_weight"] = engine.record_outcome(symbol, str(outcome).upper())
            with train_lock:
                engine.save(store)
        return jsonify(out)

    @app.post("/api/train")
    def train():
        if not train_lock.acquire(blocking=False):
            return jsonify({"ok": False, "error": "training already running"}), 409
        try:
            pairs = journal.fetch_resolved_pairs()
            if not pairs:
                return jsonify({"ok": True, "message": "no training samples"})
            rep = engine.train(pairs)
            saved = engine.save(store)
        finally:
            train_lock.release()
        return jsonify({"ok": True, **rep.to_dict(), "saved": saved})

    return app


if __name__ == "__main__":
    import os

    create_app().run(host="0.0.0.0", port=int(os.getenv("PORT", "8000")), threaded=True)
