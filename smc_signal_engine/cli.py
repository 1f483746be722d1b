from __future__ import annotations

import argparse
import json
import logging
from typing import Any, Optional

from .config import EngineConfig
from .db import TradeJournal, fetch_history, load_history_csv
from .engine import ConfidenceEngine
from .models import PriceSeries
from .store import SnapshotStore

def _p(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2, default=str))

def _cfg(args: argparse.Namespace) -> EngineConfig:
    kwargs = {"db_path": args.db, "state_path": args.state}
    if getattr(args, "profile", None):
        kwargs["level_profile"] = args.profile
    return EngineConfig(**kwargs)

def _series(args: argparse.Namespace, cfg: EngineConfig) -> PriceSeries:
    if args.csv:
        return load_history_csv(args.csv, symbol=args.filter_code)
    return fetch_history(cfg.db_path, args.symbol, table=cfg.price_table, limit=args.lookback)

def _current(args: argparse.Namespace, series: PriceSeries) -> Optional[float]:
    if args.current is not None:
        return args.current
    return series.closes[-1] if series.closes else None

def _previous(args: argparse.Namespace, series: PriceSeries) -> Optional[float]:
    if args.previous_close is not None:
        return args.previous_close
    if args.current is None and len(series.closes) >= 2:
        return series.closes[-2]
    return None

def cmd_signal(args: argparse.Namespace) -> None:
    cfg = _cfg(args)
    store = SnapshotStore(cfg.state_path)
    engine = ConfidenceEngine.from_store(store, cfg)
    series = _series(args, cfg)
    if not series.closes:
        _p({"ok": False, "symbol": args.symbol, "error": "no_history"})
        return
    res = engine.evaluate(args.symbol, series, _current(args, series), _previous(args, series))
    _p({"ok": True, "symbol": args.symbol, **res.to_dict()})

def cmd_predict(args: argparse.Namespace) -> None:
    cfg = _cfg(args)
    store = SnapshotStore(cfg.state_path)
    engine = ConfidenceEngine.from_store(store, cfg)
    series = _series(args, cfg)
    out = engine.predict(args.symbol, series, _current(args, series), _previous(args, series))
    if not args.no_journal:
        journal = TradeJournal(cfg.db_path)
        context = {**out["context"], "signal": out["signal"]}
        out["prediction_id"] = journal.save_prediction(args.symbol, out["signal"], out["confidence"], context)
    _p(out)

def cmd_report(args: argparse.Namespace) -> None:
    cfg = _cfg(args)
    store = SnapshotStore(cfg.state_path)
    engine = ConfidenceEngine.from_store(store, cfg)
    journal = TradeJournal(cfg.db_path)
    reward = journal.record_trade(
        args.prediction_id, args.symbol, args.entry, args.exit,
        outcome=args.outcome, duration_seconds=args.duration,
    )
    out = {"ok": True, "reward": reward}
    if args.outcome:
        out["reward_weight"] = engine.record_outcome(args.symbol, args.outcome)
        out["saved"] = engine.save(store)
    _p(out)

def cmd_train(args: argparse.Namespace) -> None:
    cfg = _cfg(args)
    store = SnapshotStore(cfg.state_path)
    engine = ConfidenceEngine.from_store(store, cfg)
    pairs = TradeJournal(cfg.db_path).fetch_resolved_pairs()
    if not pairs:
        _p({"ok": True, "message": "no training samples"})
        return
    report = engine.train(pairs)
    _p({"ok": True, **report.to_dict(), "saved": engine.save(store)})

def _add_history_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--symbol", required=True)
    p.add_argument("--csv", default=None, help="Read OHLCV history from CSV instead of the DB")
    p.add_argument("--filter-code", default=None, help="CSV code/symbol column filter")
    p.add_argument("--lookback", type=int, default=400, help="Bars to load from the DB (default 400)")
    p.add_argument("--current", type=float, default=None, help="Current price (default: last close)")
    p.add_argument("--previous-close", type=float, default=None)
    p.add_argument("--profile", default=None, help="Stop/target profile: standard | tight")

def build_parser() -> argparse.ArgumentParser:
    defaults = EngineConfig()
    p = argparse.ArgumentParser(prog="smc_signal_engine", description="Indicator + market-structure signal engine with adaptive confidence.")
    p.add_argument("--db", default=defaults.db_path, help=f"SQLite DB path (default: {defaults.db_path})")
    p.add_argument("--state", default=defaults.state_path, help=f"Snapshot JSON path (default: {defaults.state_path})")

    sub = p.add_subparsers(dest="cmd", required=True)

    p_sig = sub.add_parser("signal", help="BUY/SELL/HOLD with stop and targets for one symbol")
    _add_history_args(p_sig)
    p_sig.set_defaults(func=cmd_signal)

    p_pred = sub.add_parser("predict", help="Policy prediction (journaled for training)")
    _add_history_args(p_pred)
    p_pred.add_argument("--no-journal", action="store_true")
    p_pred.set_defaults(func=cmd_predict)

    p_rep = sub.add_parser("report", help="Record a resolved trade")
    p_rep.add_argument("--prediction-id", required=True)
    p_rep.add_argument("--symbol", required=True)
    p_rep.add_argument("--entry", type=float, required=True)
    p_rep.add_argument("--exit", type=float, required=True)
    p_rep.add_argument("--outcome", choices=["WIN", "LOSS"], default=None)
    p_rep.add_argument("--duration", type=int, default=0, help="Trade duration in seconds")
    p_rep.set_defaults(func=cmd_report)

    p_tr = sub.add_parser("train", help="Replay resolved trades into the Q-table")
    p_tr.set_defaults(func=cmd_train)

    return p

def main(argv=None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    p = build_parser()
    args = p.parse_args(argv)
    args.func(args)

if __name__ == "__main__":
    main()
