from __future__ import annotations

import json
import sqlite3
import time
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from .models import PriceSeries
from .trainer import realized_return_pct

def connect(db_path: str) -> sqlite3.Connection:
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA busy_timeout=5000;")
    return conn

def fetch_history(
    db_path: str,
    symbol: str,
    table: str = "daily_price",
    limit: Optional[int] = None,
) -> PriceSeries:
    """Most recent `limit` OHLCV rows for a symbol, returned in ascending date order.

    Expects columns (date, code, high, low, close, volume).
    """
    conn = connect(db_path)
    try:
        lim_sql = f" LIMIT {int(limit)}" if limit is not None else ""
        cur = conn.execute(
            f"SELECT high, low, close, volume FROM {table} WHERE code=? ORDER BY date DESC{lim_sql}",
            (symbol,),
        )
        rows = list(reversed(cur.fetchall()))
    finally:
        conn.close()

    return PriceSeries(
        closes=[float(r["close"]) for r in rows],
        highs=[float(r["high"]) for r in rows],
        lows=[float(r["low"]) for r in rows],
        volumes=[float(r["volume"] or 0) for r in rows],
    )

def load_history_csv(path: str, symbol: Optional[str] = None) -> PriceSeries:
    """Read OHLCV history from CSV.

    Column names are matched case-insensitively; `close`/`price`, `high`, `low`
    and `volume` are used when present. With `symbol`, rows are filtered on a
    `code`/`symbol` column. Rows are sorted by `date` when that column exists.
    """
    df = pd.read_csv(path)
    df.columns = [str(c).strip().lower() for c in df.columns]

    if symbol is not None:
        for col in ("code", "symbol"):
            if col in df.columns:
                df = df[df[col].astype(str) == str(symbol)]
                break
    if "date" in df.columns:
        df = df.sort_values("date", kind="stable")

    def col(*names: str) -> List[float]:
        for n in names:
            if n in df.columns:
                return pd.to_numeric(df[n], errors="coerce").astype(float).tolist()
        return []

    return PriceSeries(
        closes=col("close", "price"),
        highs=col("high"),
        lows=col("low"),
        volumes=col("volume"),
    )

class TradeJournal:
    """SQLite record of predictions and their resolved trades (training input)."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        conn = connect(db_path)
        try:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS predictions (
                    id TEXT PRIMARY KEY,
                    symbol TEXT NOT NULL,
                    signal TEXT NOT NULL,
                    confidence INTEGER,
                    context TEXT,
                    resolved INTEGER DEFAULT 0,
                    created_at REAL
                );
                CREATE TABLE IF NOT EXISTS trade_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    prediction_id TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    entry_price REAL,
                    exit_price REAL,
                    outcome TEXT,
                    reward REAL,
                    duration_seconds INTEGER,
                    metadata TEXT,
                    created_at REAL
                );
                """
            )
            conn.commit()
        finally:
            conn.close()

    def save_prediction(self, symbol: str, signal: str, confidence: int, context: Dict[str, Any]) -> str:
        pred_id = uuid.uuid4().hex
        conn = connect(self.db_path)
        try:
            conn.execute(
                "INSERT INTO predictions(id, symbol, signal, confidence, context, created_at) VALUES (?,?,?,?,?,?)",
                (pred_id, symbol, signal, int(confidence), json.dumps(context, default=str), time.time()),
            )
            conn.commit()
        finally:
            conn.close()
        return pred_id

    def record_trade(
        self,
        prediction_id: str,
        symbol: str,
        entry_price: float,
        exit_price: float,
        outcome: Optional[str] = None,
        duration_seconds: int = 0,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> float:
        """Store a resolved trade and mark its prediction resolved. Returns the % reward."""
        reward = realized_return_pct(float(entry_price), float(exit_price))
        conn = connect(self.db_path)
        try:
            conn.execute(
                "INSERT INTO trade_history"
                "(prediction_id, symbol, entry_price, exit_price, outcome, reward, duration_seconds, metadata, created_at) "
                "VALUES (?,?,?,?,?,?,?,?,?)",
                (
                    prediction_id, symbol, float(entry_price), float(exit_price), outcome, reward,
                    int(duration_seconds or 0), json.dumps(metadata or {}, default=str), time.time(),
                ),
            )
            conn.execute("UPDATE predictions SET resolved=1 WHERE id=?", (prediction_id,))
            conn.commit()
        finally:
            conn.close()
        return reward

    def fetch_resolved_pairs(self) -> List[Dict[str, Any]]:
        """Trades joined with their predictions, in the shape `trainer.parse_record` reads.

        A trade whose prediction is missing comes back with prediction=None.
        """
        conn = connect(self.db_path)
        try:
            cur = conn.execute(
                "SELECT t.symbol, t.reward, t.outcome, p.signal, p.context, p.id AS pid "
                "FROM trade_history t LEFT JOIN predictions p ON p.id = t.prediction_id ORDER BY t.id"
            )
            rows = cur.fetchall()
        finally:
            conn.close()

        out: List[Dict[str, Any]] = []
        for r in rows:
            pred = None
            if r["pid"] is not None:
                try:
                    ctx = json.loads(r["context"]) if r["context"] else None
                except ValueError:
                    ctx = None
                pred = {"signal": r["signal"], "context": ctx}
            out.append({"symbol": r["symbol"], "reward": r["reward"], "outcome": r["outcome"], "prediction": pred})
        return out
