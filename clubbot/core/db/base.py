# clubbot/core/db/base.py
from __future__ import annotations
import os, sqlite3, threading
from contextlib import contextmanager

# Suivre STRICTEMENT la config (dotenv déjà chargé dans config.py)
from clubbot.core.config import settings

DATA_DIR = os.path.abspath(settings.data_dir)
DB_PATH = os.path.join(DATA_DIR, "clubs.db")

_tls = threading.local()

def _connect(path: str):
    con = sqlite3.connect(path, check_same_thread=False, isolation_level=None, timeout=5.0)
    con.row_factory = sqlite3.Row
    con.execute("PRAGMA journal_mode=WAL;")
    con.execute("PRAGMA foreign_keys=ON;")
    con.execute("PRAGMA synchronous=NORMAL;")
    con.execute("PRAGMA temp_store=MEMORY;")
    con.execute("PRAGMA busy_timeout=5000;")
    return con

def get_conn():
    con = getattr(_tls, "con", None)
    if con is None:
        os.makedirs(os.path.dirname(DB_PATH), exist_ok=True)
        con = _connect(DB_PATH)
        _tls.con = con
    return con

def use_database(path: str) -> None:
    """Bascule la connexion du thread courant sur un autre fichier (tests, outils)."""
    global DB_PATH
    close()
    DB_PATH = os.path.abspath(path)

def close() -> None:
    con = getattr(_tls, "con", None)
    if con is not None:
        con.close()
        _tls.con = None

@contextmanager
def atomic(con=None, immediate=True):
    con = con or get_conn()
    # Transactions imbriquées: le bloc externe porte le COMMIT
    if con.in_transaction:
        yield con
        return
    try:
        con.execute("BEGIN IMMEDIATE;" if immediate else "BEGIN;")
        yield con
        con.execute("COMMIT;")
    except Exception:
        con.execute("ROLLBACK;")
        raise
