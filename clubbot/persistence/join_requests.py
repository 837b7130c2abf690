from __future__ import annotations
from typing import Optional, Dict
from ..core.db.base import get_conn

_COLS = "id,club_id,user_id,guild_id,full_name,email,interest_reason,status,reviewed_by,reviewed_ts,created_ts"

def create(club_id: int, user_id: str, guild_id: str, full_name: str, email: str | None, reason: str) -> int:
    con = get_conn()
    cur = con.execute(
        "INSERT INTO club_join_requests(club_id,user_id,guild_id,full_name,email,interest_reason,status) "
        "VALUES(?,?,?,?,?,?,'pending')",
        (int(club_id), user_id, guild_id, full_name, email, reason)
    )
    return int(cur.lastrowid)

def get(request_id: int) -> Optional[Dict]:
    con = get_conn()
    row = con.execute(f"SELECT {_COLS} FROM club_join_requests WHERE id=?", (int(request_id),)).fetchone()
    return dict(row) if row else None

def pending_for(club_id: int, user_id: str) -> Optional[Dict]:
    con = get_conn()
    row = con.execute(f"SELECT {_COLS} FROM club_join_requests WHERE club_id=? AND user_id=? AND status='pending'",
                      (int(club_id), user_id)).fetchone()
    return dict(row) if row else None

def resolve(request_id: int, status: str, reviewed_by: str) -> bool:
    """pending → approved|rejected, une seule fois."""
    con = get_conn()
    cur = con.execute(
        "UPDATE club_join_requests SET status=?, reviewed_by=?, reviewed_ts=strftime('%s','now') "
        "WHERE id=? AND status='pending'",
        (status, reviewed_by, int(request_id))
    )
    return cur.rowcount == 1
