from __future__ import annotations
from typing import Optional, Dict, List
from ..core.db.base import get_conn

def get(event_id: int, user_id: str) -> Optional[Dict]:
    con = get_conn()
    row = con.execute("SELECT * FROM event_participants WHERE event_id=? AND user_id=?",
                      (int(event_id), user_id)).fetchone()
    return dict(row) if row else None

def count_going(event_id: int) -> int:
    con = get_conn()
    (n,) = con.execute("SELECT COUNT(*) FROM event_participants WHERE event_id=? AND rsvp_status='going'",
                       (int(event_id),)).fetchone()
    return int(n)

def add_going(event_id: int, user_id: str, guild_id: str, registration_data: str | None = None) -> bool:
    con = get_conn()
    before = con.total_changes
    con.execute(
        "INSERT OR IGNORE INTO event_participants(event_id, user_id, guild_id, rsvp_status, registration_data) "
        "VALUES(?,?,?,'going',?)",
        (int(event_id), user_id, guild_id, registration_data)
    )
    return (con.total_changes - before) > 0

def list_going(event_id: int) -> List[Dict]:
    con = get_conn()
    rows = con.execute(
        "SELECT * FROM event_participants WHERE event_id=? AND rsvp_status='going' ORDER BY registration_ts, id",
        (int(event_id),)
    ).fetchall()
    return [dict(r) for r in rows]
