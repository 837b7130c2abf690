from __future__ import annotations
from typing import Optional, Dict, List
from ..core.db.base import get_conn

def get(event_id: int, user_id: str) -> Optional[Dict]:
    con = get_conn()
    row = con.execute("SELECT * FROM event_registrations WHERE event_id=? AND user_id=?",
                      (int(event_id), user_id)).fetchone()
    return dict(row) if row else None

def create_pending(event_id: int, user_id: str, guild_id: str) -> bool:
    con = get_conn()
    before = con.total_changes
    con.execute(
        "INSERT OR IGNORE INTO event_registrations(event_id, user_id, guild_id, payment_status) "
        "VALUES(?,?,?,'pending')",
        (int(event_id), user_id, guild_id)
    )
    return (con.total_changes - before) > 0

def count_pending_unconfirmed(event_id: int) -> int:
    """Inscriptions pending sans ligne participant (places réservées)."""
    con = get_conn()
    (n,) = con.execute(
        "SELECT COUNT(*) FROM event_registrations r WHERE r.event_id=? AND r.payment_status='pending' "
        "AND NOT EXISTS (SELECT 1 FROM event_participants p WHERE p.event_id=r.event_id AND p.user_id=r.user_id)",
        (int(event_id),)
    ).fetchone()
    return int(n)

def list_pending(event_id: int) -> List[Dict]:
    con = get_conn()
    rows = con.execute(
        "SELECT * FROM event_registrations WHERE event_id=? AND payment_status='pending' ORDER BY created_ts, id",
        (int(event_id),)
    ).fetchall()
    return [dict(r) for r in rows]

def mark_verified(event_id: int, user_id: str, verified_by: str) -> bool:
    con = get_conn()
    cur = con.execute(
        "UPDATE event_registrations SET payment_status='verified', verified_by=? "
        "WHERE event_id=? AND user_id=? AND payment_status='pending'",
        (verified_by, int(event_id), user_id)
    )
    return cur.rowcount == 1

def reopen(event_id: int, user_id: str) -> bool:
    """Paiement refusé → nouvelle tentative en attente."""
    con = get_conn()
    cur = con.execute(
        "UPDATE event_registrations SET payment_status='pending', verified_by=NULL "
        "WHERE event_id=? AND user_id=? AND payment_status='rejected'",
        (int(event_id), user_id)
    )
    return cur.rowcount == 1
