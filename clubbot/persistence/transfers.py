from __future__ import annotations
from typing import Optional, Dict
from ..core.db.base import get_conn

def create(guild_id: str, club_id: int, initiator_id: str, initiator_role: str,
           candidate_id: str, reason: str = "") -> int:
    con = get_conn()
    cur = con.execute(
        "INSERT INTO club_transfer_requests(guild_id, club_id, initiator_id, initiator_role, candidate_id, reason) "
        "VALUES(?,?,?,?,?,?)",
        (guild_id, int(club_id), initiator_id, initiator_role, candidate_id, reason or "")
    )
    return int(cur.lastrowid)

def get(request_id: int) -> Optional[Dict]:
    con = get_conn()
    row = con.execute("SELECT * FROM club_transfer_requests WHERE id=?", (int(request_id),)).fetchone()
    return dict(row) if row else None

def pending_for_club(club_id: int) -> Optional[Dict]:
    con = get_conn()
    row = con.execute("SELECT * FROM club_transfer_requests WHERE club_id=? AND status='pending'",
                      (int(club_id),)).fetchone()
    return dict(row) if row else None

def resolve(request_id: int, status: str, resolved_by: str) -> bool:
    con = get_conn()
    cur = con.execute(
        "UPDATE club_transfer_requests SET status=?, resolved_by=?, resolved_ts=strftime('%s','now') "
        "WHERE id=? AND status='pending'",
        (status, resolved_by, int(request_id))
    )
    return cur.rowcount == 1
