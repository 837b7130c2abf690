from __future__ import annotations
from typing import Optional, Dict, List
from ..core.db.base import get_conn

_COLS = ("id,club_id,user_id,guild_id,role,status,joined_ts,attendance_count,contribution_points,"
         "last_active_ts,removed_ts,removed_by,removal_reason")

def get(club_id: int, user_id: str) -> Optional[Dict]:
    con = get_conn()
    row = con.execute(f"SELECT {_COLS} FROM club_members WHERE club_id=? AND user_id=?",
                      (int(club_id), user_id)).fetchone()
    return dict(row) if row else None

def get_active(club_id: int, user_id: str) -> Optional[Dict]:
    m = get(club_id, user_id)
    return m if m and m["status"] == "active" else None

def count_active(club_id: int) -> int:
    con = get_conn()
    (n,) = con.execute("SELECT COUNT(*) FROM club_members WHERE club_id=? AND status='active'",
                       (int(club_id),)).fetchone()
    return int(n)

def add_active(club_id: int, user_id: str, guild_id: str, role: str = "member") -> bool:
    """Insère ou réactive un membre retiré. False si déjà actif."""
    con = get_conn()
    before = con.total_changes
    con.execute(
        "INSERT INTO club_members(club_id, user_id, guild_id, role, status) VALUES(?,?,?,?,'active') "
        "ON CONFLICT(club_id, user_id) DO UPDATE SET status='active', role=excluded.role, "
        "joined_ts=strftime('%s','now'), last_active_ts=strftime('%s','now'), "
        "removed_ts=NULL, removed_by=NULL, removal_reason=NULL "
        "WHERE club_members.status='removed'",
        (int(club_id), user_id, guild_id, role)
    )
    return (con.total_changes - before) > 0

def set_role(club_id: int, user_id: str, role: str) -> bool:
    con = get_conn()
    cur = con.execute("UPDATE club_members SET role=? WHERE club_id=? AND user_id=? AND status='active'",
                      (role, int(club_id), user_id))
    return cur.rowcount == 1

def mark_removed(club_id: int, user_id: str, removed_by: str, reason: str) -> bool:
    con = get_conn()
    cur = con.execute(
        "UPDATE club_members SET status='removed', role='member', removed_ts=strftime('%s','now'), "
        "removed_by=?, removal_reason=? WHERE club_id=? AND user_id=? AND status='active'",
        (removed_by, reason, int(club_id), user_id)
    )
    return cur.rowcount == 1

def list_active(club_id: int) -> List[Dict]:
    con = get_conn()
    rows = con.execute(
        f"SELECT {_COLS} FROM club_members WHERE club_id=? AND status='active' "
        "ORDER BY CASE role WHEN 'president' THEN 0 WHEN 'moderator' THEN 1 WHEN 'officer' THEN 2 ELSE 3 END, joined_ts",
        (int(club_id),)
    ).fetchall()
    return [dict(r) for r in rows]

def leader_ids(club_id: int) -> List[str]:
    con = get_conn()
    rows = con.execute(
        "SELECT user_id FROM club_members WHERE club_id=? AND status='active' AND role IN ('president','moderator')",
        (int(club_id),)
    ).fetchall()
    return [r[0] for r in rows]

def active_presidents(club_id: int) -> List[str]:
    con = get_conn()
    rows = con.execute(
        "SELECT user_id FROM club_members WHERE club_id=? AND status='active' AND role='president'",
        (int(club_id),)
    ).fetchall()
    return [r[0] for r in rows]
