from __future__ import annotations
import json
from typing import Optional, Dict, List
from ..core.db.base import get_conn

def _row_to_entry(row) -> Dict:
    d = dict(row)
    try:
        d["details"] = json.loads(d.pop("details_json") or "{}")
    except ValueError:
        d["details"] = {}
    return d

def insert(guild_id: str, action_type: str, performed_by: str, target_id: str,
           details: dict | None = None, club_id: int | None = None) -> int:
    con = get_conn()
    cur = con.execute(
        "INSERT INTO club_audit_log(guild_id, club_id, action_type, performed_by, target_id, details_json) "
        "VALUES(?,?,?,?,?,?)",
        (guild_id, club_id, action_type, performed_by, target_id or "",
         json.dumps(details or {}, ensure_ascii=False, sort_keys=True))
    )
    return int(cur.lastrowid)

def recent(guild_id: str, club_id: int | None = None, limit: int = 20) -> List[Dict]:
    con = get_conn()
    if club_id is None:
        rows = con.execute("SELECT * FROM club_audit_log WHERE guild_id=? ORDER BY id DESC LIMIT ?",
                           (guild_id, int(limit))).fetchall()
    else:
        rows = con.execute("SELECT * FROM club_audit_log WHERE guild_id=? AND club_id=? ORDER BY id DESC LIMIT ?",
                           (guild_id, int(club_id), int(limit))).fetchall()
    return [_row_to_entry(r) for r in rows]

def latest(club_id: int, action_type: str) -> Optional[Dict]:
    con = get_conn()
    row = con.execute(
        "SELECT * FROM club_audit_log WHERE club_id=? AND action_type=? ORDER BY id DESC LIMIT 1",
        (int(club_id), action_type)
    ).fetchone()
    return _row_to_entry(row) if row else None
