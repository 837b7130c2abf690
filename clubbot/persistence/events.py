from __future__ import annotations
import json
from typing import Optional, Dict, List
from ..core.db.base import get_conn

_FIELDS = ("title", "description", "event_type", "event_date", "start_time", "end_time", "venue",
           "meeting_link", "location_type", "min_participants", "max_participants",
           "registration_required", "registration_deadline", "registration_fee", "external_form_url",
           "is_team_event", "team_size_min", "team_size_max", "require_captain", "visibility", "poster_url")

_BOOLS = ("registration_required", "is_team_event", "require_captain")

def _row_to_event(row) -> Dict:
    d = dict(row)
    for k in _BOOLS:
        d[k] = bool(d.get(k))
    try:
        d["eligibility"] = json.loads(d.pop("eligibility_json") or "{}")
    except ValueError:
        d["eligibility"] = {}
    return d

def create(club_id: int, guild_id: str, created_by: str, eligibility: dict | None = None, **fields) -> int:
    cols = [k for k in _FIELDS if k in fields]
    vals = [int(fields[k]) if k in _BOOLS else fields[k] for k in cols]
    con = get_conn()
    cur = con.execute(
        f"INSERT INTO club_events(club_id, guild_id, created_by, eligibility_json, status, {', '.join(cols)}) "
        f"VALUES(?,?,?,?,'pending',{','.join('?' * len(cols))})",
        (int(club_id), guild_id, created_by, json.dumps(eligibility or {}), *vals)
    )
    return int(cur.lastrowid)

def get(event_id: int) -> Optional[Dict]:
    con = get_conn()
    row = con.execute("SELECT * FROM club_events WHERE id=?", (int(event_id),)).fetchone()
    return _row_to_event(row) if row else None

def approve(event_id: int, approved_by: str) -> bool:
    con = get_conn()
    cur = con.execute(
        "UPDATE club_events SET status='scheduled', approved_by=?, approved_ts=strftime('%s','now'), "
        "updated_ts=strftime('%s','now') WHERE id=? AND status='pending'",
        (approved_by, int(event_id))
    )
    return cur.rowcount == 1

def transition(event_id: int, from_status: str, to_status: str) -> bool:
    con = get_conn()
    cur = con.execute(
        "UPDATE club_events SET status=?, updated_ts=strftime('%s','now') WHERE id=? AND status=?",
        (to_status, int(event_id), from_status)
    )
    return cur.rowcount == 1

def set_listing(event_id: int, channel_id: str, message_id: str) -> None:
    con = get_conn()
    con.execute("UPDATE club_events SET channel_id=?, message_id=?, updated_ts=strftime('%s','now') WHERE id=?",
                (channel_id, message_id, int(event_id)))

def list_for_club(club_id: int, statuses: tuple[str, ...] = ("scheduled",), limit: int = 25) -> List[Dict]:
    con = get_conn()
    marks = ",".join("?" * len(statuses))
    rows = con.execute(
        f"SELECT * FROM club_events WHERE club_id=? AND status IN ({marks}) "
        "ORDER BY event_date ASC, start_time ASC LIMIT ?",
        (int(club_id), *statuses, int(limit))
    ).fetchall()
    return [_row_to_event(r) for r in rows]

def list_scheduled_before(date_str: str) -> List[Dict]:
    """Événements `scheduled` dont la date (YYYY-MM-DD) est ≤ date_str."""
    con = get_conn()
    rows = con.execute("SELECT * FROM club_events WHERE status='scheduled' AND event_date<=? ORDER BY id",
                       (date_str,)).fetchall()
    return [_row_to_event(r) for r in rows]
