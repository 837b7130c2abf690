from __future__ import annotations
from typing import Optional, Dict, List
from ..core.db.base import get_conn, atomic

_COLS = ("id,guild_id,name,slug,description,logo_url,category,president_user_id,status,"
         "role_id,moderator_role_id,category_id,channel_id,voice_channel_id,listing_message_id,"
         "max_members,require_approval,contact_email,contact_phone,website_url,created_ts,updated_ts")

def _row_to_club(row) -> Dict:
    d = dict(row)
    d["require_approval"] = bool(d.get("require_approval"))
    return d

def create(guild_id: str, name: str, slug: str, president_user_id: str, *, description: str = "",
           logo_url: str | None = None, category: str = "general", contact_email: str | None = None,
           contact_phone: str | None = None, website_url: str | None = None,
           max_members: int | None = None, require_approval: bool = False) -> int:
    with atomic():
        con = get_conn()
        cur = con.execute(
            "INSERT INTO clubs(guild_id,name,slug,description,logo_url,category,president_user_id,"
            "contact_email,contact_phone,website_url,max_members,require_approval,status) "
            "VALUES(?,?,?,?,?,?,?,?,?,?,?,?,'pending')",
            (guild_id, name, slug, description or "", logo_url, category, president_user_id,
             contact_email, contact_phone, website_url, max_members, int(bool(require_approval)))
        )
        return int(cur.lastrowid)

def get(club_id: int) -> Optional[Dict]:
    con = get_conn()
    row = con.execute(f"SELECT {_COLS} FROM clubs WHERE id=?", (int(club_id),)).fetchone()
    return _row_to_club(row) if row else None

def find_by_name(guild_id: str, name: str) -> Optional[Dict]:
    con = get_conn()
    row = con.execute(f"SELECT {_COLS} FROM clubs WHERE guild_id=? AND LOWER(name)=LOWER(?) LIMIT 1",
                      (guild_id, name.strip())).fetchone()
    return _row_to_club(row) if row else None

def slug_exists(guild_id: str, slug: str) -> bool:
    con = get_conn()
    row = con.execute("SELECT 1 FROM clubs WHERE guild_id=? AND slug=? LIMIT 1", (guild_id, slug)).fetchone()
    return bool(row)

def find_by_identifier(guild_id: str, ident: str) -> Optional[Dict]:
    """Nom, slug ou id numérique."""
    ident = (ident or "").strip()
    con = get_conn()
    if ident.isdigit():
        row = con.execute(f"SELECT {_COLS} FROM clubs WHERE guild_id=? AND id=?", (guild_id, int(ident))).fetchone()
        if row:
            return _row_to_club(row)
    row = con.execute(
        f"SELECT {_COLS} FROM clubs WHERE guild_id=? AND (slug=LOWER(?) OR LOWER(name)=LOWER(?)) "
        "ORDER BY (status='active') DESC, id DESC LIMIT 1",
        (guild_id, ident, ident)
    ).fetchone()
    return _row_to_club(row) if row else None

def live_club_for_president(guild_id: str, user_id: str) -> Optional[Dict]:
    con = get_conn()
    row = con.execute(
        f"SELECT {_COLS} FROM clubs WHERE guild_id=? AND president_user_id=? AND status IN ('pending','active') LIMIT 1",
        (guild_id, user_id)
    ).fetchone()
    return _row_to_club(row) if row else None

def list_by_status(guild_id: str, status: str, limit: int = 50) -> List[Dict]:
    con = get_conn()
    rows = con.execute(f"SELECT {_COLS} FROM clubs WHERE guild_id=? AND status=? ORDER BY name ASC LIMIT ?",
                       (guild_id, status, int(limit))).fetchall()
    return [_row_to_club(r) for r in rows]

def list_for_member(guild_id: str, user_id: str) -> List[Dict]:
    con = get_conn()
    rows = con.execute(
        f"SELECT {', '.join('c.' + c for c in _COLS.split(','))}, m.role AS member_role FROM clubs c "
        "JOIN club_members m ON m.club_id=c.id "
        "WHERE c.guild_id=? AND m.user_id=? AND m.status='active' AND c.status='active' ORDER BY c.name",
        (guild_id, user_id)
    ).fetchall()
    return [_row_to_club(r) for r in rows]

def active_role_ids(guild_id: str) -> List[str]:
    con = get_conn()
    rows = con.execute("SELECT role_id FROM clubs WHERE guild_id=? AND status='active' AND role_id IS NOT NULL",
                       (guild_id,)).fetchall()
    return [r[0] for r in rows]

def activate(club_id: int, *, role_id: str, moderator_role_id: str, category_id: str | None,
             channel_id: str, voice_channel_id: str) -> bool:
    """pending → active (compare-and-set). False si quelqu'un est passé avant."""
    con = get_conn()
    cur = con.execute(
        "UPDATE clubs SET status='active', role_id=?, moderator_role_id=?, category_id=?, channel_id=?, "
        "voice_channel_id=?, updated_ts=strftime('%s','now') WHERE id=? AND status='pending'",
        (role_id, moderator_role_id, category_id, channel_id, voice_channel_id, int(club_id))
    )
    return cur.rowcount == 1

def transition(club_id: int, from_status: str, to_status: str) -> bool:
    con = get_conn()
    cur = con.execute(
        "UPDATE clubs SET status=?, updated_ts=strftime('%s','now') WHERE id=? AND status=?",
        (to_status, int(club_id), from_status)
    )
    return cur.rowcount == 1

def set_president(club_id: int, user_id: str) -> None:
    con = get_conn()
    con.execute("UPDATE clubs SET president_user_id=?, updated_ts=strftime('%s','now') WHERE id=?",
                (user_id, int(club_id)))

def set_listing_message(club_id: int, message_id: str) -> None:
    with atomic():
        con = get_conn()
        con.execute("UPDATE clubs SET listing_message_id=? WHERE id=?", (message_id, int(club_id)))

def set_moderator_role(club_id: int, role_id: str) -> None:
    with atomic():
        con = get_conn()
        con.execute("UPDATE clubs SET moderator_role_id=?, updated_ts=strftime('%s','now') WHERE id=?",
                    (role_id, int(club_id)))
