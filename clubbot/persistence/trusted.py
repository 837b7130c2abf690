from ..core.db.base import get_conn

def is_trusted(club_id: int, user_id: str) -> bool:
    con = get_conn()
    row = con.execute("SELECT 1 FROM club_trusted_members WHERE club_id=? AND user_id=?",
                      (int(club_id), user_id)).fetchone()
    return bool(row)

def add(club_id: int, user_id: str, added_by: str) -> bool:
    con = get_conn()
    before = con.total_changes
    con.execute("INSERT OR IGNORE INTO club_trusted_members(club_id, user_id, added_by) VALUES(?,?,?)",
                (int(club_id), user_id, added_by))
    return (con.total_changes - before) > 0

def remove(club_id: int, user_id: str) -> bool:
    con = get_conn()
    cur = con.execute("DELETE FROM club_trusted_members WHERE club_id=? AND user_id=?", (int(club_id), user_id))
    return cur.rowcount == 1
