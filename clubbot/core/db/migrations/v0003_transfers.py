DDL = """
CREATE TABLE IF NOT EXISTS club_transfer_requests (
  id             INTEGER PRIMARY KEY AUTOINCREMENT,
  guild_id       TEXT NOT NULL,
  club_id        INTEGER NOT NULL REFERENCES clubs(id),
  initiator_id   TEXT NOT NULL,
  initiator_role TEXT NOT NULL DEFAULT 'moderator',
  candidate_id   TEXT NOT NULL,
  reason         TEXT NOT NULL DEFAULT '',
  status         TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending','approved','denied')),
  created_ts     INTEGER NOT NULL DEFAULT (strftime('%s','now')),
  resolved_ts    INTEGER,
  resolved_by    TEXT
);
CREATE UNIQUE INDEX IF NOT EXISTS uq_transfer_pending
  ON club_transfer_requests(club_id) WHERE status = 'pending';
"""

def apply(con):
    con.executescript(DDL)
