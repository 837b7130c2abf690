DDL = """
CREATE TABLE IF NOT EXISTS clubs (
  id                 INTEGER PRIMARY KEY AUTOINCREMENT,
  guild_id           TEXT NOT NULL,
  name               TEXT NOT NULL,
  slug               TEXT NOT NULL,
  description        TEXT NOT NULL DEFAULT '',
  logo_url           TEXT,
  category           TEXT NOT NULL DEFAULT 'general',
  president_user_id  TEXT NOT NULL,
  status             TEXT NOT NULL DEFAULT 'pending'
                     CHECK (status IN ('pending','active','rejected','dissolved')),
  role_id            TEXT,
  moderator_role_id  TEXT,
  category_id        TEXT,
  channel_id         TEXT,
  voice_channel_id   TEXT,
  listing_message_id TEXT,
  max_members        INTEGER,
  require_approval   INTEGER NOT NULL DEFAULT 0 CHECK (require_approval IN (0,1)),
  contact_email      TEXT,
  contact_phone      TEXT,
  website_url        TEXT,
  created_ts         INTEGER NOT NULL DEFAULT (strftime('%s','now')),
  updated_ts         INTEGER NOT NULL DEFAULT (strftime('%s','now')),
  UNIQUE(guild_id, slug)
);
CREATE INDEX IF NOT EXISTS idx_clubs_guild_status ON clubs(guild_id, status);
CREATE UNIQUE INDEX IF NOT EXISTS uq_clubs_live_president
  ON clubs(guild_id, president_user_id) WHERE status IN ('pending','active');

CREATE TABLE IF NOT EXISTS club_members (
  id                  INTEGER PRIMARY KEY AUTOINCREMENT,
  club_id             INTEGER NOT NULL REFERENCES clubs(id),
  user_id             TEXT NOT NULL,
  guild_id            TEXT NOT NULL,
  role                TEXT NOT NULL DEFAULT 'member'
                      CHECK (role IN ('member','officer','moderator','president')),
  status              TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active','removed')),
  joined_ts           INTEGER NOT NULL DEFAULT (strftime('%s','now')),
  attendance_count    INTEGER NOT NULL DEFAULT 0,
  contribution_points INTEGER NOT NULL DEFAULT 0,
  last_active_ts      INTEGER NOT NULL DEFAULT (strftime('%s','now')),
  removed_ts          INTEGER,
  removed_by          TEXT,
  removal_reason      TEXT,
  UNIQUE(club_id, user_id)
);
CREATE INDEX IF NOT EXISTS idx_members_club_status ON club_members(club_id, status);

CREATE TABLE IF NOT EXISTS club_join_requests (
  id              INTEGER PRIMARY KEY AUTOINCREMENT,
  club_id         INTEGER NOT NULL REFERENCES clubs(id),
  user_id         TEXT NOT NULL,
  guild_id        TEXT NOT NULL,
  full_name       TEXT NOT NULL DEFAULT '',
  email           TEXT,
  interest_reason TEXT NOT NULL DEFAULT '',
  status          TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending','approved','rejected')),
  reviewed_by     TEXT,
  reviewed_ts     INTEGER,
  created_ts      INTEGER NOT NULL DEFAULT (strftime('%s','now'))
);
CREATE UNIQUE INDEX IF NOT EXISTS uq_join_requests_pending
  ON club_join_requests(club_id, user_id) WHERE status = 'pending';

CREATE TABLE IF NOT EXISTS club_trusted_members (
  club_id  INTEGER NOT NULL REFERENCES clubs(id),
  user_id  TEXT NOT NULL,
  added_by TEXT,
  added_ts INTEGER NOT NULL DEFAULT (strftime('%s','now')),
  PRIMARY KEY (club_id, user_id)
);

CREATE TABLE IF NOT EXISTS club_audit_log (
  id           INTEGER PRIMARY KEY AUTOINCREMENT,
  guild_id     TEXT NOT NULL,
  club_id      INTEGER,
  action_type  TEXT NOT NULL,
  performed_by TEXT NOT NULL,
  target_id    TEXT NOT NULL DEFAULT '',
  details_json TEXT NOT NULL DEFAULT '{}',
  ts           INTEGER NOT NULL DEFAULT (strftime('%s','now'))
);
CREATE INDEX IF NOT EXISTS idx_audit_club_action ON club_audit_log(club_id, action_type, id);
CREATE INDEX IF NOT EXISTS idx_audit_guild_ts ON club_audit_log(guild_id, ts);
"""
def apply(con): con.executescript(DDL)
