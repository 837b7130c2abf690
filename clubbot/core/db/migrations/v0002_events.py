DDL = """
CREATE TABLE IF NOT EXISTS club_events (
  id                    INTEGER PRIMARY KEY AUTOINCREMENT,
  club_id               INTEGER NOT NULL REFERENCES clubs(id),
  guild_id              TEXT NOT NULL,
  title                 TEXT NOT NULL,
  description           TEXT NOT NULL DEFAULT '',
  event_type            TEXT NOT NULL DEFAULT 'other',
  status                TEXT NOT NULL DEFAULT 'pending'
                        CHECK (status IN ('pending','scheduled','rejected','completed')),
  event_date            TEXT NOT NULL,                 -- YYYY-MM-DD
  start_time            TEXT NOT NULL DEFAULT '',      -- HH:MM
  end_time              TEXT NOT NULL DEFAULT '',
  venue                 TEXT NOT NULL DEFAULT '',
  meeting_link          TEXT NOT NULL DEFAULT '',
  location_type         TEXT NOT NULL DEFAULT 'physical'
                        CHECK (location_type IN ('physical','virtual','hybrid')),
  min_participants      INTEGER,
  max_participants      INTEGER,
  registration_required INTEGER NOT NULL DEFAULT 0,
  registration_deadline TEXT,
  registration_fee      INTEGER NOT NULL DEFAULT 0,
  external_form_url     TEXT,
  is_team_event         INTEGER NOT NULL DEFAULT 0,
  team_size_min         INTEGER,
  team_size_max         INTEGER,
  require_captain       INTEGER NOT NULL DEFAULT 0,
  eligibility_json      TEXT NOT NULL DEFAULT '{}',
  visibility            TEXT NOT NULL DEFAULT 'guild' CHECK (visibility IN ('club','guild')),
  poster_url            TEXT,
  channel_id            TEXT,
  message_id            TEXT,
  created_by            TEXT NOT NULL,
  approved_by           TEXT,
  approved_ts           INTEGER,
  created_ts            INTEGER NOT NULL DEFAULT (strftime('%s','now')),
  updated_ts            INTEGER NOT NULL DEFAULT (strftime('%s','now'))
);
CREATE INDEX IF NOT EXISTS idx_events_club_status ON club_events(club_id, status);
CREATE INDEX IF NOT EXISTS idx_events_status_date ON club_events(status, event_date);

CREATE TABLE IF NOT EXISTS event_participants (
  id                INTEGER PRIMARY KEY AUTOINCREMENT,
  event_id          INTEGER NOT NULL REFERENCES club_events(id),
  user_id           TEXT NOT NULL,
  guild_id          TEXT NOT NULL,
  rsvp_status       TEXT NOT NULL DEFAULT 'going' CHECK (rsvp_status IN ('going','cancelled')),
  registration_ts   INTEGER NOT NULL DEFAULT (strftime('%s','now')),
  checked_in        INTEGER NOT NULL DEFAULT 0,
  team_name         TEXT,
  is_captain        INTEGER NOT NULL DEFAULT 0,
  registration_data TEXT,
  UNIQUE(event_id, user_id)
);

CREATE TABLE IF NOT EXISTS event_registrations (
  id             INTEGER PRIMARY KEY AUTOINCREMENT,
  event_id       INTEGER NOT NULL REFERENCES club_events(id),
  user_id        TEXT NOT NULL,
  guild_id       TEXT NOT NULL,
  payment_status TEXT NOT NULL DEFAULT 'pending' CHECK (payment_status IN ('pending','verified','rejected')),
  proof_url      TEXT,
  verified_by    TEXT,
  notes          TEXT,
  created_ts     INTEGER NOT NULL DEFAULT (strftime('%s','now')),
  UNIQUE(event_id, user_id)
);
"""
def apply(con): con.executescript(DDL)
