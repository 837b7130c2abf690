from . import v0001_clubs, v0002_events, v0003_transfers

def migrate_if_needed(con):
    (ver,) = con.execute("PRAGMA user_version").fetchone()
    ver = int(ver or 0)

    if ver < 1:
        v0001_clubs.apply(con);     con.execute("PRAGMA user_version=1"); ver = 1
    if ver < 2:
        v0002_events.apply(con);    con.execute("PRAGMA user_version=2"); ver = 2
    if ver < 3:
        v0003_transfers.apply(con); con.execute("PRAGMA user_version=3"); ver = 3
    return ver
