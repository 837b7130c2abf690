from datetime import datetime

def parse_event_datetime(date_str: str, time_str: str = "") -> datetime:
    """'2025-12-25' + '14:30' → datetime naïf (heure locale du serveur)."""
    raw = f"{date_str.strip()} {time_str.strip() or '00:00'}"
    return datetime.strptime(raw, "%Y-%m-%d %H:%M")

def parse_deadline(raw: str) -> datetime:
    """'YYYY-MM-DD' (fin de journée) ou 'YYYY-MM-DD HH:MM'."""
    raw = raw.strip()
    if len(raw) <= 10:
        return datetime.strptime(raw, "%Y-%m-%d").replace(hour=23, minute=59)
    return datetime.strptime(raw, "%Y-%m-%d %H:%M")

def now_local() -> datetime:
    return datetime.now()
