import re
from typing import Optional

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^\+?[\d\s\-()]{7,}$")

def slugify(name: str) -> str:
    s = re.sub(r"[^a-z0-9\s-]", "", (name or "").lower())
    s = re.sub(r"[\s_-]+", "-", s).strip("-")
    return s or "club"

def is_http_url(value: Optional[str]) -> bool:
    v = (value or "").strip().lower()
    return v.startswith("http://") or v.startswith("https://")

def is_email(value: str) -> bool:
    return bool(_EMAIL_RE.match((value or "").strip()))

def parse_contact(raw: Optional[str]) -> dict:
    """
    Texte libre → {'email', 'phone', 'website'}.
    Accepte 'Email: x', 'Phone: y', 'Website: z' ou des lignes nues.
    Un email présent mais invalide lève ValueError.
    """
    out = {"email": None, "phone": None, "website": None}
    for line in (raw or "").splitlines():
        line = line.strip()
        if not line:
            continue
        key, sep, value = line.partition(":")
        key_l = key.strip().lower()
        if sep and key_l in ("email", "e-mail", "mail"):
            value = value.strip()
            if not is_email(value):
                raise ValueError(value)
            out["email"] = value
        elif sep and key_l in ("phone", "tel", "téléphone", "telephone"):
            out["phone"] = value.strip()
        elif sep and key_l in ("website", "site", "web"):
            out["website"] = value.strip()
        elif "@" in line and " " not in line:
            if not is_email(line):
                raise ValueError(line)
            out["email"] = line
        elif is_http_url(line):
            out["website"] = line
        elif _PHONE_RE.match(line) and sum(c.isdigit() for c in line) >= 7:
            out["phone"] = line
    return out
