import os
from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

def _int_env(name: str, default: int = 0) -> int:
    raw = (os.getenv(name, "") or "").strip()
    return int(raw) if raw.isdigit() else default

class Settings(BaseModel):
    token: str = Field(default_factory=lambda: os.getenv("DISCORD_TOKEN",""))
    guild_id: int = _int_env("GUILD_ID")
    data_dir: str = os.getenv("DATA_DIR","./data")
    sync_scope: str = os.getenv("SYNC_SCOPE", "both")

    # Rôles serveur (0 = non configuré)
    verified_role_id: int = _int_env("VERIFIED_ROLE_ID")
    admin_role_id: int = _int_env("ADMIN_ROLE_ID")
    moderator_role_id: int = _int_env("MODERATOR_ROLE_ID")
    executive_role_id: int = _int_env("EXECUTIVE_ROLE_ID")

    # Surfaces de publication
    clubs_channel_id: int = _int_env("CLUBS_CHANNEL_ID")
    approval_channel_id: int = _int_env("APPROVAL_CHANNEL_ID")
    event_announcements_channel_id: int = _int_env("EVENT_ANNOUNCEMENTS_CHANNEL_ID")
    clubs_category_name: str = os.getenv("CLUBS_CATEGORY_NAME", "CLUBS")

    # Workflows
    confirm_timeout_s: int = _int_env("CONFIRM_TIMEOUT_S", 30)
    fee_capacity_policy: str = os.getenv("FEE_CAPACITY_POLICY", "on_verification")
    join_reason_min_len: int = _int_env("JOIN_REASON_MIN_LEN", 20)
    event_completion_grace_h: int = _int_env("EVENT_COMPLETION_GRACE_H", 6)

    def privileged_role_ids(self) -> list[int]:
        return [r for r in (self.admin_role_id, self.moderator_role_id, self.executive_role_id) if r]

settings = Settings()
