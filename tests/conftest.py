import itertools
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from clubbot.core.config import settings
from clubbot.core.db import base
from clubbot.core.db.migrations import migrate_if_needed
from clubbot.domain.permissions import Actor

GUILD_ID = 1000
OWNER_ID = 1
APPROVAL_CH = 500
CLUBS_CH = 501
ANNOUNCE_CH = 502


def http_error(status=403, text="Missing Permissions"):
    return discord.Forbidden(MagicMock(status=status, reason="Forbidden"), text)


# ───────── Faux objets Discord ─────────

class FakeRole:
    def __init__(self, rid, name, colour=0):
        self.id = rid
        self.name = name
        self.colour = colour if isinstance(colour, discord.Colour) else discord.Colour(colour)
        self.mention = f"<@&{rid}>"

    def __hash__(self):
        return hash(("role", self.id))

    def __eq__(self, other):
        return isinstance(other, FakeRole) and other.id == self.id


class FakeChannel:
    def __init__(self, cid, name, overwrites=None):
        self.id = cid
        self.name = name
        self.overwrites = dict(overwrites or {})
        self.set_permissions = AsyncMock(side_effect=self._set)
        self.text_channels = []
        self.voice_channels = []

    async def _set(self, target, *, overwrite=None, reason=None):
        self.overwrites[target] = overwrite


class FakeMember:
    def __init__(self, guild, uid, roles=(), perms=None):
        self.id = uid
        self.guild = guild
        self.roles = list(roles)
        self.guild_permissions = perms or discord.Permissions.none()
        self.mention = f"<@{uid}>"
        self.add_roles = AsyncMock()
        self.remove_roles = AsyncMock()

    def __hash__(self):
        return hash(("member", self.id))

    def __eq__(self, other):
        return isinstance(other, FakeMember) and other.id == self.id


class FakeGuild:
    def __init__(self, gid=GUILD_ID, owner_id=OWNER_ID):
        self.id = gid
        self.owner_id = owner_id
        self._ids = itertools.count(100_000)
        self.roles = []
        self.categories = []
        self.channels = {}
        self.members = {}
        self.default_role = FakeRole(gid, "@everyone")
        self.me = FakeMember(self, 999)
        self.fail_on = None

    def _fail(self, what):
        if self.fail_on == what:
            raise http_error()

    def get_role(self, rid):
        return next((r for r in self.roles if r.id == int(rid)), None)

    def get_member(self, uid):
        return self.members.get(int(uid))

    async def fetch_member(self, uid):
        return self.members.get(int(uid))

    def get_channel(self, cid):
        return self.channels.get(int(cid))

    def add_member(self, uid, roles=(), perms=None):
        m = FakeMember(self, uid, roles, perms)
        self.members[uid] = m
        return m

    def add_role(self, name, colour=0):
        role = FakeRole(next(self._ids), name, colour)
        self.roles.append(role)
        return role

    async def create_role(self, *, name, colour, hoist=False, mentionable=False, reason=None):
        self._fail("role")
        role = FakeRole(next(self._ids), name, colour)
        self.roles.append(role)
        return role

    async def create_category(self, name, *, overwrites=None, reason=None):
        self._fail("category")
        cat = FakeChannel(next(self._ids), name, overwrites)
        self.categories.append(cat)
        self.channels[cat.id] = cat
        return cat

    async def create_text_channel(self, name, *, category=None, overwrites=None, topic=None, reason=None):
        self._fail("text")
        ch = FakeChannel(next(self._ids), name, overwrites)
        category.text_channels.append(ch)
        self.channels[ch.id] = ch
        return ch

    async def create_voice_channel(self, name, *, category=None, overwrites=None, reason=None):
        self._fail("voice")
        ch = FakeChannel(next(self._ids), name, overwrites)
        category.voice_channels.append(ch)
        self.channels[ch.id] = ch
        return ch


class FakeNotifier:
    """Capture des envois; `dm_ok=False` simule des DM fermés."""

    def __init__(self):
        self.dms = []
        self.sent = []
        self.edits = []
        self.dm_ok = True
        self.send_ok = True
        self._ids = itertools.count(9000)

    @staticmethod
    def jump_url(guild_id, channel_id, message_id):
        return f"https://discord.com/channels/{guild_id}/{channel_id}/{message_id}"

    async def dm(self, user_id, *, content=None, embed=None, view=None):
        self.dms.append({"user_id": str(user_id), "content": content, "embed": embed, "view": view})
        return self.dm_ok

    async def send(self, channel_id, *, content=None, embed=None, view=None):
        if not channel_id or not self.send_ok:
            return None
        msg = MagicMock()
        msg.id = next(self._ids)
        self.sent.append({"channel_id": str(channel_id), "content": content, "embed": embed, "view": view,
                          "message_id": msg.id})
        return msg

    async def edit(self, channel_id, message_id, *, content=None, embed=None, view=None):
        self.edits.append({"channel_id": str(channel_id), "message_id": str(message_id),
                           "content": content, "embed": embed, "view": view})
        return True

    def dms_to(self, user_id):
        return [d for d in self.dms if d["user_id"] == str(user_id)]


# ───────── Fixtures ─────────

@pytest.fixture(autouse=True)
def db(tmp_path):
    base.use_database(str(tmp_path / "clubs.db"))
    con = base.get_conn()
    migrate_if_needed(con)
    yield con
    base.close()


@pytest.fixture(autouse=True)
def configured(monkeypatch):
    monkeypatch.setattr(settings, "verified_role_id", 0)
    monkeypatch.setattr(settings, "admin_role_id", 0)
    monkeypatch.setattr(settings, "moderator_role_id", 0)
    monkeypatch.setattr(settings, "executive_role_id", 0)
    monkeypatch.setattr(settings, "approval_channel_id", APPROVAL_CH)
    monkeypatch.setattr(settings, "clubs_channel_id", CLUBS_CH)
    monkeypatch.setattr(settings, "event_announcements_channel_id", ANNOUNCE_CH)
    monkeypatch.setattr(settings, "clubs_category_name", "CLUBS")
    monkeypatch.setattr(settings, "fee_capacity_policy", "on_verification")
    monkeypatch.setattr(settings, "join_reason_min_len", 20)
    return settings


@pytest.fixture
def guild():
    return FakeGuild()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def admin():
    return Actor(user_id=2, is_admin=True, can_manage_guild=True)


@pytest.fixture
def owner():
    return Actor(user_id=OWNER_ID, is_owner=True)


def as_actor(user_id, **kw):
    return Actor(user_id=user_id, **kw)


@pytest.fixture
def make_club(guild, notifier, admin):
    """Club inscrit puis approuvé (infrastructure factice)."""
    from clubbot.domain import clubs as d_clubs

    async def _make(name="Robotics Club", president_id=10, **fields):
        if guild.get_member(president_id) is None:
            guild.add_member(president_id)
        club = d_clubs.register_club(guild.id, president_id, verified=True, name=name, **fields)
        return await d_clubs.approve_club(guild, admin, club["id"], notifier)
    return _make


@pytest.fixture
def enroll(guild):
    """Ajoute directement un membre actif (sans passer par le workflow)."""
    from clubbot.persistence import members as members_db

    def _enroll(club, uid, role="member"):
        if guild.get_member(uid) is None:
            guild.add_member(uid)
        members_db.add_active(club["id"], str(uid), str(guild.id), role=role)
        return guild.get_member(uid)
    return _enroll
