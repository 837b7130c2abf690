import discord
import pytest

from clubbot.core.config import settings
from clubbot.domain import verification
from clubbot.domain.errors import Forbidden
from clubbot.domain.permissions import Actor, resolve, check, require
from clubbot.persistence import trusted as trusted_db

from conftest import FakeGuild, FakeRole

CLUB = {"id": 1, "president_user_id": "10", "moderator_role_id": "777"}


def _m(role="member", status="active"):
    return {"role": role, "status": status}


@pytest.mark.parametrize("actor,membership,trusted,expected_level", [
    (Actor(1, is_owner=True), None, False, "owner"),
    (Actor(2, is_admin=True), None, False, "admin"),
    (Actor(10), _m("president"), False, "president"),
    (Actor(11, role_ids=frozenset({777})), None, False, "moderator"),
    (Actor(12), _m("moderator"), False, "moderator"),
])
def test_privileged_levels_allow_everything(actor, membership, trusted, expected_level):
    for action in ("view", "post", "moderate", "approve"):
        d = resolve(actor, CLUB, membership, trusted, action)
        assert d.allowed and d.level == expected_level


def test_owner_wins_over_everything():
    d = resolve(Actor(10, is_owner=True, is_admin=True), CLUB, _m("president"), False, "moderate")
    assert d.level == "owner"


@pytest.mark.parametrize("membership,trusted", [(_m("member"), True), (_m("officer"), False)])
def test_trusted_member_posts_and_approves_but_cannot_moderate(membership, trusted):
    actor = Actor(20)
    assert resolve(actor, CLUB, membership, trusted, "post").allowed
    assert resolve(actor, CLUB, membership, trusted, "approve").allowed
    assert resolve(actor, CLUB, membership, trusted, "view").allowed
    d = resolve(actor, CLUB, membership, trusted, "moderate")
    assert not d.allowed and d.level == "officer"


def test_plain_member_only_views():
    actor = Actor(30)
    assert resolve(actor, CLUB, _m(), False, "view").allowed
    for action in ("post", "moderate", "approve"):
        assert not resolve(actor, CLUB, _m(), False, action).allowed


def test_removed_member_and_stranger_are_denied():
    assert not resolve(Actor(31), CLUB, _m(status="removed"), False, "view").allowed
    assert not resolve(Actor(31), CLUB, _m(status="removed"), True, "post").allowed
    d = resolve(Actor(32), CLUB, None, False, "view")
    assert not d.allowed and d.level == "none"


def test_unknown_action_is_a_programming_error():
    with pytest.raises(ValueError):
        resolve(Actor(1), CLUB, None, False, "delete")


def test_check_tolerates_missing_club():
    d = check(Actor(5), 12345, "view")
    assert not d.allowed
    assert "introuvable" in d.reason


@pytest.mark.asyncio
async def test_check_and_require_load_rows(make_club, enroll, guild):
    club = await make_club()
    enroll(club, 40)
    trusted_db.add(club["id"], "40", "10")

    assert check(Actor(40), club["id"], "post").allowed
    with pytest.raises(Forbidden) as exc:
        require(Actor(40), club["id"], "moderate")
    assert exc.value.capability == "moderate"
    assert require(Actor(10), club["id"], "moderate").level == "president"


def test_actor_from_member(monkeypatch):
    monkeypatch.setattr(settings, "moderator_role_id", 55)
    monkeypatch.setattr(settings, "admin_role_id", 66)
    g = FakeGuild(owner_id=1)

    owner = g.add_member(1)
    assert Actor.from_member(owner).is_owner

    perms_admin = g.add_member(2, perms=discord.Permissions(administrator=True))
    assert Actor.from_member(perms_admin).is_admin

    role_admin = g.add_member(3, roles=[FakeRole(66, "Admin")])
    assert Actor.from_member(role_admin).is_admin

    mod = g.add_member(4, roles=[FakeRole(55, "Mod")])
    a = Actor.from_member(mod)
    assert a.is_server_moderator and not a.is_admin and a.is_server_staff
    assert 55 in a.role_ids

    manager = g.add_member(5, perms=discord.Permissions(manage_guild=True))
    a = Actor.from_member(manager)
    assert a.can_review_clubs and not a.is_server_staff


# ───────── Vérification ─────────

def test_verified_role_gate(configured):
    guild = FakeGuild()
    badge = guild.add_role("Verified")
    configured.verified_role_id = badge.id

    assert verification.is_verified(guild.add_member(20, roles=[badge]))
    assert not verification.is_verified(guild.add_member(21))
    assert f"<@&{badge.id}>" in verification.not_verified_message()


def test_unconfigured_verification_lets_everyone_through():
    assert verification.is_verified(FakeGuild().add_member(20))
