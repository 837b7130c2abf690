import pytest

from clubbot.domain import audit, clubs as d_clubs, membership
from clubbot.domain.errors import (AlreadyResolved, CapacityReached, ConflictError, Forbidden,
                                   ValidationError)
from clubbot.domain.permissions import Actor
from clubbot.persistence import join_requests as join_db, members as members_db, trusted as trusted_db

from conftest import CLUBS_CH

REASON = "J'aime construire des robots depuis des années."


async def _request(guild, notifier, club, uid=20, reason=REASON):
    member = guild.get_member(uid) or guild.add_member(uid)
    req, delivered = await membership.submit_join_request(
        guild, member, club["id"], notifier, verified=True,
        full_name="Ada Lovelace", confirmation="yes", reason=reason, email="ada@example.org")
    return req, delivered


# ───────── Adhésion libre ─────────

@pytest.mark.asyncio
async def test_open_club_join(make_club, guild, notifier):
    club = await make_club()
    member = guild.add_member(20)

    await membership.join_club(guild, member, club["id"], notifier, verified=True)

    assert members_db.get_active(club["id"], "20")["role"] == "member"
    member.add_roles.assert_awaited_once()
    assert notifier.edits[-1]["channel_id"] == str(CLUBS_CH)
    assert audit.latest(club["id"], "member_joined")["target_id"] == "20"

    with pytest.raises(ConflictError):
        await membership.join_club(guild, member, club["id"], notifier, verified=True)


@pytest.mark.asyncio
async def test_capacity_is_enforced(make_club, guild, notifier):
    club = await make_club(max_members=2)
    await membership.join_club(guild, guild.add_member(20), club["id"], notifier, verified=True)

    with pytest.raises(CapacityReached):
        await membership.join_club(guild, guild.add_member(21), club["id"], notifier, verified=True)
    assert members_db.count_active(club["id"]) == 2


@pytest.mark.asyncio
async def test_join_gates(make_club, guild, notifier):
    club = await make_club(require_approval=True)
    member = guild.add_member(20)

    with pytest.raises(Forbidden):
        await membership.join_club(guild, member, club["id"], notifier, verified=False)
    with pytest.raises(ConflictError):
        await membership.join_club(guild, member, club["id"], notifier, verified=True)
    assert members_db.get_active(club["id"], "20") is None


# ───────── Adhésion sur demande ─────────

@pytest.mark.asyncio
async def test_request_reaches_leaders(make_club, guild, notifier, enroll):
    club = await make_club(require_approval=True)
    enroll(club, 30, role="moderator")
    enroll(club, 31)

    req, delivered = await _request(guild, notifier, club)

    assert req["status"] == "pending"
    assert delivered == 2
    assert notifier.dms_to(10)[-1]["view"] is not None
    assert notifier.dms_to(30) and not notifier.dms_to(31)

    with pytest.raises(ConflictError):
        await _request(guild, notifier, club)


@pytest.mark.asyncio
async def test_request_persists_when_no_leader_reachable(make_club, guild, notifier):
    club = await make_club(require_approval=True)
    notifier.dm_ok = False

    req, delivered = await _request(guild, notifier, club)

    assert delivered == 0
    assert join_db.get(req["id"])["status"] == "pending"


@pytest.mark.parametrize("full_name,confirmation,reason,message", [
    ("", "YES", REASON, "nom complet"),
    ("Ada", "no", REASON, "YES"),
    ("Ada", "YES", "trop court", "trop courte"),
    ("Ada", "YES", "x" * 501, "trop longue"),
])
def test_join_form_validation(full_name, confirmation, reason, message):
    with pytest.raises(ValidationError) as exc:
        membership.validate_join_form(full_name, confirmation, reason)
    assert message in exc.value.message


@pytest.mark.asyncio
async def test_approve_request_once(make_club, guild, notifier):
    club = await make_club(require_approval=True)
    req, _ = await _request(guild, notifier, club)
    president = Actor(10)

    done = await membership.approve_join_request(guild, president, req["id"], notifier)

    assert done["status"] == "approved" and done["reviewed_by"] == "10"
    assert members_db.get_active(club["id"], "20") is not None
    assert "acceptée" in notifier.dms_to(20)[-1]["content"]

    with pytest.raises(AlreadyResolved):
        await membership.approve_join_request(guild, Actor(2, is_admin=True), req["id"], notifier)
    with pytest.raises(AlreadyResolved):
        await membership.reject_join_request(guild, president, req["id"], notifier)
    assert join_db.get(req["id"])["status"] == "approved"
    assert len(members_db.list_active(club["id"])) == 2


@pytest.mark.asyncio
async def test_plain_member_cannot_review(make_club, guild, notifier, enroll):
    club = await make_club(require_approval=True)
    enroll(club, 31)
    req, _ = await _request(guild, notifier, club)

    with pytest.raises(Forbidden):
        await membership.reject_join_request(guild, Actor(31), req["id"], notifier)

    trusted_db.add(club["id"], "31", "10")
    done = await membership.reject_join_request(guild, Actor(31), req["id"], notifier)
    assert done["status"] == "rejected"
    assert members_db.get_active(club["id"], "20") is None


@pytest.mark.asyncio
async def test_approval_respects_capacity(make_club, guild, notifier, enroll):
    club = await make_club(require_approval=True, max_members=2)
    req, _ = await _request(guild, notifier, club)
    enroll(club, 31)

    with pytest.raises(CapacityReached):
        await membership.approve_join_request(guild, Actor(10), req["id"], notifier)
    assert join_db.get(req["id"])["status"] == "pending"


@pytest.mark.asyncio
async def test_dissolved_club_cannot_approve_requests(make_club, guild, notifier, admin):
    club = await make_club(require_approval=True)
    req, _ = await _request(guild, notifier, club)
    d_clubs.dissolve_club(guild.id, admin, club["id"], "inactif")

    with pytest.raises(ConflictError):
        await membership.approve_join_request(guild, Actor(10), req["id"], notifier)

    assert join_db.get(req["id"])["status"] == "pending"
    assert members_db.get(club["id"], "20") is None
    guild.get_member(20).add_roles.assert_not_awaited()
    done = await membership.reject_join_request(guild, Actor(10), req["id"], notifier)
    assert done["status"] == "rejected"


# ───────── Gestion ─────────

@pytest.mark.asyncio
async def test_remove_member(make_club, guild, notifier, enroll):
    club = await make_club()
    target = enroll(club, 20)
    trusted_db.add(club["id"], "20", "10")

    row = await membership.remove_member(guild, Actor(10), club["id"], 20, "Spam répété", notifier)

    assert row["status"] == "removed" and row["role"] == "member"
    assert not trusted_db.is_trusted(club["id"], "20")
    target.remove_roles.assert_awaited_once()
    assert "Spam répété" in notifier.dms_to(20)[-1]["content"]
    assert audit.latest(club["id"], "member_removed")["details"] == {"reason": "Spam répété"}

    with pytest.raises(ConflictError):
        await membership.remove_member(guild, Actor(10), club["id"], 20, "encore", notifier)


@pytest.mark.asyncio
async def test_remove_member_guards(make_club, guild, notifier, enroll):
    club = await make_club()
    enroll(club, 30, role="moderator")
    enroll(club, 31)

    with pytest.raises(ValidationError):
        await membership.remove_member(guild, Actor(30), club["id"], 10, "coup d'état", notifier)
    with pytest.raises(ValidationError):
        await membership.remove_member(guild, Actor(30), club["id"], 30, "départ", notifier)
    with pytest.raises(ValidationError):
        await membership.remove_member(guild, Actor(30), club["id"], 31, "   ", notifier)
    with pytest.raises(Forbidden):
        await membership.remove_member(guild, Actor(31), club["id"], 30, "vengeance", notifier)
    assert len(members_db.list_active(club["id"])) == 3


@pytest.mark.asyncio
async def test_removed_member_can_rejoin(make_club, guild, notifier, enroll):
    club = await make_club()
    member = enroll(club, 20)
    await membership.remove_member(guild, Actor(10), club["id"], 20, "pause", notifier)

    await membership.join_club(guild, member, club["id"], notifier, verified=True)
    assert members_db.get_active(club["id"], "20")["role"] == "member"


@pytest.mark.asyncio
async def test_trusted_toggle(make_club, guild, notifier, enroll):
    club = await make_club()
    enroll(club, 20)

    assert await membership.set_trusted(guild, Actor(10), club["id"], 20, True, notifier)
    assert trusted_db.is_trusted(club["id"], "20")
    assert members_db.get_active(club["id"], "20")["role"] == "officer"
    with pytest.raises(ConflictError):
        await membership.set_trusted(guild, Actor(10), club["id"], 20, True, notifier)

    assert not await membership.set_trusted(guild, Actor(10), club["id"], 20, False, notifier)
    assert members_db.get_active(club["id"], "20")["role"] == "member"


@pytest.mark.asyncio
async def test_trusted_toggle_is_president_only(make_club, guild, notifier, enroll):
    club = await make_club()
    enroll(club, 20)
    enroll(club, 30, role="moderator")

    with pytest.raises(Forbidden):
        await membership.set_trusted(guild, Actor(30), club["id"], 20, True, notifier)
    with pytest.raises(ValidationError):
        await membership.set_trusted(guild, Actor(10), club["id"], 99, True, notifier)


@pytest.mark.asyncio
async def test_moderator_promotion(make_club, guild, notifier, enroll):
    club = await make_club()
    target = enroll(club, 20)

    await membership.set_moderator(guild, Actor(10), club["id"], 20, True, notifier)
    assert members_db.get_active(club["id"], "20")["role"] == "moderator"
    assert "20" in members_db.leader_ids(club["id"])
    target.add_roles.assert_awaited_once()

    await membership.set_moderator(guild, Actor(10), club["id"], 20, False, notifier)
    assert members_db.get_active(club["id"], "20")["role"] == "member"
    target.remove_roles.assert_awaited_once()
    with pytest.raises(ConflictError):
        await membership.set_moderator(guild, Actor(10), club["id"], 20, False, notifier)


@pytest.mark.asyncio
async def test_list_members_requires_membership(make_club, enroll):
    club = await make_club()
    enroll(club, 20)

    _, rows = membership.list_members(Actor(20), club["id"])
    assert {r["user_id"] for r in rows} == {"10", "20"}
    with pytest.raises(Forbidden):
        membership.list_members(Actor(99), club["id"])
