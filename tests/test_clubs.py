import pytest

from clubbot.core.config import settings
from clubbot.domain import audit, clubs as d_clubs
from clubbot.domain.errors import (AlreadyResolved, ConflictError, Forbidden, ProvisioningError,
                                   ValidationError)
from clubbot.domain.permissions import Actor
from clubbot.persistence import clubs as clubs_db, members as members_db

from conftest import CLUBS_CH, APPROVAL_CH


def _register(uid=10, name="Robotics Club", **kw):
    return d_clubs.register_club(1000, uid, verified=True, name=name, **kw)


def test_register_persists_pending_club():
    club = _register(description="Robots", category="technical",
                     contact="Email: team@robot.io\nhttps://robot.io", max_members=30)
    assert club["status"] == "pending"
    assert club["slug"] == "robotics-club"
    assert club["contact_email"] == "team@robot.io"
    assert club["website_url"] == "https://robot.io"
    assert club["max_members"] == 30
    assert audit.latest(club["id"], "club_registered") is not None


def test_duplicate_name_is_rejected_case_insensitively(db):
    _register(uid=10)
    with pytest.raises(ConflictError):
        _register(uid=11, name="robotics club")
    (n,) = db.execute("SELECT COUNT(*) FROM clubs").fetchone()
    assert n == 1


def test_slug_collision_is_disambiguated():
    a = _register(uid=10, name="Robotics Club")
    b = _register(uid=11, name="Robotics-Club")
    c = _register(uid=12, name="Robotics  Club!")
    assert (a["slug"], b["slug"], c["slug"]) == ("robotics-club", "robotics-club-2", "robotics-club-3")


def test_one_live_club_per_proposer():
    _register(uid=10, name="Robotics Club")
    with pytest.raises(ConflictError):
        _register(uid=10, name="Chess Club")


def test_rejected_club_frees_the_proposer():
    club = _register(uid=10)
    clubs_db.transition(club["id"], "pending", "rejected")
    assert _register(uid=10, name="Chess Club")["status"] == "pending"


@pytest.mark.parametrize("kw,message", [
    ({"name": ""}, "obligatoire"),
    ({"name": "x" * 51}, "trop long"),
    ({"description": "d" * 501}, "trop longue"),
    ({"category": "cooking"}, "Catégorie"),
    ({"contact": "Email: nope"}, "Email invalide"),
    ({"logo_url": "ftp://logo"}, "URL"),
    ({"max_members": 0}, "positive"),
])
def test_validation_errors(kw, message):
    fields = {"name": "Robotics Club", **kw}
    with pytest.raises(ValidationError) as exc:
        d_clubs.register_club(1000, 10, verified=True, **fields)
    assert message in exc.value.message


def test_unverified_proposer_is_refused():
    with pytest.raises(Forbidden):
        d_clubs.register_club(1000, 10, verified=False, name="Robotics Club")


@pytest.mark.asyncio
async def test_submit_routes_to_review_surface(notifier):
    club, routed = await d_clubs.submit_registration(1000, 10, notifier, verified=True, name="Robotics Club")
    assert routed
    assert notifier.sent[0]["channel_id"] == str(APPROVAL_CH)
    assert notifier.sent[0]["view"] is not None


@pytest.mark.asyncio
async def test_submit_without_review_surface_keeps_pending(notifier, monkeypatch):
    monkeypatch.setattr(settings, "approval_channel_id", 0)
    club, routed = await d_clubs.submit_registration(1000, 10, notifier, verified=True, name="Robotics Club")
    assert not routed
    assert clubs_db.get(club["id"])["status"] == "pending"


@pytest.mark.asyncio
async def test_approve_provisions_and_activates(guild, admin, notifier):
    president = guild.add_member(10)
    club = _register()

    club = await d_clubs.approve_club(guild, admin, club["id"], notifier)

    assert club["status"] == "active"
    assert club["role_id"] and club["moderator_role_id"] and club["channel_id"] and club["voice_channel_id"]
    assert members_db.active_presidents(club["id"]) == ["10"]
    president.add_roles.assert_awaited_once()
    assert len(president.add_roles.await_args.args) == 2
    listing = [s for s in notifier.sent if s["channel_id"] == str(CLUBS_CH)]
    assert listing and club["listing_message_id"] == str(listing[0]["message_id"])
    assert any(s["channel_id"] == club["channel_id"] for s in notifier.sent)
    assert notifier.dms_to(10)
    assert audit.latest(club["id"], "club_approved")["performed_by"] == "2"


@pytest.mark.asyncio
async def test_second_approval_is_a_no_op(guild, admin, notifier):
    guild.add_member(10)
    club = _register()
    await d_clubs.approve_club(guild, admin, club["id"], notifier)

    with pytest.raises(AlreadyResolved):
        await d_clubs.approve_club(guild, Actor(3, is_admin=True), club["id"], notifier)
    assert len(members_db.list_active(club["id"])) == 1
    assert len(guild.roles) == 2


@pytest.mark.asyncio
async def test_provisioning_failure_leaves_club_pending(guild, admin, notifier):
    guild.fail_on = "text"
    club = _register()

    with pytest.raises(ProvisioningError) as exc:
        await d_clubs.approve_club(guild, admin, club["id"], notifier)

    assert "Missing Permissions" in exc.value.message
    assert clubs_db.get(club["id"])["status"] == "pending"
    assert members_db.list_active(club["id"]) == []
    assert audit.latest(club["id"], "club_approved") is None


@pytest.mark.asyncio
async def test_reviewer_needs_manage_server(guild, notifier):
    club = _register()
    with pytest.raises(Forbidden):
        await d_clubs.approve_club(guild, Actor(77), club["id"], notifier)
    manager = Actor(78, can_manage_guild=True)
    guild.add_member(10)
    assert (await d_clubs.approve_club(guild, manager, club["id"], notifier))["status"] == "active"


@pytest.mark.asyncio
async def test_reject_then_approve_keeps_rejection(guild, admin, notifier):
    club = _register()
    rejected = await d_clubs.reject_club(guild.id, admin, club["id"], notifier, reason="Doublon")
    assert rejected["status"] == "rejected"
    assert "Doublon" in notifier.dms_to(10)[0]["content"]

    with pytest.raises(AlreadyResolved):
        await d_clubs.approve_club(guild, admin, club["id"], notifier)
    with pytest.raises(AlreadyResolved):
        await d_clubs.reject_club(guild.id, admin, club["id"], notifier)
    assert clubs_db.get(club["id"])["status"] == "rejected"


@pytest.mark.asyncio
async def test_dissolve_requires_admin_and_active(make_club, admin):
    club = await make_club()
    with pytest.raises(Forbidden):
        d_clubs.dissolve_club(1000, Actor(10), club["id"])
    assert d_clubs.dissolve_club(1000, admin, club["id"], "inactif")["status"] == "dissolved"
    with pytest.raises(ConflictError):
        d_clubs.dissolve_club(1000, admin, club["id"])


@pytest.mark.asyncio
async def test_queries(make_club, enroll):
    club = await make_club()
    _register(uid=20, name="Chess Club")
    enroll(club, 30)

    assert [c["name"] for c in d_clubs.browse(1000)] == ["Robotics Club"]
    assert [c["name"] for c in d_clubs.pending(1000)] == ["Chess Club"]
    assert [c["name"] for c in d_clubs.my_clubs(1000, 30)] == ["Robotics Club"]
    found, count = d_clubs.info(1000, "robotics-club")
    assert found["id"] == club["id"] and count == 2
    assert d_clubs.find_club(1000, "ROBOTICS CLUB")["id"] == club["id"]


@pytest.mark.asyncio
async def test_refresh_listing_edits_public_message(make_club, notifier):
    club = await make_club()
    assert await d_clubs.refresh_listing(club, notifier)
    assert notifier.edits[-1]["message_id"] == club["listing_message_id"]


@pytest.mark.asyncio
async def test_refresh_listings_covers_active_clubs(make_club, notifier):
    a = await make_club()
    b = await make_club(name="Chess Club", president_id=20)
    _register(uid=30, name="Poetry Club")
    notifier.edits.clear()

    assert await d_clubs.refresh_listings(1000, notifier) == 2
    assert {e["message_id"] for e in notifier.edits} == {a["listing_message_id"], b["listing_message_id"]}
