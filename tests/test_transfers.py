import pytest

from clubbot.domain import audit, transfers
from clubbot.domain.errors import (AlreadyResolved, CollaboratorError, ConflictError, Forbidden, ValidationError)
from clubbot.domain.permissions import Actor
from clubbot.persistence import clubs as clubs_db, members as members_db, transfers as transfers_db

from conftest import OWNER_ID

SERVER_MOD = Actor(40, is_server_moderator=True)


def _roles(club_id):
    return {m["user_id"]: m["role"] for m in members_db.list_active(club_id)}


@pytest.mark.asyncio
async def test_president_transfers_directly(make_club, guild, notifier, enroll):
    club = await make_club()
    heir = enroll(club, 20)

    club, mode = transfers.prepare_transfer(Actor(10), club["id"], 20, True)
    assert mode == transfers.DIRECT
    club = await transfers.execute_transfer(guild, Actor(10), club["id"], 20, candidate_verified=True,
                                            notifier=notifier)

    assert club["president_user_id"] == "20"
    assert _roles(club["id"]) == {"10": "member", "20": "president"}
    assert members_db.active_presidents(club["id"]) == ["20"]
    heir.add_roles.assert_awaited_once()
    assert notifier.dms_to(20) and notifier.dms_to(10)
    entry = audit.latest(club["id"], "president_transferred")
    assert entry["details"]["from"] == "10" and entry["details"]["to"] == "20"


@pytest.mark.asyncio
async def test_owner_transfers_directly(make_club, guild, notifier, enroll, owner):
    club = await make_club()
    enroll(club, 20)
    _, mode = transfers.prepare_transfer(owner, club["id"], 20, True)
    assert mode == transfers.DIRECT


@pytest.mark.asyncio
async def test_server_moderator_needs_owner_approval(make_club, guild, notifier, enroll):
    club = await make_club()
    enroll(club, 20)

    _, mode = transfers.prepare_transfer(SERVER_MOD, club["id"], 20, True)
    assert mode == transfers.OWNER_APPROVAL
    with pytest.raises(Forbidden):
        await transfers.execute_transfer(guild, SERVER_MOD, club["id"], 20, candidate_verified=True,
                                         notifier=notifier)

    req = await transfers.request_transfer(guild, SERVER_MOD, club["id"], 20, candidate_verified=True,
                                           reason="Président absent", notifier=notifier)

    assert req["status"] == "pending" and req["initiator_role"] == "moderator"
    assert clubs_db.get(club["id"])["president_user_id"] == "10"
    assert _roles(club["id"]) == {"10": "president", "20": "member"}
    assert notifier.dms_to(OWNER_ID)[-1]["view"] is not None

    with pytest.raises(ConflictError):
        await transfers.request_transfer(guild, Actor(2, is_admin=True), club["id"], 20, candidate_verified=True,
                                         notifier=notifier)


@pytest.mark.asyncio
async def test_owner_approves_request(make_club, guild, notifier, enroll, owner):
    club = await make_club()
    enroll(club, 20)
    req = await transfers.request_transfer(guild, SERVER_MOD, club["id"], 20, candidate_verified=True,
                                           notifier=notifier)

    with pytest.raises(Forbidden):
        await transfers.resolve_transfer_request(guild, SERVER_MOD, req["id"], True, notifier,
                                                 candidate_verified=True)

    done = await transfers.resolve_transfer_request(guild, owner, req["id"], True, notifier, candidate_verified=True)

    assert done["status"] == "approved" and done["resolved_by"] == str(OWNER_ID)
    assert clubs_db.get(club["id"])["president_user_id"] == "20"
    assert "approuvé" in notifier.dms_to(40)[-1]["content"]
    details = audit.latest(club["id"], "president_transferred")["details"]
    assert details["approver"] == str(OWNER_ID) and details["request_id"] == req["id"]

    with pytest.raises(AlreadyResolved):
        await transfers.resolve_transfer_request(guild, owner, req["id"], False, notifier, candidate_verified=True)


@pytest.mark.asyncio
async def test_owner_denies_request(make_club, guild, notifier, enroll, owner):
    club = await make_club()
    enroll(club, 20)
    req = await transfers.request_transfer(guild, SERVER_MOD, club["id"], 20, candidate_verified=True,
                                           notifier=notifier)

    done = await transfers.resolve_transfer_request(guild, owner, req["id"], False, notifier, candidate_verified=True)

    assert done["status"] == "denied"
    assert clubs_db.get(club["id"])["president_user_id"] == "10"
    assert _roles(club["id"]) == {"10": "president", "20": "member"}
    assert audit.latest(club["id"], "president_transfer_denied") is not None


@pytest.mark.asyncio
async def test_unreachable_owner_cancels_request(make_club, guild, notifier, enroll):
    club = await make_club()
    enroll(club, 20)
    notifier.dm_ok = False

    with pytest.raises(CollaboratorError):
        await transfers.request_transfer(guild, SERVER_MOD, club["id"], 20, candidate_verified=True,
                                         notifier=notifier)

    assert transfers_db.pending_for_club(club["id"]) is None
    assert audit.latest(club["id"], "president_transfer_denied")["details"]["reason"] == "owner_unreachable"


@pytest.mark.asyncio
async def test_stale_request_stays_pending(make_club, guild, notifier, enroll, owner):
    club = await make_club()
    enroll(club, 20)
    req = await transfers.request_transfer(guild, SERVER_MOD, club["id"], 20, candidate_verified=True,
                                           notifier=notifier)
    members_db.mark_removed(club["id"], "20", "10", "parti")

    with pytest.raises(ValidationError):
        await transfers.resolve_transfer_request(guild, owner, req["id"], True, notifier, candidate_verified=True)
    assert transfers_db.get(req["id"])["status"] == "pending"
    assert clubs_db.get(club["id"])["president_user_id"] == "10"


@pytest.mark.asyncio
async def test_preconditions(make_club, guild, notifier, enroll):
    club = await make_club()
    other = await make_club(name="Chess Club", president_id=30)
    enroll(club, 20)
    enroll(club, 30)

    with pytest.raises(ValidationError):
        transfers.prepare_transfer(Actor(10), club["id"], 10, True)
    with pytest.raises(ValidationError):
        transfers.prepare_transfer(Actor(10), club["id"], 20, False)
    with pytest.raises(ValidationError):
        transfers.prepare_transfer(Actor(10), club["id"], 99, True)
    with pytest.raises(ConflictError):
        transfers.prepare_transfer(Actor(10), club["id"], 30, True)
    with pytest.raises(Forbidden):
        transfers.transfer_mode(Actor(20), club)
    assert other["president_user_id"] == "30"
