from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from clubbot.core import client as client_mod
from clubbot.core import builders
from clubbot.core.actions import ActionKind, decode, encode
from clubbot.domain.errors import CapacityReached
from clubbot.modules.common.confirm import ConfirmView
from clubbot.modules.common.replies import GENERIC_ERROR, guarded


def _interaction(user_id=20, custom_id=None, kind=discord.InteractionType.component):
    inter = MagicMock()
    inter.user.id = user_id
    inter.type = kind
    inter.data = {"custom_id": custom_id} if custom_id else {}
    inter.response.is_done = MagicMock(return_value=False)
    inter.response.send_message = AsyncMock()
    inter.response.edit_message = AsyncMock()
    inter.followup.send = AsyncMock()
    return inter


# ───────── guarded ─────────

@pytest.mark.asyncio
async def test_domain_error_becomes_ephemeral_reply():
    inter = _interaction()
    async with guarded(inter, "join"):
        raise CapacityReached("⚠️ **Robotics Club** est complet.")
    inter.response.send_message.assert_awaited_once_with(content="⚠️ **Robotics Club** est complet.", ephemeral=True)


@pytest.mark.asyncio
async def test_unexpected_error_is_logged_with_generic_reply(caplog):
    inter = _interaction()
    inter.response.is_done.return_value = True
    async with guarded(inter, "join"):
        raise RuntimeError("boom")
    inter.followup.send.assert_awaited_once_with(content=GENERIC_ERROR, ephemeral=True)
    assert any(r.exc_info for r in caplog.records)


@pytest.mark.asyncio
async def test_reply_failure_does_not_escape():
    inter = _interaction()
    inter.response.send_message.side_effect = discord.HTTPException(MagicMock(status=500, reason="x"), "down")
    async with guarded(inter, "join"):
        raise CapacityReached("complet")


# ───────── Routage des boutons ─────────

@pytest.mark.asyncio
async def test_dispatch_routes_known_action(monkeypatch):
    handler = AsyncMock()
    monkeypatch.setitem(client_mod.ACTION_HANDLERS, ActionKind.EVENT_JOIN, handler)
    inter = _interaction(custom_id=encode(ActionKind.EVENT_JOIN, 42))

    assert await client_mod.dispatch_component(inter)
    action = handler.await_args.args[1]
    assert action.kind is ActionKind.EVENT_JOIN and action.entity_id == 42


@pytest.mark.asyncio
@pytest.mark.parametrize("custom_id,kind", [
    ("shop|buy|1", discord.InteractionType.component),
    ("cb|club.join|1", discord.InteractionType.application_command),
])
async def test_dispatch_ignores_foreign_interactions(custom_id, kind):
    inter = _interaction(custom_id=custom_id, kind=kind)
    assert not await client_mod.dispatch_component(inter)


@pytest.mark.asyncio
async def test_dispatch_without_handler(monkeypatch):
    monkeypatch.delitem(client_mod.ACTION_HANDLERS, ActionKind.CLUB_JOIN, raising=False)
    inter = _interaction(custom_id=encode(ActionKind.CLUB_JOIN, 1))
    assert not await client_mod.dispatch_component(inter)


# ───────── Confirmation ─────────

@pytest.mark.asyncio
async def test_confirm_runs_action_once():
    on_confirm = AsyncMock()
    view = ConfirmView(20, on_confirm, what="transfer", timeout=5)
    inter = _interaction(user_id=20)

    await view.btn_confirm.callback(inter)

    on_confirm.assert_awaited_once_with(inter)
    assert view.resolved and view.is_finished()


@pytest.mark.asyncio
async def test_confirm_refuses_other_users():
    on_confirm = AsyncMock()
    view = ConfirmView(20, on_confirm, timeout=5)
    intruder = _interaction(user_id=99)

    await view.btn_confirm.callback(intruder)

    on_confirm.assert_not_awaited()
    intruder.response.send_message.assert_awaited_once()
    assert not view.resolved


@pytest.mark.asyncio
async def test_cancel_and_timeout_change_nothing():
    on_confirm = AsyncMock()
    view = ConfirmView(20, on_confirm, timeout=5)
    await view.btn_cancel.callback(_interaction(user_id=20))
    on_confirm.assert_not_awaited()

    expired = ConfirmView(20, on_confirm, timeout=5)
    expired.message = MagicMock()
    expired.message.edit = AsyncMock()
    await expired.on_timeout()

    on_confirm.assert_not_awaited()
    assert all(item.disabled for item in expired.children)
    assert "expirée" in expired.message.edit.await_args.kwargs["content"]


# ───────── Composants ─────────

@pytest.mark.asyncio
async def test_button_rows_are_not_kept_in_view_store():
    view = builders.event_listing_view(7, full=True)

    assert view.is_finished()
    ids = [decode(item.custom_id) for item in view.children]
    assert [a.kind for a in ids] == [ActionKind.EVENT_JOIN, ActionKind.EVENT_PREVIEW]
    assert view.children[0].disabled
