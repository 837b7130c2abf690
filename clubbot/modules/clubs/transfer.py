# clubbot/modules/clubs/transfer.py
from __future__ import annotations
import logging
from typing import Optional
import discord
from discord import app_commands, Interaction

from clubbot.core import builders, provisioner
from clubbot.core.actions import Action, ActionKind
from clubbot.domain import transfers as d_transfers
from clubbot.domain.verification import is_verified
from clubbot.persistence import transfers as transfers_db
from clubbot.modules.common.confirm import ConfirmView
from clubbot.modules.common.replies import guarded, reply
from clubbot.modules.common import checks

log = logging.getLogger(__name__)

# ─────────────────────────────
# Boutons du propriétaire (DM)
# ─────────────────────────────
async def _resolve(inter: Interaction, action: Action, approve: bool):
    req = transfers_db.get(action.entity_id)
    guild, actor = await checks.guild_context(inter, req["guild_id"] if req else inter.guild_id)
    candidate_verified = False
    if req is not None:
        candidate = await provisioner.resolve_member(guild, req["candidate_id"])
        candidate_verified = candidate is not None and is_verified(candidate)
    req = await d_transfers.resolve_transfer_request(guild, actor, action.entity_id, approve,
                                                     checks.notifier(inter), candidate_verified=candidate_verified)
    verdict = "approuvé ✅" if approve else "refusé ❌"
    if inter.message is not None:
        try:
            await inter.message.edit(embed=builders.resolved_embed(
                f"Transfert {verdict}", f"Nouveau président proposé : <@{req['candidate_id']}>", approve), view=None)
        except discord.HTTPException as e:
            log.warning("Transfer request message edit failed: %s", e)
    await reply(inter, f"Transfert {verdict}.")

async def on_transfer_approve(inter: Interaction, action: Action):
    async with guarded(inter, "transfer approval"):
        await _resolve(inter, action, True)

async def on_transfer_deny(inter: Interaction, action: Action):
    async with guarded(inter, "transfer denial"):
        await _resolve(inter, action, False)

ACTION_HANDLERS = {
    ActionKind.TRANSFER_APPROVE: on_transfer_approve,
    ActionKind.TRANSFER_DENY: on_transfer_deny,
}

# ─────────────────────────────
# Commande /clubtransfer
# ─────────────────────────────
def register(tree: app_commands.CommandTree, guild_obj: Optional[discord.Object], client: discord.Client | None = None):
    @tree.command(name="clubtransfer", description="Transférer la présidence d'un club")
    @app_commands.describe(club="Nom ou slug du club", new_president="Nouveau président (membre actif)",
                           reason="Motif (transmis au propriétaire si validation requise)")
    @app_commands.guilds(guild_obj) if guild_obj else (lambda f: f)
    async def clubtransfer(inter: Interaction, club: str, new_president: discord.Member, reason: str = ""):
        if not await checks.require_guild(inter):
            return
        async with guarded(inter, "presidency transfer"):
            actor = checks.actor(inter)
            c = checks.club_arg(inter, club)
            c, mode = d_transfers.prepare_transfer(actor, c["id"], new_president.id, is_verified(new_president))

            if mode == d_transfers.OWNER_APPROVAL:
                await d_transfers.request_transfer(inter.guild, actor, c["id"], new_president.id,
                                                   candidate_verified=is_verified(new_president),
                                                   reason=reason, notifier=checks.notifier(inter))
                await reply(inter, "📨 Demande transmise au propriétaire du serveur pour validation.")
                return

            async def _do(confirm_inter: Interaction):
                await d_transfers.execute_transfer(inter.guild, actor, c["id"], new_president.id,
                                                   candidate_verified=is_verified(new_president),
                                                   notifier=checks.notifier(confirm_inter))
                await reply(confirm_inter, f"👑 {new_president.mention} est le nouveau président de **{c['name']}**.")

            view = ConfirmView(inter.user.id, _do, what="presidency transfer")
            await inter.response.send_message(
                f"Transférer la présidence de **{c['name']}** à {new_president.mention} ? "
                "Tu perdras tes droits de président.", view=view, ephemeral=True)
            view.message = await inter.original_response()

    clubtransfer.autocomplete("club")(checks.club_autocomplete)
