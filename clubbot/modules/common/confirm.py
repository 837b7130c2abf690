# clubbot/modules/common/confirm.py
from __future__ import annotations
from typing import Awaitable, Callable
import discord
from discord import Interaction

from clubbot.core.config import settings
from clubbot.modules.common.replies import guarded

class ConfirmView(discord.ui.View):
    """Confirmer / Annuler, limité dans le temps. À l'expiration rien n'est modifié."""

    def __init__(self, owner_id: int, on_confirm: Callable[[Interaction], Awaitable[None]], *,
                 what: str = "confirmation", timeout: float | None = None):
        super().__init__(timeout=timeout or settings.confirm_timeout_s)
        self.owner_id = owner_id
        self.on_confirm = on_confirm
        self.what = what
        self.message: discord.Message | None = None
        self.resolved = False

    async def _guard(self, inter: Interaction) -> bool:
        if inter.user.id != self.owner_id:
            await inter.response.send_message("🛑 Cette confirmation n'est pas à toi.", ephemeral=True)
            return False
        return True

    async def on_timeout(self) -> None:
        if self.resolved or not self.message:
            return
        for item in self.children:
            item.disabled = True
        try:
            await self.message.edit(content="⏳ Confirmation expirée : rien n'a été modifié.", view=self)
        except discord.HTTPException:
            pass

    @discord.ui.button(label="Confirmer", style=discord.ButtonStyle.success, emoji="✅")
    async def btn_confirm(self, inter: Interaction, _: discord.ui.Button):
        if not await self._guard(inter):
            return
        self.resolved = True
        self.stop()
        await inter.response.edit_message(content="⏳ En cours…", view=None)
        async with guarded(inter, self.what):
            await self.on_confirm(inter)

    @discord.ui.button(label="Annuler", style=discord.ButtonStyle.secondary, emoji="✖️")
    async def btn_cancel(self, inter: Interaction, _: discord.ui.Button):
        if not await self._guard(inter):
            return
        self.resolved = True
        self.stop()
        await inter.response.edit_message(content="❎ Annulé.", view=None)
