"""Discord REST API client adapter."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote

import httpx

from eclass_manager.domain.errors import MessageNotFoundError

logger = logging.getLogger(__name__)

DISCORD_API_URL = "https://discord.com/api/v10"


class DiscordClient(Protocol):
    """Interface for Discord interactions used by the e-class core."""

    async def send_message(
        self, channel_id: str, content: str, embed: dict | None = None
    ) -> str:
        """Send a message to a channel and return its id."""

    async def edit_message(
        self,
        channel_id: str,
        message_id: str,
        content: str,
        embed: dict | None = None,
    ) -> None:
        """Replace the content of a message."""

    async def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        """Add the bot's reaction to a message."""

    async def clear_reactions(self, channel_id: str, message_id: str) -> None:
        """Remove every reaction from a message."""

    async def send_direct(self, user_id: str, content: str) -> bool:
        """Send a private message, returning whether it was delivered."""

    async def bulk_send_direct(
        self, user_ids: set[str] | frozenset[str], content: str
    ) -> dict[str, bool]:
        """Send a private message to several users."""

    async def create_role(self, name: str, color: int, mentionable: bool) -> str:
        """Create a guild role and return its id."""

    async def delete_role(self, role_id: str, reason: str | None = None) -> None:
        """Delete a guild role."""

    async def role_exists(self, role_id: str) -> bool:
        """Return whether a guild role exists."""

    async def member_has_role(self, member_id: str, role_id: str) -> bool:
        """Return whether a guild member holds a role."""

    async def add_member_role(self, member_id: str, role_id: str) -> None:
        """Grant a role to a guild member."""

    async def remove_member_role(self, member_id: str, role_id: str) -> None:
        """Revoke a role from a guild member."""


@dataclass
class HttpxDiscordClient:
    """Discord client implemented with httpx."""

    bot_token: str
    guild_id: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, bot_token: str, guild_id: str) -> "HttpxDiscordClient":
        """Create a Discord client with a managed httpx session."""
        return cls(
            bot_token=bot_token,
            guild_id=guild_id,
            http_client=httpx.AsyncClient(
                base_url=DISCORD_API_URL,
                headers={"Authorization": f"Bot {bot_token}"},
            ),
        )

    async def send_message(
        self, channel_id: str, content: str, embed: dict | None = None
    ) -> str:
        """Send a message using Discord's create message API."""
        payload: dict[str, object] = {"content": content}
        if embed is not None:
            payload["embeds"] = [embed]
        response = await self.http_client.post(
            f"/channels/{channel_id}/messages", json=payload, timeout=10
        )
        response.raise_for_status()
        return str(response.json()["id"])

    async def edit_message(
        self,
        channel_id: str,
        message_id: str,
        content: str,
        embed: dict | None = None,
    ) -> None:
        """Replace a message's content and embeds."""
        payload: dict[str, object] = {
            "content": content,
            "embeds": [embed] if embed is not None else [],
        }
        response = await self.http_client.patch(
            f"/channels/{channel_id}/messages/{message_id}", json=payload, timeout=10
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            raise MessageNotFoundError(channel_id, message_id)
        response.raise_for_status()

    async def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        """React to a message as the bot."""
        path = (
            f"/channels/{channel_id}/messages/{message_id}"
            f"/reactions/{quote(emoji)}/@me"
        )
        response = await self.http_client.put(path, timeout=10)
        if response.status_code == httpx.codes.NOT_FOUND:
            raise MessageNotFoundError(channel_id, message_id)
        response.raise_for_status()

    async def clear_reactions(self, channel_id: str, message_id: str) -> None:
        """Remove all reactions from a message."""
        response = await self.http_client.delete(
            f"/channels/{channel_id}/messages/{message_id}/reactions", timeout=10
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            raise MessageNotFoundError(channel_id, message_id)
        response.raise_for_status()

    async def send_direct(self, user_id: str, content: str) -> bool:
        """Open a DM channel and send a message, never raising on failure."""
        try:
            response = await self.http_client.post(
                "/users/@me/channels", json={"recipient_id": user_id}, timeout=10
            )
            response.raise_for_status()
            dm_channel_id = str(response.json()["id"])
            await self.send_message(dm_channel_id, content)
        except httpx.HTTPError as exc:
            logger.debug("Could not send a private message to %s: %s", user_id, exc)
            return False
        return True

    async def bulk_send_direct(
        self, user_ids: set[str] | frozenset[str], content: str
    ) -> dict[str, bool]:
        """Send a private message to each user concurrently."""
        recipients = sorted(user_ids)
        results = await asyncio.gather(
            *(self.send_direct(user_id, content) for user_id in recipients)
        )
        return dict(zip(recipients, results, strict=True))

    async def create_role(self, name: str, color: int, mentionable: bool) -> str:
        """Create a guild role."""
        response = await self.http_client.post(
            f"/guilds/{self.guild_id}/roles",
            json={"name": name, "color": color, "mentionable": mentionable},
            timeout=10,
        )
        response.raise_for_status()
        return str(response.json()["id"])

    async def delete_role(self, role_id: str, reason: str | None = None) -> None:
        """Delete a guild role, ignoring roles that are already gone."""
        headers = {"X-Audit-Log-Reason": reason} if reason else None
        response = await self.http_client.delete(
            f"/guilds/{self.guild_id}/roles/{role_id}", headers=headers, timeout=10
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            return
        response.raise_for_status()

    async def role_exists(self, role_id: str) -> bool:
        """Look a role up in the guild's role list."""
        response = await self.http_client.get(
            f"/guilds/{self.guild_id}/roles", timeout=10
        )
        response.raise_for_status()
        return any(str(role["id"]) == role_id for role in response.json())

    async def member_has_role(self, member_id: str, role_id: str) -> bool:
        """Fetch a guild member and check its roles."""
        response = await self.http_client.get(
            f"/guilds/{self.guild_id}/members/{member_id}", timeout=10
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            return False
        response.raise_for_status()
        return role_id in {str(role) for role in response.json().get("roles", [])}

    async def add_member_role(self, member_id: str, role_id: str) -> None:
        """Grant a role to a guild member."""
        response = await self.http_client.put(
            f"/guilds/{self.guild_id}/members/{member_id}/roles/{role_id}", timeout=10
        )
        response.raise_for_status()

    async def remove_member_role(self, member_id: str, role_id: str) -> None:
        """Revoke a role from a guild member."""
        response = await self.http_client.delete(
            f"/guilds/{self.guild_id}/members/{member_id}/roles/{role_id}", timeout=10
        )
        response.raise_for_status()

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()
