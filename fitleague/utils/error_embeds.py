"""
Centralized error embeds for consistent error handling across the league bot.
"""

import discord

from fitleague.utils.errors import LeagueEngineError


class ErrorEmbeds:
    """Centralized error embed factory for consistent error handling."""

    @staticmethod
    def not_a_member() -> discord.Embed:
        """Create embed for when the user has no membership in the league."""
        return discord.Embed(
            title="Not a League Member",
            description="You haven't joined this league yet. Ask the host for an invite.",
            color=discord.Color.red()
        )

    @staticmethod
    def engine_error(error: LeagueEngineError) -> discord.Embed:
        """Create embed from a scoring engine error's user message."""
        return discord.Embed(
            title="Request Rejected",
            description=error.user_message,
            color=discord.Color.red()
        )

    @staticmethod
    def command_error(error: str) -> discord.Embed:
        """Create embed for general command errors."""
        return discord.Embed(
            title="Command Error",
            description=f"An error occurred: {error}\n\nPlease try again or contact a league host.",
            color=discord.Color.red()
        )

    @staticmethod
    def invalid_input(message: str) -> discord.Embed:
        """Create embed for invalid user input."""
        return discord.Embed(
            title="Invalid Input",
            description=message,
            color=discord.Color.red()
        )
