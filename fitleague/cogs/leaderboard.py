import discord
from discord import app_commands
from discord.ext import commands
from typing import Optional
import logging

from fitleague.config import Config
from fitleague.data_models.leaderboard import NormalizationMode
from fitleague.utils.embeds import individual_embed, leaderboard_embed, scoreboard_embed
from fitleague.utils.error_embeds import ErrorEmbeds
from fitleague.utils.errors import LeagueEngineError
from fitleague.database.models import MemberRole

logger = logging.getLogger(__name__)


class LeaderboardCog(commands.Cog):
    """Settled leaderboard and live scoreboard commands"""

    def __init__(self, bot):
        self.bot = bot
        self.leaderboard_service = bot.leaderboard_service
        self.submission_ops = bot.submission_ops

    @app_commands.command(name="leaderboard", description="View settled league standings")
    @app_commands.describe(
        league_id="League to view",
        normalized="Scale team points by team size (league must allow it)",
        individuals="Show top members instead of teams",
    )
    async def leaderboard(
        self,
        interaction: discord.Interaction,
        league_id: int,
        normalized: Optional[bool] = None,
        individuals: bool = False,
    ):
        """Display settled standings."""
        await interaction.response.defer()

        mode = None
        if normalized is not None:
            mode = NormalizationMode.NORMALIZED if normalized else NormalizationMode.RAW

        try:
            snapshot = await self.leaderboard_service.compute_leaderboard(league_id, normalization_mode=mode)
            embed = individual_embed(snapshot) if individuals else leaderboard_embed(snapshot)
            await interaction.followup.send(embed=embed)
        except LeagueEngineError as e:
            await interaction.followup.send(embed=ErrorEmbeds.engine_error(e), ephemeral=True)
        except Exception as e:
            logger.error(f"Error in leaderboard command: {e}", exc_info=True)
            await interaction.followup.send(embed=ErrorEmbeds.command_error("An error occurred while fetching leaderboard data. Please try again later."))

    @app_commands.command(name="scoreboard", description="View live scores for today and yesterday")
    @app_commands.describe(league_id="League to view")
    async def scoreboard(self, interaction: discord.Interaction, league_id: int):
        """Display the real-time window, pending entries included."""
        await interaction.response.defer()
        try:
            window = await self.leaderboard_service.get_pending_window(league_id)
            await interaction.followup.send(embed=scoreboard_embed(window))
        except LeagueEngineError as e:
            await interaction.followup.send(embed=ErrorEmbeds.engine_error(e), ephemeral=True)
        except Exception as e:
            logger.error(f"Error in scoreboard command: {e}", exc_info=True)
            await interaction.followup.send(embed=ErrorEmbeds.command_error("An error occurred while fetching scores. Please try again later."))

    @app_commands.command(name="refresh-leaderboard", description="Recompute a league leaderboard now")
    @app_commands.describe(league_id="League to refresh")
    async def refresh_leaderboard(self, interaction: discord.Interaction, league_id: int):
        """Host, governor or bot owner only."""
        await interaction.response.defer(ephemeral=True)
        member = await self.submission_ops.get_member_by_discord_id(interaction.user.id, league_id)
        is_owner = interaction.user.id == Config.OWNER_DISCORD_ID
        if not is_owner and (member is None or member.role not in (MemberRole.HOST, MemberRole.GOVERNOR)):
            await interaction.followup.send(
                embed=discord.Embed(
                    title="❌ Permission Denied",
                    description="Only league hosts and governors can refresh the leaderboard.",
                    color=discord.Color.red()
                ),
                ephemeral=True
            )
            return

        try:
            snapshot = await self.leaderboard_service.refresh_leaderboard_cache(league_id)
            await interaction.followup.send(embed=leaderboard_embed(snapshot), ephemeral=True)
        except LeagueEngineError as e:
            await interaction.followup.send(embed=ErrorEmbeds.engine_error(e), ephemeral=True)


async def setup(bot):
    await bot.add_cog(LeaderboardCog(bot))
