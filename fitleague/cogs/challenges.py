"""
Challenge Cog - Review and publish challenge results

Challenge entries are reviewed after submissions close. Awards are capped
per entry; publishing requires every entry to be reviewed.
"""

from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from fitleague.database.models import SubmissionStatus
from fitleague.constants import UIConstants
from fitleague.utils.error_embeds import ErrorEmbeds
from fitleague.utils.errors import LeagueEngineError
from fitleague.utils.logger import setup_logger

logger = setup_logger(__name__)


class ChallengeCog(commands.Cog):
    """Commands for challenge awards"""

    def __init__(self, bot):
        self.bot = bot
        self.challenge_ops = bot.challenge_ops
        self.submission_ops = bot.submission_ops

    async def _manager(self, interaction: discord.Interaction, league_id: int):
        member = await self.submission_ops.get_member_by_discord_id(interaction.user.id, league_id)
        if member is None:
            await interaction.followup.send(embed=ErrorEmbeds.not_a_member(), ephemeral=True)
        return member

    @app_commands.command(name="challenge-award", description="Approve or reject a challenge entry")
    @app_commands.describe(
        league_id="League the challenge belongs to",
        submission_id="Challenge entry number",
        decision="approved or rejected",
        points="Points to award; defaults to the entry's cap",
    )
    @app_commands.choices(decision=[
        app_commands.Choice(name="Approve", value=SubmissionStatus.APPROVED.value),
        app_commands.Choice(name="Reject", value=SubmissionStatus.REJECTED.value),
    ])
    async def challenge_award(
        self,
        interaction: discord.Interaction,
        league_id: int,
        submission_id: int,
        decision: app_commands.Choice[str],
        points: Optional[float] = None,
    ):
        await interaction.response.defer(ephemeral=True)
        reviewer = await self._manager(interaction, league_id)
        if reviewer is None:
            return

        try:
            award = await self.challenge_ops.review_challenge_submission(
                submission_id=submission_id,
                reviewer_id=reviewer.id,
                decision=decision.value,
                awarded_points=points,
            )
        except LeagueEngineError as e:
            await interaction.followup.send(embed=ErrorEmbeds.engine_error(e), ephemeral=True)
            return

        embed = discord.Embed(title="Challenge Entry Reviewed", color=UIConstants.COLOR_SUCCESS)
        embed.add_field(name="Entry", value=f"#{submission_id}", inline=True)
        embed.add_field(name="Status", value=award.submission.status.value.title(), inline=True)
        if award.submission.awarded_points is not None:
            embed.add_field(name="Awarded", value=f"{award.submission.awarded_points:g}", inline=True)
            embed.add_field(name="Shown on leaderboard", value=f"{award.visible_points:g}", inline=True)
        await interaction.followup.send(embed=embed, ephemeral=True)

    @app_commands.command(name="challenge-publish", description="Publish challenge results")
    @app_commands.describe(league_id="League the challenge belongs to", challenge_id="Challenge to publish")
    async def challenge_publish(self, interaction: discord.Interaction, league_id: int, challenge_id: int):
        await interaction.response.defer()
        actor = await self._manager(interaction, league_id)
        if actor is None:
            return

        try:
            challenge = await self.challenge_ops.publish_challenge(challenge_id, actor.id)
        except LeagueEngineError as e:
            await interaction.followup.send(embed=ErrorEmbeds.engine_error(e), ephemeral=True)
            return

        logger.info(f"Challenge {challenge_id} published by {interaction.user}")
        await interaction.followup.send(embed=discord.Embed(
            title="🏁 Challenge Results Published",
            description=f"Results for **{challenge.name}** now count toward the leaderboard.",
            color=UIConstants.COLOR_GOLD,
        ))


async def setup(bot):
    await bot.add_cog(ChallengeCog(bot))
