"""
Embed builders for leaderboard and submission responses.
"""

from typing import Optional

import discord

from fitleague.constants import UIConstants
from fitleague.data_models.leaderboard import LeaderboardSnapshot, PendingWindow
from fitleague.data_models.submission import RRResult, SubmitResult


def _fmt_rr(value: Optional[float]) -> str:
    return f"{value:.2f}" if value is not None else "n/a"


def leaderboard_embed(snapshot: LeaderboardSnapshot, limit: int = UIConstants.LEADERBOARD_DISPLAY_LIMIT) -> discord.Embed:
    """Settled team standings"""
    embed = discord.Embed(
        title="🏆 Team Leaderboard",
        description=f"Settled results for {snapshot.date_range}",
        color=UIConstants.COLOR_GOLD,
    )

    if not snapshot.teams:
        embed.add_field(name="No Teams", value="No teams have been created yet.", inline=False)
    else:
        lines = []
        for row in snapshot.teams[:limit]:
            bonus = f" (+{row.challenge_bonus:g} challenge)" if row.challenge_bonus else ""
            lines.append(
                f"**{row.rank}.** {row.team_name}: {row.total_points:g} pts{bonus} | avg RR {_fmt_rr(row.avg_rr)}"
            )
        embed.add_field(name="Standings", value="\n".join(lines), inline=False)

    footer = [f"Mode: {snapshot.mode.value}"]
    if not snapshot.is_final:
        footer.append("Not final: recent days still settling")
    if snapshot.is_stale:
        footer.append(f"Stale result from {snapshot.computed_at:%Y-%m-%d %H:%M} UTC")
    embed.set_footer(text=" • ".join(footer))
    return embed


def individual_embed(snapshot: LeaderboardSnapshot, limit: int = UIConstants.LEADERBOARD_DISPLAY_LIMIT) -> discord.Embed:
    """Top individual performers"""
    embed = discord.Embed(
        title="🏅 Individual Leaderboard",
        description=f"Settled results for {snapshot.date_range}",
        color=UIConstants.COLOR_INFO,
    )
    if not snapshot.individuals:
        embed.add_field(name="No Entries", value="No approved entries yet.", inline=False)
        return embed

    lines = [
        f"**{row.rank}.** {row.display_name}: {row.total_points:g} pts | avg RR {_fmt_rr(row.avg_rr)}"
        for row in snapshot.individuals[:limit]
    ]
    embed.add_field(name="Top Members", value="\n".join(lines), inline=False)
    return embed


def scoreboard_embed(window: PendingWindow) -> discord.Embed:
    """Real-time scores for the days that are still settling"""
    days = ", ".join(day.isoformat() for day in window.dates)
    embed = discord.Embed(
        title="⏱️ Live Scoreboard",
        description=f"Includes pending entries for {days}",
        color=UIConstants.COLOR_WARNING,
    )
    if not window.teams:
        embed.add_field(name="No Activity", value="No entries yet.", inline=False)
        return embed

    lines = []
    for row in window.teams[:UIConstants.LEADERBOARD_DISPLAY_LIMIT]:
        per_day = " / ".join(str(row.points_by_date.get(day, 0)) for day in window.dates)
        lines.append(f"**{row.rank}.** {row.team_name}: {row.total_points} pts ({per_day})")
    embed.add_field(name="Teams", value="\n".join(lines), inline=False)
    return embed


def submission_embed(result: SubmitResult, rr: Optional[RRResult] = None) -> discord.Embed:
    submission = result.submission
    title = "✅ Entry Updated" if result.is_overwrite else "✅ Entry Submitted"
    embed = discord.Embed(title=title, color=UIConstants.COLOR_SUCCESS)
    embed.add_field(name="Date", value=submission.date.isoformat(), inline=True)
    embed.add_field(name="Type", value=submission.workout_type or submission.kind.value, inline=True)
    embed.add_field(name="RR", value=_fmt_rr(submission.rr_value), inline=True)
    embed.add_field(name="Status", value=submission.status.value.title(), inline=True)
    if rr is not None and rr.reason:
        embed.add_field(name="Note", value=rr.reason, inline=False)
    return embed


def review_embed(submission_id: int, status: str, changed: bool) -> discord.Embed:
    color = UIConstants.COLOR_SUCCESS if status == "approved" else UIConstants.COLOR_ERROR
    description = f"Entry #{submission_id} is now **{status}**."
    if not changed:
        description = f"Entry #{submission_id} was already **{status}**."
    return discord.Embed(title="Review Recorded", description=description, color=color)
