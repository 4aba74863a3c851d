import sys
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import List, Optional

import pytest
import pytest_asyncio

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from fitleague.database.database import Database
from fitleague.database.models import League, LeagueStatus, Member, MemberRole, Team
from fitleague.services.event_bus import LeagueEventBus

LEAGUE_START = date(2024, 3, 1)
LEAGUE_END = date(2024, 3, 31)
NOW = datetime(2024, 3, 10, 12, 0)


class FakeClock:
    """Naive UTC clock tests can move forward"""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@dataclass
class LeagueSetup:
    league_id: int
    host_id: int
    governor_id: int
    team_ids: List[int] = field(default_factory=list)
    rosters: List[List[int]] = field(default_factory=list)

    def captain(self, team_index: int) -> int:
        return self.rosters[team_index][0]

    def player(self, team_index: int, position: int = 1) -> int:
        return self.rosters[team_index][position]


async def create_league(
    db: Database,
    team_sizes=(3, 2),
    normalize: bool = False,
    require_proof: bool = False,
    status: LeagueStatus = LeagueStatus.ACTIVE,
    timezone: str = 'UTC',
    birth_date: Optional[date] = None,
    rest_days_allowed: int = 1,
) -> LeagueSetup:
    """League with a host, a governor and teams whose first member is captain"""
    async with db.transaction() as session:
        league = League(
            name="Spring League",
            start_date=LEAGUE_START,
            end_date=LEAGUE_END,
            status=status,
            timezone=timezone,
            normalize_points_by_team_size=normalize,
            require_proof=require_proof,
            rest_days_allowed=rest_days_allowed,
        )
        session.add(league)
        await session.flush()

        host = Member(league_id=league.id, display_name="Host", discord_id=1, role=MemberRole.HOST)
        governor = Member(league_id=league.id, display_name="Governor", discord_id=2, role=MemberRole.GOVERNOR)
        session.add_all([host, governor])

        setup = LeagueSetup(league_id=league.id, host_id=0, governor_id=0)
        discord_id = 100
        for index, size in enumerate(team_sizes):
            team = Team(league_id=league.id, name=f"Team {chr(ord('A') + index)}")
            session.add(team)
            await session.flush()
            roster = []
            for position in range(size):
                discord_id += 1
                member = Member(
                    league_id=league.id,
                    team_id=team.id,
                    display_name=f"{team.name} #{position + 1}",
                    discord_id=discord_id,
                    role=MemberRole.CAPTAIN if position == 0 else MemberRole.PLAYER,
                    birth_date=birth_date,
                )
                session.add(member)
                await session.flush()
                roster.append(member.id)
            setup.team_ids.append(team.id)
            setup.rosters.append(roster)

        await session.flush()
        setup.host_id = host.id
        setup.governor_id = governor.id
        return setup


@pytest_asyncio.fixture
async def db(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def event_bus():
    return LeagueEventBus()


@pytest.fixture
def published(event_bus):
    """Every event delivered on the bus"""
    events = []
    event_bus.subscribe_all(events.append)
    return events


@pytest_asyncio.fixture
async def league(db):
    return await create_league(db)
