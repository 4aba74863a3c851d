from datetime import date

import pytest
import pytest_asyncio

from conftest import create_league
from fitleague.database.models import (
    Challenge, ChallengeStatus, ChallengeType, SubmissionStatus, SubTeam, SubTeamMember
)
from fitleague.operations.challenge_operations import ChallengeOperations, load_award_records
from fitleague.services.event_bus import ChallengeAwardChanged, ChallengePublished
from fitleague.utils.errors import AuthorizationError, CapExceededError, StateError, ValidationError


async def create_challenge(db, league_id, challenge_type=ChallengeType.TEAM, total_points=300, end_date=date(2024, 3, 12)):
    async with db.transaction() as session:
        challenge = Challenge(
            league_id=league_id,
            name="Plank Week",
            challenge_type=challenge_type,
            total_points=total_points,
            status=ChallengeStatus.ACTIVE,
            start_date=date(2024, 3, 1),
            end_date=end_date,
        )
        session.add(challenge)
        await session.flush()
        return challenge.id


@pytest_asyncio.fixture
async def teams(db):
    return await create_league(db, team_sizes=(3, 5))


@pytest.fixture
def ops(db, event_bus, clock):
    return ChallengeOperations(db, event_bus=event_bus, clock=clock)


@pytest.mark.asyncio
async def test_team_award_is_capped_and_scaled(ops, teams, db, clock, published):
    challenge_id = await create_challenge(db, teams.league_id)
    entry = await ops.submit_challenge_entry(challenge_id, teams.player(0))
    assert entry.team_id == teams.team_ids[0]

    clock.advance(days=3)
    award = await ops.review_challenge_submission(entry.id, teams.governor_id, "approved", awarded_points=80)
    assert award.caps.internal_cap == 100
    assert award.caps.visible_cap == 60
    assert award.visible_points == 48
    assert award.submission.awarded_points == 80
    assert isinstance(published[-1], ChallengeAwardChanged)

    async with db.get_session() as session:
        records = await load_award_records(session, teams.league_id)
    assert [(r.team_id, r.awarded_points, r.visible_points) for r in records] == [(teams.team_ids[0], 80, 48)]


@pytest.mark.asyncio
async def test_award_over_cap_raises(ops, teams, db, clock):
    challenge_id = await create_challenge(db, teams.league_id)
    entry = await ops.submit_challenge_entry(challenge_id, teams.player(0))
    clock.advance(days=3)
    with pytest.raises(CapExceededError) as exc_info:
        await ops.distribute_challenge_points(challenge_id, entry.id, 120)
    assert exc_info.value.cap == 100


@pytest.mark.asyncio
async def test_approval_without_points_awards_the_cap(ops, teams, db, clock):
    challenge_id = await create_challenge(db, teams.league_id)
    entry = await ops.submit_challenge_entry(challenge_id, teams.player(1))
    clock.advance(days=3)
    award = await ops.review_challenge_submission(entry.id, teams.host_id, "approved")
    assert award.submission.awarded_points == 60
    assert award.visible_points == 60


@pytest.mark.asyncio
async def test_rejection_clears_award(ops, teams, db, clock):
    challenge_id = await create_challenge(db, teams.league_id)
    entry = await ops.submit_challenge_entry(challenge_id, teams.player(0))
    clock.advance(days=3)
    await ops.review_challenge_submission(entry.id, teams.governor_id, "approved", awarded_points=50)
    award = await ops.review_challenge_submission(entry.id, teams.governor_id, "rejected")
    assert award.submission.status == SubmissionStatus.REJECTED
    assert award.submission.awarded_points is None
    assert award.visible_points == 0


@pytest.mark.asyncio
async def test_unknown_decision_is_rejected(ops, teams, db, clock):
    challenge_id = await create_challenge(db, teams.league_id)
    entry = await ops.submit_challenge_entry(challenge_id, teams.player(0))
    clock.advance(days=3)
    with pytest.raises(ValidationError):
        await ops.review_challenge_submission(entry.id, teams.governor_id, "approve", awarded_points=10)


@pytest.mark.asyncio
async def test_review_waits_for_submissions_to_close(ops, teams, db):
    challenge_id = await create_challenge(db, teams.league_id)
    entry = await ops.submit_challenge_entry(challenge_id, teams.player(0))
    with pytest.raises(StateError):
        await ops.review_challenge_submission(entry.id, teams.governor_id, "approved", awarded_points=10)


@pytest.mark.asyncio
async def test_only_hosts_and_governors_review(ops, teams, db, clock):
    challenge_id = await create_challenge(db, teams.league_id)
    entry = await ops.submit_challenge_entry(challenge_id, teams.player(0))
    clock.advance(days=3)
    with pytest.raises(AuthorizationError):
        await ops.review_challenge_submission(entry.id, teams.captain(0), "approved", awarded_points=10)


@pytest.mark.asyncio
async def test_closed_challenge_takes_no_entries(ops, teams, db):
    challenge_id = await create_challenge(db, teams.league_id, end_date=date(2024, 3, 5))
    with pytest.raises(StateError):
        await ops.submit_challenge_entry(challenge_id, teams.player(0))


@pytest.mark.asyncio
async def test_individual_challenge_uses_whole_pool(ops, teams, db, clock):
    challenge_id = await create_challenge(db, teams.league_id, ChallengeType.INDIVIDUAL, total_points=50)
    entry = await ops.submit_challenge_entry(challenge_id, teams.player(0))
    assert entry.team_id is None
    clock.advance(days=3)
    award = await ops.review_challenge_submission(entry.id, teams.governor_id, "approved", awarded_points=50)
    assert award.visible_points == 50


@pytest.mark.asyncio
async def test_sub_team_entry_requires_membership(ops, teams, db, clock):
    challenge_id = await create_challenge(db, teams.league_id, ChallengeType.SUB_TEAM, total_points=120)
    async with db.transaction() as session:
        pair = SubTeam(challenge_id=challenge_id, team_id=teams.team_ids[1], name="Pair")
        trio = SubTeam(challenge_id=challenge_id, team_id=teams.team_ids[1], name="Trio")
        session.add_all([pair, trio])
        await session.flush()
        for member_id in teams.rosters[1][:2]:
            session.add(SubTeamMember(sub_team_id=pair.id, member_id=member_id))
        for member_id in teams.rosters[1][2:]:
            session.add(SubTeamMember(sub_team_id=trio.id, member_id=member_id))
        pair_id, trio_id = pair.id, trio.id

    member_id = teams.rosters[1][0]
    with pytest.raises(ValidationError):
        await ops.submit_challenge_entry(challenge_id, member_id, sub_team_id=trio_id)
    entry = await ops.submit_challenge_entry(challenge_id, member_id, sub_team_id=pair_id)

    clock.advance(days=3)
    caps = await ops.get_caps(entry.id)
    assert (caps.internal_cap, caps.visible_cap) == (60, 40)


@pytest.mark.asyncio
async def test_publish_requires_every_entry_reviewed(ops, teams, db, clock, published):
    challenge_id = await create_challenge(db, teams.league_id)
    first = await ops.submit_challenge_entry(challenge_id, teams.player(0))
    second = await ops.submit_challenge_entry(challenge_id, teams.player(1))

    with pytest.raises(StateError):
        await ops.publish_challenge(challenge_id, teams.host_id)

    clock.advance(days=3)
    await ops.review_challenge_submission(first.id, teams.governor_id, "approved", awarded_points=80)
    with pytest.raises(StateError):
        await ops.publish_challenge(challenge_id, teams.host_id)

    await ops.review_challenge_submission(second.id, teams.governor_id, "rejected")

    challenge = await ops.publish_challenge(challenge_id, teams.host_id)
    assert challenge.status == ChallengeStatus.PUBLISHED
    assert isinstance(published[-1], ChallengePublished)

    with pytest.raises(StateError):
        await ops.publish_challenge(challenge_id, teams.host_id)

    closed = await ops.close_challenge(challenge_id, teams.host_id)
    assert closed.status == ChallengeStatus.CLOSED
