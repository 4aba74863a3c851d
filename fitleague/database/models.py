from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Boolean, Text, Float,
    ForeignKey, BigInteger, Enum as SQLEnum, UniqueConstraint, CheckConstraint, Index, text
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
from datetime import date
from enum import Enum
from typing import Optional

from fitleague.constants import ScoringConstants

Base = declarative_base()

class LeagueStatus(Enum):
    DRAFT = "draft"
    LAUNCHED = "launched"
    ACTIVE = "active"
    COMPLETED = "completed"

class MemberRole(Enum):
    HOST = "host"
    GOVERNOR = "governor"
    CAPTAIN = "captain"
    PLAYER = "player"

class EntryKind(Enum):
    WORKOUT = "workout"
    REST = "rest"

class SubmissionStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class ChallengeType(Enum):
    INDIVIDUAL = "individual"
    TEAM = "team"
    SUB_TEAM = "sub_team"

class ChallengeStatus(Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    SUBMISSION_CLOSED = "submission_closed"
    PUBLISHED = "published"
    CLOSED = "closed"

class League(Base):
    __tablename__ = 'leagues'

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(SQLEnum(LeagueStatus), default=LeagueStatus.DRAFT, nullable=False)

    # IANA zone used for "today" when building windows
    timezone = Column(String(64), default='UTC', nullable=False)

    # Scoring options
    normalize_points_by_team_size = Column(Boolean, default=False, nullable=False)
    require_proof = Column(Boolean, default=False, nullable=False)
    rest_days_allowed = Column(Integer, default=ScoringConstants.DEFAULT_REST_DAYS_ALLOWED, nullable=False)  # Total per member

    # Metadata
    created_at = Column(DateTime, default=func.now())

    # Relationships
    teams = relationship("Team", back_populates="league", cascade="all, delete-orphan")
    members = relationship("Member", back_populates="league", cascade="all, delete-orphan")
    challenges = relationship("Challenge", back_populates="league", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint('end_date >= start_date', name='league_date_order_check'),
    )

    @property
    def is_completed(self) -> bool:
        return self.status == LeagueStatus.COMPLETED

    def contains_date(self, day: date) -> bool:
        """Check if a calendar day falls inside the league"""
        return self.start_date <= day <= self.end_date

    def __repr__(self):
        return f"<League(id={self.id}, name='{self.name}', status={self.status.value if self.status else None})>"

class Team(Base):
    __tablename__ = 'teams'

    id = Column(Integer, primary_key=True)
    league_id = Column(Integer, ForeignKey('leagues.id'), nullable=False, index=True)
    name = Column(String(100), nullable=False)

    created_at = Column(DateTime, default=func.now())

    league = relationship("League", back_populates="teams")
    members = relationship("Member", back_populates="team")

    __table_args__ = (UniqueConstraint('league_id', 'name'),)

    def __repr__(self):
        return f"<Team(id={self.id}, name='{self.name}')>"

class Member(Base):
    """A league membership; one person may belong to several leagues."""
    __tablename__ = 'members'

    id = Column(Integer, primary_key=True)
    league_id = Column(Integer, ForeignKey('leagues.id'), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey('teams.id'), nullable=True, index=True)  # Null until allocated

    display_name = Column(String(100), nullable=False)
    discord_id = Column(BigInteger, nullable=True, index=True)
    role = Column(SQLEnum(MemberRole), default=MemberRole.PLAYER, nullable=False)

    # Drives age-tiered RR thresholds
    birth_date = Column(Date, nullable=True)

    joined_at = Column(DateTime, default=func.now())

    league = relationship("League", back_populates="members")
    team = relationship("Team", back_populates="members")

    __table_args__ = (UniqueConstraint('league_id', 'discord_id', name='unique_discord_member_per_league'),)

    def age_on(self, day: date) -> Optional[int]:
        """Age in whole years on the given day, None when unknown"""
        if not self.birth_date:
            return None
        years = day.year - self.birth_date.year
        if (day.month, day.day) < (self.birth_date.month, self.birth_date.day):
            years -= 1
        return years

    def __repr__(self):
        return f"<Member(id={self.id}, name='{self.display_name}', role={self.role.value if self.role else None}, team_id={self.team_id})>"

class Submission(Base):
    """
    One daily activity entry for a member.

    Overwrites never delete rows: the previous entry is marked not current and
    linked forward through ``superseded_by`` while the replacement links back
    through ``reupload_of``.
    """
    __tablename__ = 'submissions'

    id = Column(Integer, primary_key=True)
    member_id = Column(Integer, ForeignKey('members.id'), nullable=False, index=True)
    league_id = Column(Integer, ForeignKey('leagues.id'), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)  # Member-local calendar day

    kind = Column(SQLEnum(EntryKind), nullable=False)
    workout_type = Column(String(50), nullable=True)

    # Exactly one metric is populated for a workout
    duration = Column(Float, nullable=True)  # minutes
    distance = Column(Float, nullable=True)  # km
    steps = Column(Integer, nullable=True)
    holes = Column(Integer, nullable=True)

    rr_value = Column(Float, nullable=False)
    status = Column(SQLEnum(SubmissionStatus), default=SubmissionStatus.PENDING, nullable=False)
    awarded_points = Column(Integer, nullable=True)  # Null while pending

    proof_url = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    exemption_reason = Column(String(255), nullable=True)  # Rest day past the allowance

    # Review
    reviewed_by = Column(Integer, ForeignKey('members.id'), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    rejection_reason = Column(String(255), nullable=True)

    # Submitter's offset from UTC in minutes (local minus UTC, IST is +330)
    utc_offset_minutes = Column(Integer, default=0, nullable=False)

    # Supersession chain
    is_current = Column(Boolean, default=True, nullable=False)
    reupload_of = Column(Integer, ForeignKey('submissions.id'), nullable=True)
    superseded_by = Column(Integer, ForeignKey('submissions.id'), nullable=True)
    version = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime, nullable=False)
    modified_at = Column(DateTime, nullable=True)

    member = relationship("Member", foreign_keys=[member_id])
    reviewer = relationship("Member", foreign_keys=[reviewed_by])

    __table_args__ = (
        CheckConstraint('rr_value >= 0', name='non_negative_rr_check'),
        Index(
            'uq_current_submission_per_day', 'member_id', 'date',
            unique=True,
            sqlite_where=text('is_current = 1'),
            postgresql_where=text('is_current'),
        ),
    )

    @property
    def metrics(self) -> dict:
        """Populated raw metrics keyed by field name"""
        values = {
            'duration': self.duration,
            'distance': self.distance,
            'steps': self.steps,
            'holes': self.holes,
        }
        return {key: value for key, value in values.items() if value is not None}

    def __repr__(self):
        return (f"<Submission(id={self.id}, member_id={self.member_id}, date={self.date}, "
                f"status={self.status.value if self.status else None}, rr={self.rr_value}, current={self.is_current})>")

class Challenge(Base):
    __tablename__ = 'challenges'

    id = Column(Integer, primary_key=True)
    league_id = Column(Integer, ForeignKey('leagues.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    challenge_type = Column(SQLEnum(ChallengeType), nullable=False)
    total_points = Column(Float, nullable=False)

    # Stored status; date-driven phases are derived on read
    status = Column(SQLEnum(ChallengeStatus), default=ChallengeStatus.DRAFT, nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    published_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=func.now())

    league = relationship("League", back_populates="challenges")
    sub_teams = relationship("SubTeam", back_populates="challenge", cascade="all, delete-orphan")
    submissions = relationship("ChallengeSubmission", back_populates="challenge", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint('total_points >= 0', name='non_negative_total_points_check'),
    )

    def __repr__(self):
        return f"<Challenge(id={self.id}, name='{self.name}', type={self.challenge_type.value}, total={self.total_points})>"

class SubTeam(Base):
    __tablename__ = 'sub_teams'

    id = Column(Integer, primary_key=True)
    challenge_id = Column(Integer, ForeignKey('challenges.id'), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey('teams.id'), nullable=False)
    name = Column(String(100), nullable=False)

    challenge = relationship("Challenge", back_populates="sub_teams")
    team = relationship("Team")
    memberships = relationship("SubTeamMember", back_populates="sub_team", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<SubTeam(id={self.id}, name='{self.name}', team_id={self.team_id})>"

class SubTeamMember(Base):
    __tablename__ = 'sub_team_members'

    id = Column(Integer, primary_key=True)
    sub_team_id = Column(Integer, ForeignKey('sub_teams.id'), nullable=False, index=True)
    member_id = Column(Integer, ForeignKey('members.id'), nullable=False)

    sub_team = relationship("SubTeam", back_populates="memberships")
    member = relationship("Member")

    __table_args__ = (UniqueConstraint('sub_team_id', 'member_id', name='unique_member_per_sub_team'),)

class ChallengeSubmission(Base):
    __tablename__ = 'challenge_submissions'

    id = Column(Integer, primary_key=True)
    challenge_id = Column(Integer, ForeignKey('challenges.id'), nullable=False, index=True)
    member_id = Column(Integer, ForeignKey('members.id'), nullable=False)

    # Set for team and sub-team challenges
    team_id = Column(Integer, ForeignKey('teams.id'), nullable=True)
    sub_team_id = Column(Integer, ForeignKey('sub_teams.id'), nullable=True)

    status = Column(SQLEnum(SubmissionStatus), default=SubmissionStatus.PENDING, nullable=False)
    awarded_points = Column(Float, nullable=True)  # Null until reviewed
    proof_url = Column(String(500), nullable=True)

    reviewed_by = Column(Integer, ForeignKey('members.id'), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=func.now())

    challenge = relationship("Challenge", back_populates="submissions")
    member = relationship("Member", foreign_keys=[member_id])
    team = relationship("Team")
    sub_team = relationship("SubTeam")

    def __repr__(self):
        return (f"<ChallengeSubmission(id={self.id}, challenge_id={self.challenge_id}, "
                f"status={self.status.value}, awarded={self.awarded_points})>")

class Configuration(Base):
    """Runtime tunables stored as JSON text."""
    __tablename__ = 'configurations'

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Configuration(key='{self.key}')>"

class AuditLog(Base):
    __tablename__ = 'audit_logs'

    id = Column(Integer, primary_key=True)
    user_id = Column(BigInteger, nullable=False)
    action = Column(String(50), nullable=False)
    details = Column(Text)
    created_at = Column(DateTime, default=func.now())

    def __repr__(self):
        return f"<AuditLog(user_id={self.user_id}, action='{self.action}')>"
