"""
Database models for the league stats API
SQLAlchemy ORM models for leagues, league admins, matches and player statistics
"""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Float, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class League(Base):
    """
    League entity - a group of players with a shared match schedule
    """
    __tablename__ = "leagues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    matches = relationship("Match", back_populates="league")
    admins = relationship("LeagueAdmin", back_populates="league")

    def __repr__(self):
        return f"<League(id={self.id}, name='{self.name}')>"


class LeagueAdmin(Base):
    """
    League administrator - user ids with admin rights over a league
    """
    __tablename__ = "league_admins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(Integer, ForeignKey("leagues.id"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)

    league = relationship("League", back_populates="admins")

    __table_args__ = (
        UniqueConstraint("league_id", "user_id", name="uix_league_admin"),
    )

    def __repr__(self):
        return f"<LeagueAdmin(league_id={self.league_id}, user_id='{self.user_id}')>"


class Match(Base):
    """
    Match entity - one scheduled game in a league
    Status moves SCHEDULED -> RESULT_UPLOADED -> RESULT_PUBLISHED
    """
    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(Integer, ForeignKey("leagues.id"), nullable=False, index=True)
    home_team_name = Column(String, nullable=True)
    away_team_name = Column(String, nullable=True)
    home_team_goals = Column(Integer, nullable=True)
    away_team_goals = Column(Integer, nullable=True)
    status = Column(String, nullable=False, default="SCHEDULED", index=True)
    start = Column(DateTime, nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    league = relationship("League", back_populates="matches")
    statistics = relationship("MatchStatistic", back_populates="match")

    def __repr__(self):
        return f"<Match(id={self.id}, league_id={self.league_id}, status='{self.status}')>"


class MatchStatistic(Base):
    """
    MatchStatistic entity - one player's numbers for one match
    One record per player per match
    """
    __tablename__ = "match_statistics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    goals = Column(Integer, nullable=False, default=0)
    assists = Column(Integer, nullable=False, default=0)
    yellow_cards = Column(Integer, nullable=False, default=0)
    red_cards = Column(Integer, nullable=False, default=0)
    minutes_played = Column(Integer, nullable=False, default=0)
    rating = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    match = relationship("Match", back_populates="statistics")

    __table_args__ = (
        UniqueConstraint("match_id", "user_id", name="uix_match_statistic_user"),
    )

    def __repr__(self):
        return f"<MatchStatistic(match_id={self.match_id}, user_id='{self.user_id}', goals={self.goals})>"
