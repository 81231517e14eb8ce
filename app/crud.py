"""
CRUD operations (Create, Read, Update, Delete)
Database query functions for leagues, matches and match statistics
"""
from sqlalchemy.orm import Session
from app.models import League, LeagueAdmin, Match, MatchStatistic
from typing import Iterable, Optional, List


# ===== LEAGUES =====

def get_leagues(db: Session, skip: int = 0, limit: int = 1000) -> List[League]:
    """
    Get all leagues, ordered by name
    """
    return db.query(League).order_by(League.name).offset(skip).limit(limit).all()


def get_league_by_id(db: Session, league_id: int) -> Optional[League]:
    """
    Get a specific league by ID
    """
    return db.query(League).filter(League.id == league_id).first()


def is_league_admin(db: Session, user_id: str, league_id: int) -> bool:
    """
    True if user_id holds admin rights over the league
    """
    return (
        db.query(LeagueAdmin.id)
        .filter(LeagueAdmin.league_id == league_id, LeagueAdmin.user_id == user_id)
        .first()
        is not None
    )


# ===== MATCHES =====

def get_matches(
    db: Session,
    league_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 1000
) -> List[Match]:
    """
    Get matches, optionally filtered by league, in kickoff order
    """
    query = db.query(Match)
    if league_id is not None:
        query = query.filter(Match.league_id == league_id)
    return query.order_by(Match.start, Match.id).offset(skip).limit(limit).all()


def get_match_by_id(db: Session, match_id: int) -> Optional[Match]:
    """
    Get a specific match by ID
    """
    return db.query(Match).filter(Match.id == match_id).first()


def get_matches_with_status(
    db: Session,
    league_id: int,
    statuses: Iterable[str]
) -> List[Match]:
    """
    Get a league's matches whose status is one of statuses
    """
    return (
        db.query(Match)
        .filter(Match.league_id == league_id, Match.status.in_(list(statuses)))
        .all()
    )


# ===== MATCH STATISTICS =====

def get_match_statistics(db: Session, match_id: int) -> List[MatchStatistic]:
    """
    Get all player statistics for a match
    """
    return (
        db.query(MatchStatistic)
        .filter(MatchStatistic.match_id == match_id)
        .order_by(MatchStatistic.user_id)
        .all()
    )


def upsert_match_statistic(
    db: Session,
    match_id: int,
    user_id: str,
    values: dict
) -> MatchStatistic:
    """
    Create or replace one player's statistics for a match
    """
    stat = (
        db.query(MatchStatistic)
        .filter(MatchStatistic.match_id == match_id, MatchStatistic.user_id == user_id)
        .first()
    )
    if stat is None:
        stat = MatchStatistic(match_id=match_id, user_id=user_id)
        db.add(stat)
    for field, value in values.items():
        setattr(stat, field, value)
    db.commit()
    db.refresh(stat)
    return stat
