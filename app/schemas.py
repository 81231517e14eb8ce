"""
Pydantic schemas for API request/response models
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


# ===== LEAGUE SCHEMAS =====

class LeagueBase(BaseModel):
    """Base league schema"""
    name: str

    class Config:
        from_attributes = True


class League(LeagueBase):
    """League response with ID"""
    id: int


# ===== MATCH SCHEMAS =====

class MatchBase(BaseModel):
    """Base match schema"""
    league_id: int
    status: str
    start: Optional[datetime] = None
    home_team_name: Optional[str] = None
    away_team_name: Optional[str] = None
    home_team_goals: Optional[int] = None
    away_team_goals: Optional[int] = None

    class Config:
        from_attributes = True


class Match(MatchBase):
    """Match response with ID"""
    id: int


# ===== MATCH STATISTIC SCHEMAS =====

class MatchStatisticBase(BaseModel):
    """Base statistic schema - one player's numbers for one match"""
    goals: int = Field(0, ge=0)
    assists: int = Field(0, ge=0)
    yellow_cards: int = Field(0, ge=0, le=2)
    red_cards: int = Field(0, ge=0, le=1)
    minutes_played: int = Field(0, ge=0, le=200)
    rating: float = Field(0.0, ge=0, le=10)

    class Config:
        from_attributes = True


class MatchStatisticIn(MatchStatisticBase):
    """Request body for submitting statistics"""
    pass


class MatchStatistic(MatchStatisticBase):
    """Statistic response with ID and owner"""
    id: int
    match_id: int
    user_id: str
    updated_at: Optional[datetime] = None
