from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Text, Float,
    ForeignKey, Enum as SQLEnum, UniqueConstraint, CheckConstraint, Index, JSON
)
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from enum import Enum

from lexirank.constants import GameMode, GlickoConstants, InputMethod, Track

Base = declarative_base()

class GameStatus(Enum):
    WAITING = "waiting"
    STARTING = "starting"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"

class GameType(Enum):
    SINGLE = "single"

class AuditAction(Enum):
    PLACEMENT_DISCARDED = "placement_discarded"
    XP_MISMATCH = "xp_mismatch"

class Player(Base):
    __tablename__ = 'players'
    
    # Auth subject is the player id (1:1 mapping)
    id = Column(String(64), primary_key=True)
    email = Column(String(255), nullable=True)
    username = Column(String(20), nullable=False)
    avatar_id = Column(Integer, default=1, nullable=False)
    birth_year = Column(Integer, nullable=True)
    
    # Metadata
    created_at = Column(DateTime, default=func.now())
    last_active = Column(DateTime, default=func.now())
    is_active = Column(Boolean, default=True)  # Soft state; players are never deleted
    
    tier_progress = relationship("TierProgress", back_populates="player", cascade="all, delete-orphan")
    skill_estimates = relationship("SkillEstimate", back_populates="player", cascade="all, delete-orphan")
    
    def __repr__(self):
        return f"<Player(id='{self.id}', username='{self.username}')>"

# Usernames are unique regardless of case
Index('uq_players_username_lower', func.lower(Player.username), unique=True)

class TierProgress(Base):
    """
    Visible XP ledger for one player on one track.
    
    The tier is not stored. It is derived from xp on every read by
    ProgressionCalculator.tier_for_xp so it can never drift.
    """
    __tablename__ = 'tier_progress'
    
    id = Column(Integer, primary_key=True)
    player_id = Column(String(64), ForeignKey('players.id'), nullable=False)
    track = Column(SQLEnum(Track), nullable=False)
    xp = Column(Integer, default=0, nullable=False)
    
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
    
    player = relationship("Player", back_populates="tier_progress")
    
    __table_args__ = (
        UniqueConstraint('player_id', 'track', name='uq_tier_progress_player_track'),
        CheckConstraint('xp >= 0', name='non_negative_xp_check'),
        Index('ix_tier_progress_track_xp', 'track', 'xp'),
    )
    
    def __repr__(self):
        return f"<TierProgress(player_id='{self.player_id}', track={self.track.value}, xp={self.xp})>"

class SkillEstimate(Base):
    """Hidden Glicko-2 skill estimate for one player on one track."""
    __tablename__ = 'skill_estimates'
    
    id = Column(Integer, primary_key=True)
    player_id = Column(String(64), ForeignKey('players.id'), nullable=False)
    track = Column(SQLEnum(Track), nullable=False)
    
    rating = Column(Float, default=GlickoConstants.INITIAL_RATING, nullable=False)
    rating_deviation = Column(Float, default=GlickoConstants.INITIAL_RD, nullable=False)
    volatility = Column(Float, default=GlickoConstants.INITIAL_VOLATILITY, nullable=False)
    
    games_played = Column(Integer, default=0, nullable=False)
    season_highest_rating = Column(Float, default=GlickoConstants.INITIAL_RATING)
    last_played_at = Column(DateTime, nullable=True)
    
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
    
    player = relationship("Player", back_populates="skill_estimates")
    
    __table_args__ = (
        UniqueConstraint('player_id', 'track', name='uq_skill_estimate_player_track'),
    )
    
    def __repr__(self):
        return f"<SkillEstimate(player_id='{self.player_id}', track={self.track.value}, rating={self.rating:.0f}, rd={self.rating_deviation:.0f})>"

class Game(Base):
    __tablename__ = 'games'
    
    id = Column(String(36), primary_key=True)  # uuid4
    mode = Column(SQLEnum(GameMode), nullable=False)
    input_method = Column(SQLEnum(InputMethod), nullable=False)
    type = Column(SQLEnum(GameType), default=GameType.SINGLE, nullable=False)
    status = Column(SQLEnum(GameStatus), default=GameStatus.IN_PROGRESS, nullable=False)
    host_id = Column(String(64), ForeignKey('players.id'), nullable=False, index=True)
    
    created_at = Column(DateTime, default=func.now())
    started_at = Column(DateTime, default=func.now())
    ended_at = Column(DateTime, nullable=True)
    
    participants = relationship("GamePlayer", back_populates="game", cascade="all, delete-orphan")
    rounds = relationship("GameRound", back_populates="game", cascade="all, delete-orphan",
                          order_by="GameRound.round_number")
    
    @property
    def track(self) -> Track:
        return Track.from_parts(self.mode, self.input_method)
    
    def __repr__(self):
        return f"<Game(id='{self.id}', track={self.track.value}, status={self.status.value})>"

class GamePlayer(Base):
    """Per-player aggregates of one game, written once at finalization."""
    __tablename__ = 'game_players'
    
    id = Column(String(36), primary_key=True)  # uuid4
    game_id = Column(String(36), ForeignKey('games.id'), nullable=False)
    player_id = Column(String(64), ForeignKey('players.id'), nullable=False)
    
    hearts = Column(Integer, default=0, nullable=False)
    is_eliminated = Column(Boolean, default=False)
    rounds_completed = Column(Integer, default=0, nullable=False)
    correct_answers = Column(Integer, default=0, nullable=False)
    wrong_answers = Column(Integer, default=0, nullable=False)
    longest_streak = Column(Integer, default=0, nullable=False)
    score = Column(Integer, default=0, nullable=False)
    xp_earned = Column(Integer, default=0, nullable=False)
    
    joined_at = Column(DateTime, default=func.now())
    
    game = relationship("Game", back_populates="participants")
    
    __table_args__ = (
        UniqueConstraint('game_id', 'player_id', name='unique_player_per_game'),
        Index('ix_game_players_player', 'player_id'),
    )
    
    def __repr__(self):
        return f"<GamePlayer(game_id='{self.game_id}', player_id='{self.player_id}', correct={self.correct_answers})>"

class GameRound(Base):
    """Append-only round history. Rows are never updated after finalization."""
    __tablename__ = 'game_rounds'
    
    id = Column(Integer, primary_key=True)
    game_id = Column(String(36), ForeignKey('games.id'), nullable=False)
    player_id = Column(String(64), ForeignKey('players.id'), nullable=False)
    round_number = Column(Integer, nullable=False)
    word_id = Column(String(64), nullable=False)
    answer = Column(Text, nullable=False, default="")
    is_correct = Column(Boolean, nullable=False)  # Server-verified
    client_is_correct = Column(Boolean, nullable=False)
    time_taken = Column(Float, nullable=False)
    
    created_at = Column(DateTime, default=func.now())
    
    game = relationship("Game", back_populates="rounds")
    
    __table_args__ = (
        UniqueConstraint('game_id', 'player_id', 'round_number', name='unique_round_per_player'),
        CheckConstraint('round_number > 0', name='positive_round_number_check'),
    )
    
    def __repr__(self):
        return f"<GameRound(game_id='{self.game_id}', round={self.round_number}, correct={self.is_correct})>"

class Word(Base):
    __tablename__ = 'words'
    
    id = Column(String(64), primary_key=True)
    word = Column(String(100), nullable=False)
    difficulty_tier = Column(Integer, nullable=False, index=True)
    definition = Column(Text, nullable=True)
    example_sentence = Column(Text, nullable=True)
    part_of_speech = Column(String(30), nullable=True)
    
    __table_args__ = (
        CheckConstraint('difficulty_tier BETWEEN 1 AND 7', name='word_tier_range_check'),
    )
    
    def __repr__(self):
        return f"<Word(id='{self.id}', word='{self.word}', tier={self.difficulty_tier})>"

class AuditLog(Base):
    """Append-only trail of anti-cheat anomalies."""
    __tablename__ = 'audit_log'
    
    id = Column(Integer, primary_key=True)
    player_id = Column(String(64), nullable=False, index=True)
    action = Column(SQLEnum(AuditAction), nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=func.now())
    
    def __repr__(self):
        return f"<AuditLog(player_id='{self.player_id}', action={self.action.value})>"
