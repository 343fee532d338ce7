import logging
import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Service configuration settings"""
    
    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///lexirank.db')
    DB_MAX_RETRIES = int(os.getenv('DB_MAX_RETRIES', 3))
    
    # Service settings
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_DIR = os.getenv('LOG_DIR', 'logs')  # Empty for console only
    HOST = os.getenv('HOST', '0.0.0.0')
    PORT = int(os.getenv('PORT', 8000))
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', '')  # Comma-separated
    
    # Auth settings
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')
    JWT_ALGORITHM = os.getenv('JWT_ALGORITHM', 'HS256')
    ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv('ACCESS_TOKEN_EXPIRE_MINUTES', 60 * 24 * 7))
    
    # Leaderboard settings
    LEADERBOARD_CACHE_TTL = int(os.getenv('LEADERBOARD_CACHE_TTL', 30))  # seconds
    LEADERBOARD_CACHE_MAX_SIZE = 500
    
    # Rating settings
    DEFAULT_WORD_TIER = 4  # Opponent tier when a game's words are unknown
    
    @classmethod
    def get_cors_origins(cls):
        """Get list of allowed CORS origins"""
        if not cls.CORS_ORIGINS:
            return []
        return [origin.strip() for origin in cls.CORS_ORIGINS.split(',') if origin.strip()]
    
    @classmethod
    def validate(cls):
        """Validate that required configuration is present"""
        if not cls.JWT_SECRET_KEY:
            raise ValueError("JWT_SECRET_KEY is required")
        if cls.LEADERBOARD_CACHE_TTL < 0:
            raise ValueError("LEADERBOARD_CACHE_TTL must not be negative")
        if cls.DB_MAX_RETRIES < 1:
            raise ValueError("DB_MAX_RETRIES must be at least 1")
        if not isinstance(logging.getLevelName(cls.LOG_LEVEL.upper()), int):
            raise ValueError(f"Unknown LOG_LEVEL {cls.LOG_LEVEL!r}")
