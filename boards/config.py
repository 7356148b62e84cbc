import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Boards core configuration settings"""
    
    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///boards.db')
    
    # Logging settings
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')
    LOG_BACKUP_COUNT = int(os.getenv('LOG_BACKUP_COUNT', 14))  # days of rotated log files kept
    
    # Changelog settings
    CHANGELOG_DEFAULT_LIMIT = int(os.getenv('CHANGELOG_DEFAULT_LIMIT', 200))
    
    # Snapshot cache settings
    SNAPSHOT_BACKEND = os.getenv('SNAPSHOT_BACKEND', 'file')  # "file" or "redis"
    CACHE_DIR = os.getenv('CACHE_DIR', './cache')
    REDIS_URL = os.getenv('REDIS_URL')
    SNAPSHOT_KEY_PREFIX = os.getenv('SNAPSHOT_KEY_PREFIX', 'boards:snapshot:')
    VOLATILE_FIELD = os.getenv('VOLATILE_FIELD', 'totalLeaderboardEntries')
    
    SNAPSHOT_BACKENDS = ('file', 'redis')
    
    @classmethod
    def async_database_url(cls) -> str:
        """Database URL with sqlite promoted to the aiosqlite driver"""
        database_url = cls.DATABASE_URL
        if database_url.startswith('sqlite:///'):
            database_url = database_url.replace('sqlite:///', 'sqlite+aiosqlite:///')
        return database_url
    
    @classmethod
    def validate(cls):
        """Validate that required configuration is present"""
        if cls.SNAPSHOT_BACKEND not in cls.SNAPSHOT_BACKENDS:
            raise ValueError(f"SNAPSHOT_BACKEND must be one of {', '.join(cls.SNAPSHOT_BACKENDS)}")
        if cls.CHANGELOG_DEFAULT_LIMIT <= 0:
            raise ValueError("CHANGELOG_DEFAULT_LIMIT must be a positive integer")
        if cls.SNAPSHOT_BACKEND == 'redis' and not cls.REDIS_URL and not cls.DEBUG:
            raise ValueError("REDIS_URL is required for the redis snapshot backend")
