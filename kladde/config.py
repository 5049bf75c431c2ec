import os
from datetime import date
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Bot and club configuration settings"""
    
    # Discord settings
    DISCORD_TOKEN = os.getenv('DISCORD_TOKEN')
    DISCORD_GUILD_ID = int(os.getenv('DISCORD_GUILD_ID', 0))
    DISCORD_GUILD_IDS = os.getenv('DISCORD_GUILD_IDS', '')  # Comma-separated for multi-guild support
    OWNER_DISCORD_ID = int(os.getenv('OWNER_DISCORD_ID', 0))
    
    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///kegelkladde.db')
    REDIS_URL = os.getenv('REDIS_URL', '')  # Empty = in-memory edit locks
    
    # Bot settings
    COMMAND_PREFIX = os.getenv('COMMAND_PREFIX', '!')
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')
    
    # Kladde settings
    DEFAULT_CONTRIBUTION = Decimal('4.00')
    MARKER_PRICE = Decimal('0.10')
    GAMEDAY_INTERVAL_DAYS = 14
    FIRST_GAMEDAY = date(2026, 2, 20)
    EDIT_LOCK_TTL_SECONDS = 15
    
    # Input clamping
    MAX_MARKER_COUNT = 999
    MAX_CURRENCY_AMOUNT = Decimal('9999')
    
    # Ranking settings
    MONTE_POINTS = (10, 6, 4, 3, 2, 1)  # Place 1-6
    MONTE_CUTOFF = Decimal('2.00')     # >= 2,00 € = no placement points
    MONTE_WIN_THRESHOLD = 100
    MEDAILLEN_GOLD_POINTS = 2
    MEDAILLEN_SILVER_POINTS = 1
    MEDAILLEN_WIN_THRESHOLD = 41
    
    @classmethod
    def get_guild_ids(cls):
        """Get list of guild IDs for command syncing"""
        if cls.DISCORD_GUILD_IDS:
            try:
                return [int(guild_id.strip()) for guild_id in cls.DISCORD_GUILD_IDS.split(',') if guild_id.strip()]
            except ValueError:
                raise ValueError("DISCORD_GUILD_IDS must be comma-separated integers")
        elif cls.DISCORD_GUILD_ID:
            return [cls.DISCORD_GUILD_ID]
        else:
            # Global sync
            return []
    
    @classmethod
    def get_async_database_url(cls, database_url: str = None) -> str:
        """Return the configured database URL with an async driver"""
        url = database_url or cls.DATABASE_URL
        if url.startswith('sqlite:///'):
            url = url.replace('sqlite:///', 'sqlite+aiosqlite:///', 1)
        return url
    
    @classmethod
    def validate(cls):
        """Validate that required configuration is present"""
        if not cls.DISCORD_TOKEN:
            raise ValueError("DISCORD_TOKEN is required")
        if not cls.OWNER_DISCORD_ID:
            raise ValueError("OWNER_DISCORD_ID is required")
