import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Engine and bot configuration settings"""
    
    # Discord settings
    DISCORD_TOKEN = os.getenv('DISCORD_TOKEN')
    DISCORD_GUILD_ID = int(os.getenv('DISCORD_GUILD_ID', 0))
    DISCORD_GUILD_IDS = os.getenv('DISCORD_GUILD_IDS', '')  # Comma-separated for multi-guild support
    OWNER_DISCORD_ID = int(os.getenv('OWNER_DISCORD_ID', 0))
    
    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///fitleague.db')
    
    # Redis is optional; without it submission locks stay in-process
    REDIS_URL = os.getenv('REDIS_URL', '')
    
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    
    # Submission lifecycle
    AUTO_APPROVE_HOURS = int(os.getenv('AUTO_APPROVE_HOURS', 48))
    REUPLOAD_GRACE_DAYS = 1  # Replacement allowed until the end of the next local day
    
    # Leaderboard settings
    SETTLED_DELAY_DAYS = int(os.getenv('SETTLED_DELAY_DAYS', 2))
    LEADERBOARD_TIMEOUT_SECONDS = float(os.getenv('LEADERBOARD_TIMEOUT_SECONDS', 10))
    LEADERBOARD_INDIVIDUAL_LIMIT = int(os.getenv('LEADERBOARD_INDIVIDUAL_LIMIT', 50))
    
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
    def validate(cls):
        """Validate that required configuration is present"""
        if not cls.DISCORD_TOKEN:
            raise ValueError("DISCORD_TOKEN is required")
        if not cls.DISCORD_GUILD_ID and not cls.DISCORD_GUILD_IDS:
            raise ValueError("Either DISCORD_GUILD_ID or DISCORD_GUILD_IDS is required")
        if cls.AUTO_APPROVE_HOURS <= 0:
            raise ValueError("AUTO_APPROVE_HOURS must be positive")
        if cls.SETTLED_DELAY_DAYS < 1:
            raise ValueError("SETTLED_DELAY_DAYS must be at least 1")
