from datetime import timezone

from app.config.settings import settings

DATABASE_URL = settings.database_url
JWT_SECRET = settings.jwt_secret
JWT_ALGORITHM = settings.jwt_algorithm
BOT_TOKEN = settings.bot_token

SLOT_UNIT_MINUTES = settings.slot_unit_minutes
MAX_CHAIN_DEPTH = settings.max_chain_depth
CHAIN_CONFIRMATION_REQUIRED = settings.chain_confirmation_required
SAVE_RETRY_ATTEMPTS = settings.save_retry_attempts

MINUTES_PER_DAY = 24 * 60

UTC_TZ = timezone.utc
