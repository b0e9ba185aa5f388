from shared.config import settings

AGENT_NAME = "health_monitor"
AGENT_VERSION = "1.0.0"

# Programs
LENDING_PROGRAM_ID = settings.LENDING_PROGRAM_ID
DRIFT_PROGRAM_ID = settings.DRIFT_PROGRAM_ID

# Alert thresholds (normalized health %). An alert re-arms only once health
# climbs back to its WITH_BUFFER level.
FIRST_THRESHOLD = 25
FIRST_THRESHOLD_WITH_BUFFER = 30
SECOND_THRESHOLD = 10
SECOND_THRESHOLD_WITH_BUFFER = 15

# Safety margin taken off the margin protocol's health before users see it
HEALTH_BUFFER_PCT = 10

# Monitoring
POLL_INTERVAL = 30                 # Seconds between the end of one cycle and the next
HEARTBEAT_INTERVAL_HOURS = 24

# Retries for RPC, database and Telegram calls
RETRY_ATTEMPTS = 3
RETRY_INITIAL_DELAY = 1.0          # Seconds, doubled per retry

# Auto-repay detection
AUTO_REPAY_INSTRUCTION = "AutoRepayStart"
ACCOUNT_INDEX_CALLER = 0
ACCOUNT_INDEX_OWNER = 5
