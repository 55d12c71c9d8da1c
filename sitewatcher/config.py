# Environment-driven settings shared across sitewatcher.
# Every value has a default, so nothing needs to be set for local use.

import os
from pathlib import Path

# --------------------------------------------------------------------
# Utility
# --------------------------------------------------------------------
def _bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")

# --------------------------------------------------------------------
# Storage
# --------------------------------------------------------------------
DB_PATH = Path(os.getenv("SITEWATCHER_DB", str(Path.home() / ".sitewatcher" / "sitewatcher.db"))).expanduser()

# --------------------------------------------------------------------
# Polling
# --------------------------------------------------------------------
POLL_INTERVAL = int(os.getenv("SITEWATCHER_POLL_SECONDS", "3600"))
DISABLE_THRESHOLD = int(os.getenv("SITEWATCHER_DISABLE_THRESHOLD", "10"))
# How often `run` reconciles its watchers with the stored sites
SYNC_INTERVAL = int(os.getenv("SITEWATCHER_SYNC_SECONDS", "60"))

# --------------------------------------------------------------------
# Fetch
# --------------------------------------------------------------------
FETCH_TIMEOUT = int(os.getenv("SITEWATCHER_FETCH_TIMEOUT", "30"))
USER_AGENT = os.getenv(
    "SITEWATCHER_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
)

# --------------------------------------------------------------------
# Logging
# --------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_TO_FILE = _bool("LOG_TO_FILE", "false")
LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))
LOG_BACKUPS = int(os.getenv("LOG_BACKUPS", "30"))
