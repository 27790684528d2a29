"""
Centralised constants for the AniFin downloader.

All magic numbers, site tables, thresholds and default values live here
so they can be imported by any module without circular dependencies.
"""

# ── Version ──────────────────────────────────────────────────────
APP_VERSION = "0.2.0"
APP_NAME = "AniFin"

# ── HTTP ─────────────────────────────────────────────────────────
BROWSER_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
PAGE_TIMEOUT_SECONDS = 30
PREVIEW_HEAD_TIMEOUT_SECONDS = 10
MAX_REDIRECT_HOPS = 5
DEFAULT_SITE_BASE_URL = "https://aniworld.to"

# ── Aniworld language selector (label -> data-lang-key) ──────────
LANGUAGE_CODES: dict[str, int] = {
    "German Dub": 1,
    "German Sub": 2,
    "English Sub": 3,
}
DEFAULT_LANGUAGE = "German Dub"
FALLBACK_LANGUAGE = "German Sub"

# ── Providers ────────────────────────────────────────────────────
DEFAULT_PROVIDER = "voe"
# Two-character tokens VOE splices into its payload
VOE_JUNK_PARTS = ("@$", "^^", "~@", "%?", "*~", "!!", "#&")
VOE_PREVIEW_SUFFIX = "_storyboard_L2.jpg"

# ── yt-dlp ───────────────────────────────────────────────────────
YTDLP_BINARY = "yt-dlp"
YTDLP_CONCURRENT_FRAGMENTS = 8
YTDLP_TERMINATE_GRACE_SECONDS = 10
DEFAULT_OUTPUT_FORMAT = "mp4"
SUPPORTED_OUTPUT_FORMATS = frozenset({"mp4", "mkv", "mp3"})

# ── Logging ──────────────────────────────────────────────────────
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB per log file
LOG_BACKUP_COUNT = 5
LOG_RING_CAPACITY = 1000
LOG_LEVELS = ("info", "success", "warning", "error")

# ── Defaults for .env driven config ──────────────────────────────
DEFAULT_DOWNLOAD_PATH = "./downloads"
DEFAULT_SSH_PORT = 22
DEFAULT_SSH_REMOTE_PATH = "/mnt/media"
DEFAULT_WEB_HOST = "127.0.0.1"
DEFAULT_WEB_PORT = 3000
