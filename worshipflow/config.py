"""
WorshipFlow Song Manager - Configuration
All settings loaded from environment variables with sensible defaults.

The application is a small stateless web service.  Songs and tags live in
an embedded document store file; the image-to-text helper talks to the
Gemini API over HTTPS.
"""

import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
_ = load_dotenv()

# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------
APP_HOST = os.getenv("APP_HOST", "0.0.0.0")
APP_PORT = int(os.getenv("APP_PORT", "3000"))
APP_ENV = os.getenv("APP_ENV", "development")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
DEBUG = os.getenv("DEBUG", "true").lower() == "true"

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent

TEMPLATES_DIR = BASE_DIR / "templates"

# ---------------------------------------------------------------------------
# Logging: stdout only
# ---------------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ---------------------------------------------------------------------------
# Document store
#
# The songs and tags collections are kept in a single SQLite file.  Setting
# DB_PATH to an empty string leaves the store unconfigured: the app still
# starts, but every song/tag request fails with "Document store not
# configured".
# ---------------------------------------------------------------------------
DB_PATH = os.getenv(
    "DB_PATH", os.path.join(tempfile.gettempdir(), "worshipflow", "worshipflow.db")
)

# ---------------------------------------------------------------------------
# Transcription (Gemini)
# ---------------------------------------------------------------------------
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_API_URL = os.getenv(
    "GEMINI_API_URL", "https://generativelanguage.googleapis.com/v1beta"
)
TRANSCRIPTION_TIMEOUT = float(os.getenv("TRANSCRIPTION_TIMEOUT", "60"))

# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------
# Style token given to tags created without an explicit color
DEFAULT_TAG_COLOR = "bg-gray-100 text-gray-800"

# Tags that must always exist.  Missing ones are recreated when tags are listed.
DEFAULT_TAGS = [
    {"name": "Joyful", "color": "bg-yellow-100 text-yellow-800"},
    {"name": "Solemn", "color": "bg-indigo-100 text-indigo-800"},
    {"name": "English", "color": "bg-blue-100 text-blue-800"},
    {"name": "Tagalog", "color": "bg-red-100 text-red-800"},
]


def ensure_directories() -> None:
    """Create the local directory holding the document store file."""
    if DB_PATH:
        Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)
