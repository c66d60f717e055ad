"""Centralized configuration for the medbook package.

Provides paths, scheduling constants, and remote service settings
used across all modules.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Package root (medbook/ directory)
PACKAGE_ROOT = Path(__file__).parent

# Working directory (where the service or CLI is started from)
WORKING_DIR = Path.cwd()

# Load environment variables from current working directory
load_dotenv(WORKING_DIR / ".env")

# Prompt templates ship with the package
PROMPTS_DIR = PACKAGE_ROOT / "prompts"

OUTPUTS_DIR = WORKING_DIR / "outputs"
DATABASE_PATH = Path(os.getenv("MEDBOOK_DB_PATH", str(OUTPUTS_DIR / "medbook.db")))

# Scheduling
SLOT_DURATION_MINUTES = int(os.getenv("MEDBOOK_SLOT_DURATION_MINUTES", "30"))
MATCH_CONFIDENCE_THRESHOLD = float(os.getenv("MEDBOOK_MATCH_THRESHOLD", "0.6"))
# Local name scores below this (typo-level difflib matches) go to the matcher
LOCAL_NAME_MATCH_SCORE = float(os.getenv("MEDBOOK_LOCAL_NAME_MATCH_SCORE", "0.8"))
DEFAULT_SPECIALTY = "General Practice"

WEEKDAYS = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

# Remote calls (store fetches, transcription, extraction)
REMOTE_TIMEOUT_SECONDS = float(os.getenv("MEDBOOK_REMOTE_TIMEOUT", "10.0"))
TRANSCRIPTION_TIMEOUT_SECONDS = float(
    os.getenv("MEDBOOK_TRANSCRIPTION_TIMEOUT", "30.0")
)
MAX_AUDIO_BYTES = 25 * 1024 * 1024

# Speech-to-text (OpenAI-compatible transcription endpoint, Groq by default)
TRANSCRIPTION_BASE_URL = os.getenv(
    "TRANSCRIPTION_BASE_URL", "https://api.groq.com/openai/v1"
)
TRANSCRIPTION_MODEL = os.getenv("TRANSCRIPTION_MODEL", "whisper-large-v3")
TRANSCRIPTION_LANGUAGE = os.getenv("TRANSCRIPTION_LANGUAGE", "en")

# LLM Configuration
DEFAULT_TEMPERATURE = 0.7
EXTRACTION_TEMPERATURE = 0.3
MATCH_TEMPERATURE = 0.1
DEFAULT_MAX_TOKENS = 500

# Default models per provider (override with {PROVIDER}_MODEL env var)
# API keys expected in .env:
#   GROQ_API_KEY, ANTHROPIC_API_KEY, OPENAI_API_KEY
DEFAULT_MODELS = {
    "groq": os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile"),
    "anthropic": os.getenv("ANTHROPIC_MODEL", "claude-haiku-4-5"),
    "openai": os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
}
GROQ_BASE_URL = os.getenv("GROQ_BASE_URL", "https://api.groq.com/openai/v1")

# Retry Configuration
MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "3"))
RETRY_BASE_DELAY = float(os.getenv("LLM_RETRY_DELAY", "1.0"))  # seconds
RETRY_MAX_DELAY = float(os.getenv("LLM_RETRY_MAX_DELAY", "30.0"))  # seconds

# Free-text limits for interpret / conversation input
MAX_UTTERANCE_LENGTH = int(os.getenv("MEDBOOK_MAX_UTTERANCE_LENGTH", "1000"))
