"""Configuration module for the LearnAble backend.

This module provides centralized configuration management, including directory
paths, API server settings, onboarding policy constants, and LLM configuration.
All configuration values can be overridden via environment variables.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# --- Directory Configuration ---

# Root directory of the project
ROOT_DIR = Path(__file__).parent.parent.resolve()

DATA_DIR = Path(os.getenv("DATA_DIR", str(ROOT_DIR / "data")))

# Uploaded documents live under DOCUMENTS_DIR/<user_id>/
DOCUMENTS_DIR_NAME = "documents"
DOCUMENTS_DIR = Path(os.getenv("DOCUMENTS_DIR", str(DATA_DIR / DOCUMENTS_DIR_NAME)))

# --- Database Configuration ---

DATABASE_URL: str = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR}/learnable.db")

# --- API Server Configuration ---

API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))

# CORS allowed origins (comma-separated list). Handlers are called from the
# hosted frontend and from local tooling, so the default is permissive.
_CORS_ALLOWED_ORIGINS_STR: str = os.getenv("CORS_ALLOWED_ORIGINS", "*")
CORS_ALLOWED_ORIGINS: List[str] = [
    origin.strip()
    for origin in _CORS_ALLOWED_ORIGINS_STR.split(",")
    if origin.strip()
]

# --- Logging Configuration ---

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# --- Authentication Configuration ---

JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "your-secret-key-change-in-production")
JWT_ALGORITHM: str = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(
    os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7))  # 7 days
)

# --- Onboarding Policy ---

# Codes are read aloud and copied by hand, so 0/O and 1/I/L are left out.
CODE_ALPHABET: str = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
SCHOOL_CODE_PREFIX: str = "SCH"
SCHOOL_CODE_LENGTH: int = 6
STUDENT_INVITE_CODE_LENGTH: int = 8
TEMPORARY_PASSWORD_LENGTH: int = 12

INVITATION_EXPIRE_DAYS: int = 7
SCHOOL_CODE_EXPIRE_HOURS: int = 24
SCHOOL_CODE_RATE_WINDOW_HOURS: int = 24
SCHOOL_CODE_RATE_LIMIT: int = 5
SCHOOL_CODE_MAX_ATTEMPTS: int = 5

# --- Documents ---

MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

# --- LLM Configuration ---

TEMPERATURE: float = float(os.getenv("TEMPERATURE", "0.7"))

# Default provider if user has no stored key
DEFAULT_LLM_PROVIDER: str = os.getenv("DEFAULT_LLM_PROVIDER", "openai")

# Key used to encrypt per-user provider API keys at rest
LLM_API_KEY_ENCRYPTION_KEY: Optional[str] = os.getenv("LLM_API_KEY_ENCRYPTION_KEY")

# Provider registry for OpenAI-compatible endpoints
LLM_PROVIDERS: Dict[str, Dict[str, Optional[str]]] = {
    "openai": {
        "display_name": "OpenAI",
        "base_url": None,
        "default_model": "gpt-4o-mini",
        "env_key": "OPENAI_API_KEY",
    },
    "deepseek": {
        "display_name": "DeepSeek",
        "base_url": "https://api.deepseek.com",
        "default_model": "deepseek-chat",
        "env_key": "DEEPSEEK_API_KEY",
    },
    "gemini": {
        "display_name": "Google Gemini",
        "base_url": "https://generativelanguage.googleapis.com/v1beta/openai/",
        "default_model": "gemini-2.5-flash",
        "env_key": "GOOGLE_API_KEY",
    },
}

# --- Chat Configuration ---

CHAT_HISTORY_LIMIT: int = 10
CHAT_MAX_SOURCES: int = 3
CHAT_DOCUMENT_CHAR_LIMIT: int = 3000
DEFAULT_SESSION_TOPIC: str = "General Chat"


def get_user_doc_dir(user_id: str) -> Path:
    """Return the storage directory for one user's uploads."""
    return DOCUMENTS_DIR / user_id
