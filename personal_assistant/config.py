"""
Application configuration read from the environment (.env supported)
"""

import os

from dotenv import load_dotenv

from .gemini_client import DEFAULT_API_BASE, DEFAULT_MODEL

# Load environment variables
load_dotenv()


def _flag(name, default):
    return os.environ.get(name, default).lower() == 'true'


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')

    # Generative AI
    GEMINI_API_KEY = os.environ.get('GEMINI_API_KEY')
    GEMINI_API_BASE = os.environ.get('GEMINI_API_BASE', DEFAULT_API_BASE)
    GEMINI_MODEL = os.environ.get('GEMINI_MODEL', DEFAULT_MODEL)
    GEMINI_TIMEOUT = float(os.environ.get('GEMINI_TIMEOUT', '30'))

    # Storage: unset means in-memory
    STORAGE_DIR = os.environ.get('STORAGE_DIR')

    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')

    # Calendar
    CALENDAR_LOOKAHEAD_DAYS = int(os.environ.get('CALENDAR_LOOKAHEAD_DAYS', '30'))
    CALENDAR_MAX_RESULTS = int(os.environ.get('CALENDAR_MAX_RESULTS', '50'))

    # Assistant
    AUTO_EXTRACT_TASKS = _flag('AUTO_EXTRACT_TASKS', 'true')
    AUTO_UPDATE_PROFILE = _flag('AUTO_UPDATE_PROFILE', 'true')

    DEBUG = _flag('DEBUG', 'false')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    PORT = int(os.environ.get('PORT', 5002))
