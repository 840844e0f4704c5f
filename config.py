"""
Configuration Module

Loads environment variables and provides configuration settings for the Animify server.
Uses python-dotenv to load variables from a .env file for local development.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file (if it exists)
env_path = Path('.') / '.env'
load_dotenv(dotenv_path=env_path)


class Config:
    """
    Configuration class for the Animify application.

    All settings can be overridden via environment variables.
    """

    # ==========================================
    # ExH AI API Configuration
    # ==========================================

    # Base URL of the hosted generation API
    EXH_API_BASE_URL = os.getenv('EXH_API_BASE_URL', 'https://api.exh.ai').rstrip('/')

    # Token for chat, gallery image, video and face swap endpoints
    EXH_AI_API_TOKEN = os.getenv('EXH_AI_API_TOKEN', '')

    # Token for the animated story endpoint
    EXH_VIDEO_API_TOKEN = os.getenv('EXH_VIDEO_API_TOKEN', '')

    # Botify token and x-auth token for contextual photos
    EXH_BOTIFY_TOKEN = os.getenv('EXH_BOTIFY_TOKEN', '')
    X_AUTH_TOKEN = os.getenv('X_AUTH_TOKEN', '')

    # Request timeout for upstream calls (seconds).
    # Video generation can take minutes.
    EXH_REQUEST_TIMEOUT = int(os.getenv('EXH_REQUEST_TIMEOUT', '300'))

    # Photo model used for contextual chat photos
    CONTEXTUAL_PHOTO_MODEL = os.getenv('CONTEXTUAL_PHOTO_MODEL', 'elite')

    # ==========================================
    # Storage Configuration
    # ==========================================

    # Directory for uploaded and generated images
    UPLOAD_DIR = os.getenv('UPLOAD_DIR', 'uploads')

    # Directory for per-session state files (media items, chat/transform config)
    STATE_DIR = os.getenv('STATE_DIR', 'state')

    # Maximum accepted upload size in bytes (default 20 MB)
    MAX_UPLOAD_BYTES = int(os.getenv('MAX_UPLOAD_BYTES', str(20 * 1024 * 1024)))

    # Optional overrides of the bundled default JSON configs
    CHAT_CONFIG_FILE = os.getenv('CHAT_CONFIG_FILE', None)
    TRANSFORM_CONFIG_FILE = os.getenv('TRANSFORM_CONFIG_FILE', None)

    # ==========================================
    # Chat Configuration
    # ==========================================

    # Number of most recent messages sent to the chatbot as context
    CHAT_CONTEXT_MESSAGES = int(os.getenv('CHAT_CONTEXT_MESSAGES', '29'))

    # Maximum number of messages kept in memory per session
    MAX_CHAT_MESSAGES = int(os.getenv('MAX_CHAT_MESSAGES', '200'))

    # ==========================================
    # Server Configuration
    # ==========================================

    HOST = os.getenv('HOST', '0.0.0.0')
    PORT = int(os.getenv('PORT', '8000'))

    # Session cookie name
    SESSION_COOKIE_NAME = os.getenv('SESSION_COOKIE_NAME', 'animify_session_id')

    # ==========================================
    # Logging Configuration
    # ==========================================

    # Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Server log file
    SERVER_LOG_FILE = os.getenv('SERVER_LOG_FILE', 'animify_server.log')

    # ==========================================
    # Validation
    # ==========================================

    @classmethod
    def validate(cls):
        """
        Validate configuration values.

        Missing API tokens are not errors: the affected endpoints answer
        with HTTP 500 until the token is set.

        Raises:
            ValueError: If configuration is invalid
        """
        errors = []

        if not cls.EXH_API_BASE_URL.startswith(('http://', 'https://')):
            errors.append(
                f"EXH_API_BASE_URL must be an http(s) URL, got '{cls.EXH_API_BASE_URL}'"
            )

        if cls.EXH_REQUEST_TIMEOUT <= 0:
            errors.append(f"EXH_REQUEST_TIMEOUT must be positive, got {cls.EXH_REQUEST_TIMEOUT}")

        if cls.MAX_UPLOAD_BYTES <= 0:
            errors.append(f"MAX_UPLOAD_BYTES must be positive, got {cls.MAX_UPLOAD_BYTES}")

        if cls.CHAT_CONTEXT_MESSAGES <= 0:
            errors.append(
                f"CHAT_CONTEXT_MESSAGES must be positive, got {cls.CHAT_CONTEXT_MESSAGES}"
            )

        if cls.MAX_CHAT_MESSAGES < cls.CHAT_CONTEXT_MESSAGES:
            errors.append(
                f"MAX_CHAT_MESSAGES ({cls.MAX_CHAT_MESSAGES}) must be at least "
                f"CHAT_CONTEXT_MESSAGES ({cls.CHAT_CONTEXT_MESSAGES})"
            )

        if cls.PORT <= 0 or cls.PORT > 65535:
            errors.append(f"PORT must be between 1 and 65535, got {cls.PORT}")

        for name in ('CHAT_CONFIG_FILE', 'TRANSFORM_CONFIG_FILE'):
            path = getattr(cls, name)
            if path and not os.path.exists(path):
                errors.append(f"{name} points to a missing file: {path}")

        valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if cls.LOG_LEVEL.upper() not in valid_log_levels:
            errors.append(
                f"LOG_LEVEL must be one of {valid_log_levels}, got {cls.LOG_LEVEL}"
            )

        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )

    @classmethod
    def token_status(cls):
        """Report which upstream credentials are configured (never the values)."""
        return {
            "exh_ai_api_token": bool(cls.EXH_AI_API_TOKEN),
            "exh_video_api_token": bool(cls.EXH_VIDEO_API_TOKEN),
            "exh_botify_token": bool(cls.EXH_BOTIFY_TOKEN),
            "x_auth_token": bool(cls.X_AUTH_TOKEN),
        }

    @classmethod
    def display(cls):
        """Display current configuration (with API tokens masked)."""
        def mask(value):
            return '*' * 20 if value else 'NOT SET'

        print("=" * 60)
        print("Animify Configuration")
        print("=" * 60)
        print(f"ExH API Base URL: {cls.EXH_API_BASE_URL}")
        print(f"EXH_AI_API_TOKEN: {mask(cls.EXH_AI_API_TOKEN)}")
        print(f"EXH_VIDEO_API_TOKEN: {mask(cls.EXH_VIDEO_API_TOKEN)}")
        print(f"EXH_BOTIFY_TOKEN: {mask(cls.EXH_BOTIFY_TOKEN)}")
        print(f"X_AUTH_TOKEN: {mask(cls.X_AUTH_TOKEN)}")
        print(f"Request Timeout: {cls.EXH_REQUEST_TIMEOUT}s")
        print(f"Upload Dir: {cls.UPLOAD_DIR}")
        print(f"State Dir: {cls.STATE_DIR}")
        print(f"Chat Context Messages: {cls.CHAT_CONTEXT_MESSAGES}")
        print(f"Server: {cls.HOST}:{cls.PORT}")
        print(f"Log Level: {cls.LOG_LEVEL}")
        print("=" * 60)


# Validate configuration on import
try:
    Config.validate()
except ValueError as e:
    # Print validation errors but don't crash on import
    print(f"\n⚠️  Configuration Error:\n{e}\n")
