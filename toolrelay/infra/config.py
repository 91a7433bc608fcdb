"""Configuration management."""

import os
from typing import Optional
from pathlib import Path
from dotenv import load_dotenv

# Load .env file from project root
# This ensures dotenv works regardless of where the script is run from
project_root = Path(__file__).parent.parent.parent
env_file = project_root / ".env"

# override=False means existing environment variables take precedence
load_dotenv(dotenv_path=env_file, override=False)


class Config:
    """Application configuration."""
    # OpenAI
    OPENAI_API_KEY: Optional[str] = os.getenv("OPENAI_API_KEY")
    OPENAI_ORGANIZATION_ID: Optional[str] = os.getenv("OPENAI_ORGANIZATION_ID")
    OPENAI_BASE_URL: Optional[str] = os.getenv("OPENAI_BASE_URL")

    # Application
    APP_ENV: str = os.getenv("APP_ENV", "development")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Timeouts (seconds), applied by the model and HTTP clients
    LLM_CALL_TIMEOUT: float = float(os.getenv("LLM_CALL_TIMEOUT", "120"))
    TOOL_EXECUTION_TIMEOUT: float = float(os.getenv("TOOL_EXECUTION_TIMEOUT", "30"))


config = Config()
