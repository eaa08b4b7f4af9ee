"""
Test configuration: keep the API module off the real database and log file.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")
