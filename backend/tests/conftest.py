"""Root conftest — shared test configuration."""

import os

# Ensure tests never touch a real database or create schema on a shared file
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
os.environ.setdefault("DATABASE_CREATE_SCHEMA", "false")
os.environ.setdefault("LOG_FORMAT", "text")
