"""
Database initialization script.

Run this to create the database tables:
    python -m mission_clocks.db.init_db
"""

from mission_clocks.config import get_settings
from mission_clocks.db.database import create_db_engine, init_db

if __name__ == "__main__":
    settings = get_settings()
    print(f"Initializing database at {settings.database_url}...")
    init_db(create_db_engine(settings.database_url, echo=settings.db_echo))
    print("Database initialization complete!")
