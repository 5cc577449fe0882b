"""Bookshelf - a small CRUD HTTP service for book records.

Modules:
- Configuration (config.py)
- Data models (book.py)
- Connection pool and schema bootstrap (database.py)
- Book record operations (library.py)
- API endpoints (api.py)
- CLI interface (main.py)
"""

__version__ = "1.0.0"
