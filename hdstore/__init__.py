"""
hdstore: per-user online storage backend for the Home Designer tools
Built with FastAPI + Uvicorn
"""

__version__ = "1.0.0"
__author__ = "hdstore"
__description__ = "Session-scoped file storage for floor maps, layouts and thumbnails"
