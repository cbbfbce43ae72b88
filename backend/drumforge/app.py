"""FastAPI application entrypoint.

Usage:
    uvicorn drumforge.app:app --reload
"""
from drumforge.main import create_app

app = create_app()
