"""ASGI entry point: ``uvicorn main:app``.

Configuration comes from ``ITR_*`` environment variables (see itr/settings.py).
"""
from itr.api import create_app

app = create_app()
