"""
WSGI entry point.

Usage:
    flask --app wsgi run
    gunicorn wsgi:app
"""

from artifact_studio import create_app

app = create_app()
