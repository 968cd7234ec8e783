"""
Artifact Studio
Database models package.

All models share the single ``db`` extension instance created here and
bound to the application in ``create_app``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
