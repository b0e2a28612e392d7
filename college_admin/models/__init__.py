"""
College Administration Platform
SQLAlchemy extension instance shared by every model module.

Usage:
    from college_admin.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
