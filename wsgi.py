"""
WSGI / Flask CLI entry point.

Usage:
    flask --app wsgi seed-demo
    flask --app wsgi db migrate -m "description"
    gunicorn wsgi:app
"""

from college_admin import create_app

app = create_app()
