"""
WSGI entry point and Flask CLI target (FLASK_APP=wsgi.py).

Usage:
    flask db upgrade                          # apply migrations
    flask sweep-rebuttal-deadlines            # expire overdue rebuttal windows
    flask run-job rebuttal_deadline_sweep     # same, recorded on the job registry
    flask toggle-job rebuttal_deadline_sweep --disable   # pause the job
"""

from app import create_app

app = create_app()
