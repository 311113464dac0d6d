"""
IdeaHub Review Platform
Data model package.

Every model module imports the shared ``db`` instance from here:

    from ideahub.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
