"""
Declarative base shared by all models.
"""
from sqlalchemy.orm import declarative_base

# Create base class for models
Base = declarative_base()
