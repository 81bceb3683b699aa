"""
Student model for managing student information.
"""
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from database import Base


class Student(Base):
    """Model for student information."""
    __tablename__ = 'students'

    id = Column(Integer, primary_key=True)
    first_name = Column(String(250), nullable=False)
    last_name = Column(String(250))
    email = Column(String(255))
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    applications = relationship('Application', back_populates='student')

    def __repr__(self):
        return f'<Student {self.id}: {self.full_name}>'

    @property
    def full_name(self) -> str:
        return ' '.join(part for part in (self.first_name, self.last_name) if part)

    def to_dict(self):
        """Convert student to dictionary for API responses."""
        return {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'email': self.email
        }
