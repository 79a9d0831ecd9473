# Export all ORM models for easy imports
from .models import Student, Scholarship, Application, TrainedModel

__all__ = [
    "Student",
    "Scholarship",
    "Application",
    "TrainedModel",
]
