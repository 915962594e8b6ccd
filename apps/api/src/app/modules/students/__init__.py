"""
Students module - student list caching and credential generation.
"""

from app.modules.students.cache import StudentListCache
from app.modules.students.credentials import generate_password, generate_student_id
from app.modules.students.helpers import calculate_age

__all__ = ["StudentListCache", "calculate_age", "generate_password", "generate_student_id"]
