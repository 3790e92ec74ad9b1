from . import health, classes, enrollments, payments

__all__ = [
    "health",
    "classes",
    "enrollments",
    "payments",
]
