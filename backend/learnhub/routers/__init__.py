from learnhub.routers import (
    admin_assignments,
    admin_audit,
    admin_content,
    admin_courses,
    admin_employees,
    admin_modules,
    admin_progress,
    content,
    health,
    learn,
    me,
)

__all__ = [
    "admin_assignments",
    "admin_audit",
    "admin_content",
    "admin_courses",
    "admin_employees",
    "admin_modules",
    "admin_progress",
    "content",
    "health",
    "learn",
    "me",
]
