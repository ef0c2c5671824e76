from learnhub.models.tenant import MembershipRole, Profile, Tenant, TenantMembership
from learnhub.models.course import ContentItem, ContentSource, ContentType, Course, CourseStatus, Module
from learnhub.models.assignment import CourseAssignment
from learnhub.models.progress import ContentProgress
from learnhub.models.audit import AuditAction, AuditLog

__all__ = [
    "Tenant",
    "Profile",
    "TenantMembership",
    "MembershipRole",
    "Course",
    "CourseStatus",
    "Module",
    "ContentItem",
    "ContentType",
    "ContentSource",
    "CourseAssignment",
    "ContentProgress",
    "AuditLog",
    "AuditAction",
]
