"""
Business logic services for steamguard.
"""

from steamguard.services.auth_service import AuthService
from steamguard.services.confirmation_service import ConfirmationService
from steamguard.services.enrollment_service import EnrollmentService
from steamguard.services.manifest_store import ManifestStore
from steamguard.services.time_sync import TimeSync

__all__ = [
    "AuthService",
    "ConfirmationService",
    "EnrollmentService",
    "ManifestStore",
    "TimeSync",
]
