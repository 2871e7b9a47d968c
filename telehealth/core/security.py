from enum import Enum


class UserRole(str, Enum):
    """Roles a client can declare on the notification socket."""
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"
