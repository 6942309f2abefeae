import enum


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"
    DOCTOR = "DOCTOR"
    NURSE = "NURSE"
    PATIENT = "PATIENT"
    OPD_MANAGER = "OPD_MANAGER"
    MEDICAL_STORE = "MEDICAL_STORE"
    PATHOLOGY_LAB = "PATHOLOGY_LAB"
    TECHNICIAN = "TECHNICIAN"

    @classmethod
    def parse(cls, value):
        """Return the matching role or None for unknown strings."""
        try:
            return cls(value)
        except ValueError:
            return None
