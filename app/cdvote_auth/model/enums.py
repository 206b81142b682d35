import enum


class UserRole(str, enum.Enum):
    super_admin = "super_admin"
    admin = "admin"
    staff = "staff"
