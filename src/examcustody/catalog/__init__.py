"""Catalog - read-only view of exam entries, courses and users."""

from examcustody.catalog.profiles import (
    AdminProfile,
    LecturerProfile,
    RoleProfile,
    StudentProfile,
    parse_profile,
)
from examcustody.catalog.reader import CatalogReader

__all__ = [
    "AdminProfile",
    "CatalogReader",
    "LecturerProfile",
    "RoleProfile",
    "StudentProfile",
    "parse_profile",
]
