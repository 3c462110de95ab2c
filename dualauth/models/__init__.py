"""Data models for dualauth."""

from .profile_models import ApiResponse, LoginIdentity, ProfileUpdate

__all__ = ["ApiResponse", "LoginIdentity", "ProfileUpdate"]
