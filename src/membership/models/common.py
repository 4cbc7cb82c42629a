"""
membership/models/common.py — Base types of the membership domain.
"""

from pydantic import BaseModel


class MembershipBase(BaseModel):
    """Base Pydantic model for membership schemas."""

    model_config = {"str_strip_whitespace": True}
