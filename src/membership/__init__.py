"""
membership — access-control and entitlement core of the MPJ membership platform.

Decides, for every request, whether an identity may proceed (status gate,
role gate) and which institution features it may use (leveling, payment
locks, crew slots, member numbers).
"""

__version__ = "0.4.0"
