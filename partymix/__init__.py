"""
PartyMix - Unified Taste Profile Engine

Resolves a user's listening data from several streaming services into one
taste profile with a party-readiness score.
"""

__version__ = "0.1.0"
