"""
Chain verification.
"""

from .chain import Broken, ChainVerifier, Ok, Tampered, VerificationResult

__all__ = ["Broken", "ChainVerifier", "Ok", "Tampered", "VerificationResult"]
