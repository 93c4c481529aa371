"""
Pharmacy insurance claims core.

Coverage calculation, claim status lifecycle and eligibility checks for
pharmacy sales billed to insurance providers.
"""

__version__ = "0.1.0"
