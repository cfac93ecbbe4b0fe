"""
LendWatch - statistical anomaly monitoring for on-chain lending protocols.
"""

__version__ = "1.0.0"
