"""
stakepool: a staking pool paying several reward assets through time-bounded
release streams, using integer reward-per-share accounting.
"""

__version__ = "0.1.0"
