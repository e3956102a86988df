"""
Functional core for the staking pool
"""
