"""
chainpulse.

Activity analytics for a blockchain platform: on-chain contract events and
off-chain UI actions aggregated into per-wallet, per-contract, per-session
and per-day statistics.
"""

__version__ = "0.1.0"
