"""
altverse transfer core

Quote engine, fee derivation, gas planning, chain switching and the
approve/deposit orchestrator behind cross-chain swaps, bridges and vault
deposits.
"""

__version__ = "0.1.0"
