"""
Balance Updater - Source Package

A manual data-entry tool that shows the latest balance of one account
and records a new balance, at most once per calendar day.

DESIGN PRINCIPLES:
1. Human enters → System normalizes → Store decides
2. Fail early, fail visibly
3. No silent corrections
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.2.1"
__author__ = "Balance Updater Team"
