"""
Allowance Tracker - Source Package

A per-child allowance ledger with savings goals, stored as plain CSV
files and versioned with git.

DESIGN PRINCIPLES:
1. Validate before writing, never after
2. Fail early, fail visibly
3. No silent corrections
4. Every mutation must be auditable
5. History is additive: files are versioned, goals and control attempts are append-only
"""

__version__ = "1.0.0"
__author__ = "Allowance Tracker Team"
