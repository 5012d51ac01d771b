"""
Treasury Ledger - Source Package

A small treasury ledger for a volunteer choir association: members,
registration fees, activities and cash transactions, with a fiscal year
closing that freezes the past year into a read-only archive.

DESIGN PRINCIPLES:
1. One application state, changed only through mutators
2. Refusals are explicit, never silent
3. Archived data is never edited
4. Storage failures never lose the in-memory ledger
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Treasury Ledger Team"
