"""
SalesBook - Source Package

A local-first bookkeeping core for a small business owner recording
daily sales and expenses.

DESIGN PRINCIPLES:
1. Nothing reaches the store without validation
2. A transaction and its daily summary are written together or not at all
3. Reports degrade to empty results; writes fail loudly
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "SalesBook Team"
