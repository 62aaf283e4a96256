"""
Data Bank Reporting

Read-only analytical reports over the Data Bank regions, customer node
allocations and customer transactions, using Decimal for all money math.
"""

__version__ = "1.0.0"
