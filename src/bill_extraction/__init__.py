"""
PDF bill → multi-strategy field extraction → best-confidence BillDetails

Runs several interchangeable extraction strategies (regex heuristics over the
PDF text layer, an AI completion service) concurrently over the same document
and returns the single most confident result.
"""

__version__ = "0.1.0"
