"""
FlowInvoice - invoice import, credit notes and reporting backend.
"""

__version__ = "1.0.0"
