"""
Infrastructure package - Persistence for invoices and import errors.
"""
