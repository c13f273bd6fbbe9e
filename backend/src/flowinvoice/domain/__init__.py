"""
Domain package - Core business logic with no external dependencies.

This package contains pure Python domain models and status rules
that encapsulate the invoice lifecycle.
"""
