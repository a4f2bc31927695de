"""
User feature module.

Users are the principals that hold roles.
"""
