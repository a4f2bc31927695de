"""
Permission management feature module.

Implements flat Role-Based Access Control (RBAC): users hold roles,
roles grant permissions.
"""
