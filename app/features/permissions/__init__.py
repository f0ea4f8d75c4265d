"""
Permission management feature module.

Implements Role-Based Access Control (RBAC) over flat permission tags, layered
with "own vs all" ownership checks for contractor records.
"""
