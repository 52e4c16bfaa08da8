"""
Core package for RoleGate.

This package contains the access-control logic:
- Path templates & route matching
- Authorization decisions
- Role grant synchronization
- Component logging
"""
