"""
Infrastructure Layer
=====================

Technical concerns shared across modules:
- Database engine and sessions
"""
