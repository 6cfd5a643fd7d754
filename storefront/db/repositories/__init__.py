"""
Per-domain repository modules for database access.

Functions take a SQLAlchemy ``Session`` and are meant to be run through
``DatabaseGateway.execute_in_session`` so they inherit its timeout and retry
policy.
"""
