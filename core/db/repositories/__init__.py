"""
Per-domain repository modules for database access.

Functions take an explicit ``Session`` first and keyword-only arguments after
it; callers own transaction boundaries unless a function says otherwise.
"""
