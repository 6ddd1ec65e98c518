"""
Interface layer package.

User-facing entry points (command-line interface).
"""
