"""
Remote infrastructure package.

Provides the HTTP client for the CRM record API.
"""

from sheetsync.infrastructure.remote.client import HttpRecordClient

__all__ = ["HttpRecordClient"]
