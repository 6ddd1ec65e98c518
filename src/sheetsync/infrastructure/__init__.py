"""
Infrastructure layer package.

Concrete collaborators: SQLite state store, openpyxl worksheet adapter,
HTTP record client, configuration loading and logging setup.
"""
