"""
SheetSync - two-way sync between a CRM and a spreadsheet mirror.

Layers:
    domain          pure types and rules
    application     the sync engine
    infrastructure  SQLite, openpyxl, HTTP, config, logging
    interface       command-line interface
"""

__version__ = "0.1.0"
