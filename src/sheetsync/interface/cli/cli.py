"""
CLI main entry point.
"""


def main() -> int:
    """
    Main entry point for the sheetsync CLI.

    Returns:
        int: Exit code (0 for success, non-zero for failure)
    """
    from .app import app

    app()
    return 0
