"""
Main entry point for the CUR migration assessment package.
This allows running the package with: python -m cur_migration_assessment
"""

from .cli import main_sync

if __name__ == "__main__":
    main_sync()
