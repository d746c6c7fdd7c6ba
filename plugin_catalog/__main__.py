"""Main entry point for the Plugin Catalog.

This allows the package to be run as:
    python -m plugin_catalog
"""

from .cli.main import cli

if __name__ == "__main__":
    cli()
