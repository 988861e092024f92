"""Repository Migration Tool

Mirrors Git repositories, with every branch and tag, from Azure DevOps to
GitHub while tracking each transfer as a pollable migration record.
"""

__version__ = '0.1.0'

from .cli.main import main

__all__ = ['main']
