"""
Bitbucket Dependency Bumper

A command-line tool that finds every Bitbucket repository carrying a given
branch and bumps one dependency's pinned version in its package.json.
"""

__version__ = "1.0.0"
__author__ = "Dependency Bumper Team"
__description__ = "Batch dependency version updates across Bitbucket repositories"
