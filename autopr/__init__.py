"""autopr - GitHub pull request automation.

A Python CLI that turns branch naming conventions into pull requests, rotates
reviewers across named groups, surfaces merge conflicts, and uses an AI
backend for titles, descriptions, reviews and commit messages.
"""

__version__ = "0.1.0"
