"""
patch-cli: reconciles a local installation against a remote manifest and
fetches only the files that are missing or changed.
"""

__version__ = "1.0.0"
