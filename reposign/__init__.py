"""
reposign - RSA signing of package repository indexes and package archives.
"""

__all__ = [
    "errors",
    "keys",
    "signer",
    "meta",
    "reconcile",
    "repository",
    "sign",
    "config",
]
