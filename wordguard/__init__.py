"""wordguard - a language server that flags configured words as diagnostics"""

__version__ = "0.1.0"
