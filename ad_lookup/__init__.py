"""
AD Lookup - help-desk directory search across organizational domains.

Provides:
- Tiered, timeout-bounded user search over one or all domains
- Normalization of raw directory attributes (FILETIME dates, account flags)
- Account actions: unlock, password reset, expiration update
"""

__version__ = "1.0.0"
