"""
LDAP filter construction for user searches.

LDAP filters have no parameter binding, so every free-text value is reduced
to ASCII letters and digits before it is embedded.
"""

import re
from typing import List

from ad_lookup.models import SearchFilter

USER_CLASS = "(objectClass=user)"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9]")

# SearchFilter field -> directory attribute
STRUCTURED_ATTRIBUTES = (
    ("name", "displayName"),
    ("employee_id", "employeeID"),
    ("email", "mail"),
    ("department", "department"),
)


def sanitize_term(term: str) -> str:
    """Strip everything outside [A-Za-z0-9]."""
    return _UNSAFE_CHARS.sub("", term or "")


def exact_filter(term: str) -> str:
    """Exact sAMAccountName match; the term is upper-cased."""
    clean = sanitize_term(term).upper()
    return f"(&{USER_CLASS}(sAMAccountName={clean}))"


def broad_filter(term: str) -> str:
    """Substring match on login name, display name or DN."""
    clean = sanitize_term(term)
    return (
        f"(&{USER_CLASS}(|(sAMAccountName=*{clean}*)"
        f"(displayName=*{clean}*)"
        f"(distinguishedName=*{clean}*)))"
    )


def structured_filter(criteria: SearchFilter) -> str:
    """
    OR one substring clause per non-empty criterion inside an objectClass AND.

    Criteria that sanitize to nothing are skipped; when none remain the
    catch-all ``(objectClass=user)`` is returned.
    """
    clauses: List[str] = []
    for field_name, attribute in STRUCTURED_ATTRIBUTES:
        clean = sanitize_term(getattr(criteria, field_name) or "")
        if clean:
            clauses.append(f"({attribute}=*{clean}*)")

    if not clauses:
        return USER_CLASS
    return f"(&{USER_CLASS}(|{''.join(clauses)}))"
