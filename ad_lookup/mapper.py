"""
Attribute Mapper
================
Turns raw directory records (attribute name -> value) into NormalizedUser
objects.

Security state comes from two independent signals:
- userAccountControl bitmask: ACCOUNTDISABLE (0x2), PASSWORD_EXPIRED (0x800000)
- lockoutTime: a present, non-zero value means the account is locked out

Raw records are never passed beyond this module.
"""

import logging
from datetime import timedelta
from typing import Any, Iterable, List, Mapping, Optional

from ad_lookup.models import NormalizedUser, SecurityState, UserDates
from ad_lookup.timestamps import decode_filetime, decode_generalized_time

logger = logging.getLogger(__name__)

ACCOUNTDISABLE = 0x2
PASSWORD_EXPIRED = 0x800000

DEFAULT_PASSWORD_MAX_AGE_DAYS = 90


def _first_value(value: Any) -> Any:
    """Collapse multi-valued attributes to their first value."""
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def attribute_text(raw: Mapping[str, Any], name: str) -> str:
    """Return a single-valued attribute as text, or empty string when absent."""
    value = _first_value(raw.get(name))
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


class AttributeMapper:
    """Maps raw directory records to NormalizedUser objects."""

    def __init__(self, password_max_age_days: int = DEFAULT_PASSWORD_MAX_AGE_DAYS):
        self.password_max_age = timedelta(days=password_max_age_days)

    def parse_account_control(self, raw: Mapping[str, Any]) -> int:
        """Parse userAccountControl as an unsigned 32-bit bitmask (missing -> 0)."""
        text = attribute_text(raw, "userAccountControl").strip()
        if not text:
            return 0
        try:
            return int(text) & 0xFFFFFFFF
        except ValueError:
            logger.warning(
                f"Ignoring non-numeric userAccountControl {text!r} for "
                f"{attribute_text(raw, 'sAMAccountName') or '(unknown account)'}"
            )
            return 0

    def security_state(self, raw: Mapping[str, Any]) -> SecurityState:
        uac = self.parse_account_control(raw)
        lockout = attribute_text(raw, "lockoutTime").strip()
        return SecurityState(
            locked=lockout not in ("", "0"),
            disabled=bool(uac & ACCOUNTDISABLE),
            password_expired=bool(uac & PASSWORD_EXPIRED),
        )

    def account_dates(self, raw: Mapping[str, Any]) -> UserDates:
        password_last_set = decode_filetime(attribute_text(raw, "pwdLastSet"))

        computed_expiry = attribute_text(raw, "msDS-UserPasswordExpiryTimeComputed").strip()
        if computed_expiry:
            password_expiration = decode_filetime(computed_expiry)
        elif password_last_set is not None:
            password_expiration = password_last_set + self.password_max_age
        else:
            password_expiration = None

        return UserDates(
            password_last_set=password_last_set,
            password_expiration=password_expiration,
            account_expiration=decode_filetime(attribute_text(raw, "accountExpires")),
            last_modified=decode_generalized_time(_first_value(raw.get("whenChanged"))),
        )

    def normalize(self, raw: Mapping[str, Any], domain: str = "") -> Optional[NormalizedUser]:
        """
        Normalize one raw record.

        Returns:
            NormalizedUser, or None when the record has no display name

        Raises:
            MalformedTimestamp: if a time attribute cannot be parsed
        """
        display_name = attribute_text(raw, "displayName")
        if not display_name.strip():
            return None

        return NormalizedUser(
            account_id=attribute_text(raw, "sAMAccountName"),
            display_name=display_name,
            full_name=attribute_text(raw, "cn"),
            email=attribute_text(raw, "mail"),
            department=attribute_text(raw, "department"),
            principal_name=attribute_text(raw, "userPrincipalName"),
            distinguished_name=attribute_text(raw, "distinguishedName"),
            domain=domain,
            security=self.security_state(raw),
            dates=self.account_dates(raw),
        )

    def normalize_all(self, records: Iterable[Mapping[str, Any]], domain: str = "") -> List[NormalizedUser]:
        """Normalize a batch, dropping records without a display name."""
        users = []
        skipped = 0
        for raw in records:
            user = self.normalize(raw, domain=domain)
            if user is None:
                skipped += 1
                continue
            users.append(user)
        if skipped:
            logger.debug(f"Skipped {skipped} record(s) without displayName")
        return users
