"""
Data models for directory lookups.

NormalizedUser and its parts are plain dataclasses handed to callers;
SearchFilter is a pydantic model because it arrives from operator input.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from ad_lookup.timestamps import format_date

USER_ATTRIBUTES = [
    "sAMAccountName",
    "displayName",
    "mail",
    "department",
    "userAccountControl",
    "distinguishedName",
    "cn",
    "userPrincipalName",
    "pwdLastSet",
    "accountExpires",
    "whenChanged",
    "lockoutTime",
    "msDS-UserPasswordExpiryTimeComputed",
]


# Legacy UI field; always "Active", the real state is in securityState
ACCOUNT_STATUS = "Active"


class AccountOperation(str, Enum):
    UNLOCK = "unlock"
    RESET_PASSWORD = "reset_password"
    SET_EXPIRATION = "set_expiration"


class SearchScope(str, Enum):
    BASE = "base"
    ONE = "one"
    SUB = "sub"


@dataclass
class QueryOptions:
    """Options passed with every directory query."""
    scope: SearchScope = SearchScope.SUB
    attributes: List[str] = field(default_factory=lambda: list(USER_ATTRIBUTES))
    size_limit: int = 10
    time_limit: int = 30   # seconds, enforced by the directory server


class SearchFilter(BaseModel):
    """Structured multi-field search criteria."""

    # Employee ids often arrive as JSON numbers
    model_config = ConfigDict(coerce_numbers_to_str=True)

    name: Optional[str] = None
    employee_id: Optional[str] = None
    email: Optional[str] = None
    department: Optional[str] = None

    def is_empty(self) -> bool:
        return not any(
            (value or "").strip()
            for value in (self.name, self.employee_id, self.email, self.department)
        )


@dataclass
class SecurityState:
    locked: bool = False
    disabled: bool = False
    password_expired: bool = False

    def labels(self) -> Dict[str, str]:
        """Yes/No labels as shown on the help-desk screens."""
        return {
            "Account Locked": "Yes" if self.locked else "No",
            "Account Disabled": "Yes" if self.disabled else "No",
            "Password Expired": "Yes" if self.password_expired else "No",
        }


@dataclass
class UserDates:
    """Account dates; None means unknown or not applicable."""
    password_last_set: Optional[datetime] = None
    password_expiration: Optional[datetime] = None
    account_expiration: Optional[datetime] = None
    last_modified: Optional[datetime] = None


@dataclass
class NormalizedUser:
    """A directory user with every field populated (empty string or None sentinel)."""
    account_id: str = ""
    display_name: str = ""
    full_name: str = ""
    email: str = ""
    department: str = ""
    principal_name: str = ""
    distinguished_name: str = ""
    domain: str = ""
    security: SecurityState = field(default_factory=SecurityState)
    dates: UserDates = field(default_factory=UserDates)

    def to_dict(self) -> Dict:
        """Serialize for UI consumption (camelCase keys, formatted dates)."""
        return {
            "accountId": self.account_id,
            "displayName": self.display_name,
            "fullName": self.full_name,
            "email": self.email,
            "department": self.department,
            "principalName": self.principal_name,
            "distinguishedName": self.distinguished_name,
            "domain": self.domain,
            "status": ACCOUNT_STATUS,
            "securityState": {
                "locked": self.security.locked,
                "disabled": self.security.disabled,
                "passwordExpired": self.security.password_expired,
            },
            "security": self.security.labels(),
            "dates": {
                "passwordLastSet": format_date(self.dates.password_last_set),
                "passwordExpiration": format_date(self.dates.password_expiration),
                "accountExpiration": format_date(self.dates.account_expiration),
                "lastModified": format_date(self.dates.last_modified),
            },
        }
