"""
Account Name Parsing

Operators paste account names in whatever form they have at hand:
- Bare login name: jdoe
- UPN format: jdoe@lux.example.com
- NT-style format: LUX\\jdoe

Directory filters and mutations only ever see the bare sAMAccountName.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional


class IdentityFormat(Enum):
    """Format in which the account name was provided"""
    BARE = "bare"           # "jdoe"
    UPN = "upn"             # "jdoe@lux.example.com"
    NT_STYLE = "nt_style"   # "LUX\jdoe"


@dataclass
class ParsedAccount:
    """Account name split into login name and optional domain hint"""
    account_id: str               # bare sAMAccountName
    domain_hint: Optional[str]    # configured domain key the name points at, if any
    original_format: IdentityFormat
    original_input: str

    def __str__(self) -> str:
        return self.account_id


def _match_domain(candidate: str, known_domains: Iterable[str]) -> Optional[str]:
    """Match an NT prefix or DNS suffix against the configured domain keys."""
    candidate = candidate.lower()
    labels = candidate.split(".")
    for domain in known_domains:
        key = domain.lower()
        if candidate == key or key in labels:
            return key
    return None


def parse_account_name(identity: str, known_domains: Iterable[str] = ()) -> ParsedAccount:
    """
    Parse an account name in any supported format.

    Examples:
        parse_account_name("jdoe") -> jdoe, no hint
        parse_account_name("LUX\\\\jdoe", ["lux"]) -> jdoe, hint "lux"
        parse_account_name("jdoe@essilor.corp", ["lux", "essilor"]) -> jdoe, hint "essilor"
    """
    original_input = identity
    identity = (identity or "").strip()
    known_domains = list(known_domains)

    if "\\" in identity:
        nt_domain, username = identity.split("\\", 1)
        return ParsedAccount(
            account_id=username.strip(),
            domain_hint=_match_domain(nt_domain, known_domains),
            original_format=IdentityFormat.NT_STYLE,
            original_input=original_input,
        )

    if "@" in identity:
        username, dns_domain = identity.rsplit("@", 1)
        return ParsedAccount(
            account_id=username.strip(),
            domain_hint=_match_domain(dns_domain, known_domains),
            original_format=IdentityFormat.UPN,
            original_input=original_input,
        )

    return ParsedAccount(
        account_id=identity,
        domain_hint=None,
        original_format=IdentityFormat.BARE,
        original_input=original_input,
    )
