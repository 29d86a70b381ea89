"""Account actions: unlock, password reset and account expiration updates."""

import logging
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Union

from ad_lookup.clients import DomainClient
from ad_lookup.errors import InvalidQuery, MutationFailed, UnknownDomain
from ad_lookup.identity import parse_account_name
from ad_lookup.models import AccountOperation
from ad_lookup.timestamps import encode_filetime

logger = logging.getLogger(__name__)


class AccountActionAdapter:
    """Translates help-desk actions into domain client mutations."""

    def __init__(self, clients: Mapping[str, DomainClient]):
        self.clients = clients

    def _resolve(self, account_id: str, domain: Optional[str]):
        parsed = parse_account_name(account_id, self.clients.keys())
        key = (domain or parsed.domain_hint or "").strip().lower()
        if not key:
            raise InvalidQuery(f"No domain given for {account_id}")
        client = self.clients.get(key)
        if client is None:
            raise UnknownDomain(domain or key)
        return parsed.account_id, key, client

    def _mutate(
        self,
        account_id: str,
        domain: Optional[str],
        operation: AccountOperation,
        payload: Dict[str, Any],
    ) -> None:
        account, key, client = self._resolve(account_id, domain)
        try:
            accepted = client.mutate(account, operation, payload)
        except Exception as e:
            logger.error(f"[{key.upper()}] {operation.value} failed for {account}: {e}")
            raise MutationFailed(account, operation.value, str(e)) from e

        if accepted is False:
            logger.error(f"[{key.upper()}] {operation.value} rejected for {account}")
            raise MutationFailed(account, operation.value, "Rejected by directory")

        logger.info(f"[{key.upper()}] {operation.value} succeeded for {account}")

    def unlock_account(self, account_id: str, domain: Optional[str] = None) -> None:
        self._mutate(account_id, domain, AccountOperation.UNLOCK, {"lockoutTime": "0"})

    def reset_password(self, account_id: str, domain: Optional[str], new_secret: str) -> None:
        self._mutate(account_id, domain, AccountOperation.RESET_PASSWORD, {"password": new_secret})

    def set_expiration(self, account_id: str, domain: Optional[str], expires: Union[datetime, date]) -> None:
        """Set accountExpires, encoding the date as a FILETIME tick count."""
        self._mutate(
            account_id,
            domain,
            AccountOperation.SET_EXPIRATION,
            {"accountExpires": encode_filetime(expires)},
        )
