"""
Directory Domain Clients
========================
A domain client is the only thing that talks to a directory server. The
search orchestrator and the account-action adapter hold a mapping of
domain key -> client, built once at startup by build_domain_clients(), and
call two capabilities on it:

- query(filter, options) -> list of raw records (attribute -> list of str)
- mutate(account_id, operation, payload) -> True, or raise on rejection

Ldap3DomainClient implements both over ldap3, opening a connection per
call and unbinding when done.
"""

import logging
import ssl
from typing import Any, Dict, List, Mapping, Optional

from ldap3 import BASE, LEVEL, MODIFY_REPLACE, SUBTREE, Connection, Server, Tls
from ldap3.utils.conv import escape_filter_chars

from ad_lookup.config import DomainSettings, Settings, load_all_domain_settings
from ad_lookup.errors import DirectoryClientError
from ad_lookup.models import AccountOperation, QueryOptions, SearchScope

logger = logging.getLogger(__name__)

LDAP_SUCCESS = 0
LDAP_SIZE_LIMIT_EXCEEDED = 4

SCOPES = {
    SearchScope.BASE: BASE,
    SearchScope.ONE: LEVEL,
    SearchScope.SUB: SUBTREE,
}

RawRecord = Dict[str, List[str]]


class DomainClient:
    """Capability interface for one directory domain."""

    def __init__(self, domain: str):
        self.domain = domain

    def query(self, search_filter: str, options: QueryOptions) -> List[RawRecord]:
        raise NotImplementedError

    def mutate(self, account_id: str, operation: AccountOperation, payload: Mapping[str, Any]) -> bool:
        raise NotImplementedError


class Ldap3DomainClient(DomainClient):
    """Domain client backed by an ldap3 connection per call."""

    def __init__(self, settings: DomainSettings, connect_timeout: int = 10):
        super().__init__(settings.domain)
        self.settings = settings
        self.connect_timeout = connect_timeout
        self._server = None

    def _get_server(self) -> Server:
        """Get or create the ldap3 Server for this domain."""
        if self._server is None:
            tls_config = None
            if self.settings.url.lower().startswith("ldaps://"):
                tls_config = Tls(
                    validate=ssl.CERT_REQUIRED if self.settings.verify_certificate else ssl.CERT_NONE,
                    ca_certs_file=self.settings.ca_certificate,
                )
            self._server = Server(
                self.settings.url,
                tls=tls_config,
                connect_timeout=self.connect_timeout,
            )
            logger.info(f"[{self.domain.upper()}] Created directory server for {self.settings.url}")
        return self._server

    def _connect(self) -> Connection:
        return Connection(
            self._get_server(),
            user=self.settings.username or None,
            password=self.settings.password or None,
            auto_bind=True,
            raise_exceptions=False,
            receive_timeout=self.connect_timeout,
        )

    @staticmethod
    def _result_message(conn: Connection, default: str) -> str:
        result = conn.result or {}
        return result.get("message") or result.get("description") or default

    @staticmethod
    def _raw_record(entry: Mapping[str, Any], attributes: List[str]) -> RawRecord:
        """Decode raw attribute bytes, keeping the requested attribute spelling."""
        canonical = {name.lower(): name for name in attributes}
        record: RawRecord = {}
        for name, values in (entry.get("raw_attributes") or {}).items():
            key = canonical.get(name.lower(), name)
            record[key] = [
                v.decode("utf-8", errors="replace") if isinstance(v, bytes) else str(v)
                for v in values
            ]
        if "distinguishedName" not in record and entry.get("dn"):
            record["distinguishedName"] = [entry["dn"]]
        return record

    def query(self, search_filter: str, options: QueryOptions) -> List[RawRecord]:
        conn = self._connect()
        try:
            logger.debug(f"[{self.domain.upper()}] Query {search_filter} (size_limit={options.size_limit}, time_limit={options.time_limit})")
            conn.search(
                search_base=self.settings.base_dn,
                search_filter=search_filter,
                search_scope=SCOPES[options.scope],
                attributes=options.attributes,
                size_limit=options.size_limit,
                time_limit=options.time_limit,
            )
            code = (conn.result or {}).get("result")
            if code not in (LDAP_SUCCESS, LDAP_SIZE_LIMIT_EXCEEDED):
                raise DirectoryClientError(self._result_message(conn, "Search failed"), result_code=code)

            return [
                self._raw_record(entry, options.attributes)
                for entry in (conn.response or [])
                if entry.get("type") == "searchResEntry"
            ]
        finally:
            conn.unbind()

    def _find_user_dn(self, conn: Connection, account_id: str) -> Optional[str]:
        conn.search(
            search_base=self.settings.base_dn,
            search_filter=f"(&(objectClass=user)(sAMAccountName={escape_filter_chars(account_id)}))",
            search_scope=SUBTREE,
            attributes=["distinguishedName"],
            size_limit=1,
        )
        for entry in conn.response or []:
            if entry.get("type") == "searchResEntry":
                return entry.get("dn")
        return None

    def mutate(self, account_id: str, operation: AccountOperation, payload: Mapping[str, Any]) -> bool:
        conn = self._connect()
        try:
            user_dn = self._find_user_dn(conn, account_id)
            if not user_dn:
                raise DirectoryClientError(f"Account {account_id} not found in {self.domain}")

            if operation == AccountOperation.UNLOCK:
                outcome = conn.extend.microsoft.unlock_account(user=user_dn)
            elif operation == AccountOperation.RESET_PASSWORD:
                outcome = conn.extend.microsoft.modify_password(
                    user=user_dn,
                    new_password=payload["password"],
                )
            elif operation == AccountOperation.SET_EXPIRATION:
                outcome = conn.modify(
                    user_dn,
                    {"accountExpires": [(MODIFY_REPLACE, [payload["accountExpires"]])]},
                )
            else:
                raise DirectoryClientError(f"Unsupported operation: {operation}")

            if outcome is not True:
                code = (conn.result or {}).get("result")
                raise DirectoryClientError(self._result_message(conn, "Operation rejected"), result_code=code)
            return True
        finally:
            conn.unbind()


def build_domain_clients(settings: Settings, environ: Optional[Dict[str, str]] = None) -> Dict[str, DomainClient]:
    """
    Build the domain -> client mapping once at process start.

    Raises:
        ConfigurationError: if any configured domain lacks URL or base DN
    """
    clients: Dict[str, DomainClient] = {}
    for key, domain_settings in load_all_domain_settings(settings, environ).items():
        logger.info(
            f"[{key.upper()}] Initializing directory client: url={domain_settings.url}, "
            f"base_dn={domain_settings.base_dn}, "
            f"username={'(anonymous)' if domain_settings.anonymous else '(provided)'}"
        )
        clients[key] = Ldap3DomainClient(domain_settings, connect_timeout=settings.connect_timeout_seconds)
    return clients
