"""
Directory Search Orchestrator
=============================
Runs user searches against one or all configured domains.

Per domain, a search is tiered:
1. Exact sAMAccountName match with a short time budget
2. Only if that matched nobody, a substring match with a longer budget

Every query attempt runs on a worker thread of its domain's own pool and is
waited on with its own timer. A timed-out attempt is abandoned (cancel
requested, wait released) and reported as SearchTimeout; it never falls
through to the next tier. Abandoned workers of a hung domain only ever
occupy that domain's pool.

Searching domain "all" runs the per-domain searches concurrently and joins
them. Domains that fail are logged and dropped as long as at least one
domain answered; if every domain fails the call raises SearchFailed.
"""

import concurrent.futures
import logging
import math
from typing import Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from ad_lookup.clients import DomainClient, RawRecord
from ad_lookup.config import ALL_DOMAINS, Settings
from ad_lookup.errors import (
    DirectoryLookupError,
    InvalidQuery,
    NotFound,
    SearchFailed,
    SearchTimeout,
    UnknownDomain,
)
from ad_lookup.filters import USER_CLASS, broad_filter, exact_filter, sanitize_term, structured_filter
from ad_lookup.identity import parse_account_name
from ad_lookup.mapper import AttributeMapper
from ad_lookup.models import NormalizedUser, QueryOptions, SearchFilter

logger = logging.getLogger(__name__)

HEALTH_CHECK_FILTER = "(&(objectClass=user)(cn=*))"


class SearchOrchestrator:
    """Executes tiered, timeout-bounded user searches across domain clients."""

    def __init__(
        self,
        clients: Mapping[str, DomainClient],
        mapper: Optional[AttributeMapper] = None,
        exact_timeout: float = 3.0,
        broad_timeout: float = 30.0,
        size_limit: int = 10,
        min_term_length: int = 2,
        max_workers: int = 8,
    ):
        """
        Args:
            clients: Domain key -> client mapping, built once at startup
            mapper: Attribute mapper for raw records
            exact_timeout: Budget in seconds for the exact-match tier
            broad_timeout: Budget in seconds for substring and advanced searches
            size_limit: Maximum entries the directory returns per query
            min_term_length: Shortest accepted (sanitized) search term
            max_workers: Threads available per domain for outstanding queries
        """
        self.clients = clients
        self.mapper = mapper or AttributeMapper()
        self.exact_timeout = exact_timeout
        self.broad_timeout = broad_timeout
        self.size_limit = size_limit
        self.min_term_length = min_term_length
        self._query_pools: Dict[str, concurrent.futures.ThreadPoolExecutor] = {
            domain: concurrent.futures.ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix=f"ad-query-{domain}",
            )
            for domain in clients
        }

    @classmethod
    def from_settings(cls, settings: Settings, clients: Mapping[str, DomainClient]) -> "SearchOrchestrator":
        return cls(
            clients,
            mapper=AttributeMapper(password_max_age_days=settings.password_max_age_days),
            exact_timeout=settings.exact_timeout_seconds,
            broad_timeout=settings.broad_timeout_seconds,
            size_limit=settings.size_limit,
            min_term_length=settings.min_term_length,
            max_workers=settings.max_workers,
        )

    def close(self):
        """Release worker threads without waiting on abandoned queries."""
        for pool in self._query_pools.values():
            pool.shutdown(wait=False, cancel_futures=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @staticmethod
    def is_all(domain: Optional[str]) -> bool:
        return (domain or "").strip().lower() == ALL_DOMAINS

    def resolve_domains(self, domain: str) -> List[str]:
        """Map a domain argument ("all" or a key) to configured domain keys."""
        key = (domain or "").strip().lower()
        if key == ALL_DOMAINS:
            return list(self.clients)
        if key not in self.clients:
            raise UnknownDomain(domain)
        return [key]

    def _run_query(
        self,
        domain: str,
        tier: str,
        search_filter: str,
        timeout: float,
        size_limit: Optional[int] = None,
    ) -> List[RawRecord]:
        """Run one query attempt against a domain, bounded by ``timeout``."""
        options = QueryOptions(
            size_limit=size_limit or self.size_limit,
            time_limit=max(1, math.ceil(timeout)),
        )
        client = self.clients[domain]
        logger.debug(f"[{domain.upper()}] {tier} filter: {search_filter}")

        future = self._query_pools[domain].submit(client.query, search_filter, options)
        done, _ = concurrent.futures.wait([future], timeout=timeout)
        if not done:
            future.cancel()
            logger.warning(f"[{domain.upper()}] {tier} search timed out after {timeout:g}s")
            raise SearchTimeout(domain, tier, timeout)

        try:
            records = future.result()
        except Exception as e:
            logger.error(f"[{domain.upper()}] Search Error: {e}")
            raise SearchFailed(f"Search failed: {e}") from e

        logger.info(f"[{domain.upper()}] Found {len(records)} entries ({tier})")
        return records

    def _search_domain(self, domain: str, term: str) -> List[NormalizedUser]:
        """Exact tier first, substring tier only when the exact tier found nobody."""
        logger.info(f"[{domain.upper()}] Searching for: {term}")
        records = self._run_query(domain, "exact", exact_filter(term), self.exact_timeout)
        users = self.mapper.normalize_all(records, domain=domain)
        if users:
            return users

        logger.info(f"[{domain.upper()}] No exact match for {term}, broadening search")
        records = self._run_query(domain, "broad", broad_filter(term), self.broad_timeout)
        return self.mapper.normalize_all(records, domain=domain)

    def _fan_out(self, domains: List[str], search: Callable[[str], List[NormalizedUser]]) -> List[NormalizedUser]:
        """
        Run ``search`` for every domain concurrently and join the results.

        Results keep the configured domain order. Failed domains are dropped
        unless all of them failed.
        """
        if not domains:
            return []

        results: Dict[str, List[NormalizedUser]] = {}
        errors: Dict[str, Exception] = {}

        with concurrent.futures.ThreadPoolExecutor(
            max_workers=len(domains),
            thread_name_prefix="ad-domain",
        ) as pool:
            futures = {pool.submit(search, domain): domain for domain in domains}
            for future in concurrent.futures.as_completed(futures):
                domain = futures[future]
                try:
                    results[domain] = future.result()
                except Exception as e:
                    errors[domain] = e
                    logger.warning(f"[{domain.upper()}] Dropped from results: {e}")

        if not results:
            summary = "; ".join(f"{domain}: {errors[domain]}" for domain in domains)
            logger.error(f"Search failed in all domains: {summary}")
            raise SearchFailed(f"Search failed in all domains: {summary}", domain_errors=errors)

        merged: List[NormalizedUser] = []
        for domain in domains:
            merged.extend(results.get(domain, []))
        logger.info(f"Found {len(merged)} users across {len(results)}/{len(domains)} domains")
        return merged

    def search_users(self, term: str, domain: str) -> List[NormalizedUser]:
        """
        Search users by login name, display name or DN.

        Args:
            term: Free-text search term (sanitized to letters and digits)
            domain: Domain key, or "all" for every configured domain

        Returns:
            Normalized users, possibly empty

        Raises:
            InvalidQuery: if the sanitized term is shorter than the minimum
            UnknownDomain: if the domain is not configured
            SearchTimeout: if a single-domain query attempt ran out of time
            SearchFailed: on directory errors, or when every domain failed
        """
        clean = sanitize_term(term)
        if len(clean) < self.min_term_length:
            raise InvalidQuery(
                f"Search term must be at least {self.min_term_length} letters or digits"
            )

        domains = self.resolve_domains(domain)
        if self.is_all(domain):
            return self._fan_out(domains, lambda d: self._search_domain(d, clean))
        return self._search_domain(domains[0], clean)

    def advanced_search(self, criteria: Union[SearchFilter, Mapping], domain: str) -> List[NormalizedUser]:
        """
        Search with structured criteria (name, employee id, email, department).

        Raises:
            InvalidQuery: if the criteria are invalid or none survives sanitization
            UnknownDomain: if the domain is not configured
            SearchFailed: on directory errors, or when every domain failed
        """
        if not isinstance(criteria, SearchFilter):
            try:
                criteria = SearchFilter(**criteria)
            except ValidationError as e:
                raise InvalidQuery(f"Invalid search criteria: {e}") from e

        search_filter = structured_filter(criteria)
        if search_filter == USER_CLASS:
            raise InvalidQuery("At least one search criterion is required")

        def search(d: str) -> List[NormalizedUser]:
            records = self._run_query(d, "advanced", search_filter, self.broad_timeout)
            return self.mapper.normalize_all(records, domain=d)

        domains = self.resolve_domains(domain)
        if self.is_all(domain):
            return self._fan_out(domains, search)
        return search(domains[0])

    def find_user(self, account_id: str, domain: Optional[str] = None) -> NormalizedUser:
        """
        Look up a single account.

        Accepts bare, UPN and NT-style names. When several users match, the
        one whose login name equals the account id wins, else the first.
        Without a domain, the NT prefix or UPN suffix of the name selects it.

        Raises:
            UnknownDomain: if the domain is not configured
            NotFound: if nobody matched
        """
        parsed = parse_account_name(account_id, self.clients.keys())
        domain = domain or parsed.domain_hint
        if not domain:
            raise InvalidQuery(f"No domain given for {account_id}")

        users = self.search_users(parsed.account_id, domain)
        if not users:
            raise NotFound(parsed.account_id, domain)

        wanted = parsed.account_id.lower()
        for user in users:
            if user.account_id.lower() == wanted:
                return user
        return users[0]

    def check_connection(self, domain: str) -> Dict:
        """
        Probe a domain with a one-entry query.

        Returns:
            Dict with success and message; directory failures are reported,
            not raised

        Raises:
            UnknownDomain: if the domain is not configured
        """
        if self.is_all(domain):
            raise UnknownDomain(domain)
        key = self.resolve_domains(domain)[0]

        logger.info(f"[{key.upper()}] Testing connection...")
        try:
            self._run_query(key, "health", HEALTH_CHECK_FILTER, self.broad_timeout, size_limit=1)
        except DirectoryLookupError as e:
            message = f"Connection failed: {e.message}"
            logger.error(f"[{key.upper()}] {message}")
            return {"success": False, "message": message}

        logger.info(f"[{key.upper()}] Connection test successful")
        return {"success": True, "message": "Connection successful"}

    def check_all_connections(self) -> Dict[str, Dict]:
        return {domain: self.check_connection(domain) for domain in self.clients}
