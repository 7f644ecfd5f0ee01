"""
SiteService - tenant registry.

Every read of site data goes through require_site_access first: a caller
either owns the site or gets AccessDeniedError, with the same message
whether the site is missing or belongs to somebody else.
"""

from __future__ import annotations

import logging
from urllib.parse import urlparse
from uuid import uuid4

from trackflow.core.entities import Site
from trackflow.core.errors import AccessDeniedError
from trackflow.core.ports import SiteDirectoryPort, TimePort

from .models import SiteValidationError
from .ports import SiteDataPort, SiteRepoPort

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 200
MAX_DOMAIN_LENGTH = 253


# --- Access Guard ---


def require_site_access(sites: SiteDirectoryPort, site_id: str, owner_id: str) -> None:
    """Raise AccessDeniedError unless owner_id owns site_id."""
    owner = sites.resolve(site_id)
    if owner is None or owner != owner_id:
        logger.info("Denied access to site %s", site_id)
        raise AccessDeniedError()


# --- Validation Functions ---


def normalize_domain(domain: str) -> str:
    """Bare lower-case host: scheme, path, port and leading www. removed."""
    value = domain.strip().lower()
    if "://" not in value:
        value = f"//{value}"
    host = urlparse(value).hostname or ""
    if host.startswith("www."):
        host = host[4:]
    return host


def validate_site_data(name: str, domain: str) -> list[SiteValidationError]:
    """Validate site data."""
    errors: list[SiteValidationError] = []

    if not name or not name.strip():
        errors.append(
            SiteValidationError(
                code="name_required",
                message="Name is required",
                field="name",
            )
        )
    elif len(name) > MAX_NAME_LENGTH:
        errors.append(
            SiteValidationError(
                code="name_too_long",
                message=f"Name must be {MAX_NAME_LENGTH} characters or less",
                field="name",
            )
        )

    if not domain or not domain.strip():
        errors.append(
            SiteValidationError(
                code="domain_required",
                message="Domain is required",
                field="domain",
            )
        )
    else:
        host = normalize_domain(domain)
        if not host or "." not in host or len(host) > MAX_DOMAIN_LENGTH:
            errors.append(
                SiteValidationError(
                    code="domain_invalid",
                    message="Domain must be a valid host name",
                    field="domain",
                )
            )

    return errors


# --- Site Service ---


class SiteService:
    """
    Site service.

    Creates, lists and deletes the sites of one owner.
    """

    def __init__(
        self,
        repo: SiteRepoPort,
        time_port: TimePort,
        event_store: SiteDataPort | None = None,
        payment_store: SiteDataPort | None = None,
    ) -> None:
        """Initialize service."""
        self._repo = repo
        self._time = time_port
        self._event_store = event_store
        self._payment_store = payment_store

    def create(
        self,
        owner_id: str,
        name: str,
        domain: str,
    ) -> tuple[Site | None, list[SiteValidationError]]:
        """
        Create a new site.

        Returns:
            Tuple of (site, errors). Site is None if validation fails.
        """
        errors = validate_site_data(name, domain)
        if errors:
            return None, errors

        site = Site(
            id=str(uuid4()),
            owner_id=owner_id,
            name=name.strip(),
            domain=normalize_domain(domain),
            created_at=self._time.now_utc(),
        )
        saved = self._repo.save(site)
        logger.info("Created site %s for owner %s", saved.id, owner_id)
        return saved, []

    def get(self, site_id: str, owner_id: str) -> Site:
        """Fetch an owned site or raise AccessDeniedError."""
        require_site_access(self._repo, site_id, owner_id)
        site = self._repo.get_by_id(site_id)
        if site is None:
            raise AccessDeniedError()
        return site

    def delete(self, site_id: str, owner_id: str) -> tuple[int, int]:
        """
        Delete an owned site together with its events and payments.

        Returns:
            Tuple of (events_removed, payments_removed).
        """
        require_site_access(self._repo, site_id, owner_id)

        events_removed = self._event_store.delete_site(site_id) if self._event_store else 0
        payments_removed = self._payment_store.delete_site(site_id) if self._payment_store else 0
        self._repo.delete(site_id)

        logger.info(
            "Deleted site %s (%d events, %d payments)",
            site_id,
            events_removed,
            payments_removed,
        )
        return events_removed, payments_removed
