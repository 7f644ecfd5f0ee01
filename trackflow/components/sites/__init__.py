"""
Sites component - Tenant registry and access guard.
"""

from ._impl import (
    SiteService,
    normalize_domain,
    require_site_access,
    validate_site_data,
)
from .component import (
    run_create,
    run_delete,
    run_get,
    run_list,
)
from .models import (
    CreateSiteInput,
    DeleteSiteInput,
    DeleteSiteOutput,
    GetSiteInput,
    GetSiteOutput,
    SiteListOutput,
    SiteOperationOutput,
    SiteValidationError,
)
from .ports import SiteDataPort, SiteRepoPort

__all__ = [
    # Service
    "SiteService",
    "normalize_domain",
    "require_site_access",
    "validate_site_data",
    # Entry points
    "run_create",
    "run_delete",
    "run_get",
    "run_list",
    # Models
    "CreateSiteInput",
    "DeleteSiteInput",
    "DeleteSiteOutput",
    "GetSiteInput",
    "GetSiteOutput",
    "SiteListOutput",
    "SiteOperationOutput",
    "SiteValidationError",
    # Ports
    "SiteDataPort",
    "SiteRepoPort",
]
