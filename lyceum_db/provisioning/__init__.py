"""Database and table provisioning."""

from .service import ProvisioningService

__all__ = ["ProvisioningService"]
