"""Top-level package for the lyceum document store adapter."""

__version__ = "0.1.0"

from .models import TableReference  # noqa: E402
from .provisioning import ProvisioningService  # noqa: E402
from .startup import connect  # noqa: E402
from .store import DocumentStore, create_document_store  # noqa: E402

__all__ = [
    "DocumentStore",
    "ProvisioningService",
    "TableReference",
    "__version__",
    "connect",
    "create_document_store",
]
