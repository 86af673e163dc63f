"""Handler modules for ServiceAccounts and TokenRenewalRequests."""

# Import handlers to register them - all handlers register themselves via @kopf decorators
from . import service_account  # noqa: F401
from . import token_renewal_request  # noqa: F401
