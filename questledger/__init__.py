"""Quest lifecycle and reward ledger service."""
from questledger.version import APP_VERSION

__version__ = APP_VERSION
