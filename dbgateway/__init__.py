"""dbgateway: one tool surface over many database backends.

dbgateway provides:
- A uniform adapter contract over eight backend kinds
- A registry of named connections with a current connection
- Transactions and batch execution with uniform error semantics
- Schema comparison and validation between connections
- A tool dispatcher and a click CLI
- YAML-based configuration
"""

__version__ = "1.0.0"
__license__ = "MIT"

# Core exports
from dbgateway.exceptions import ConfigurationError, DatabaseError, GatewayError

__all__ = [
    "__version__",
    "GatewayError",
    "ConfigurationError",
    "DatabaseError",
]
