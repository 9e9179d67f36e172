"""
Shared module for cross-cutting code used by the REST API.

STRUCTURE:
- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging
  - constants.py: Roles, statuses, courses, transitions

- shared.infrastructure: Database and messaging
  - db.py: Async SQLAlchemy engine and sessions
  - retry.py: Timeout and bounded retry for store calls
  - events/: Redis pub/sub, change feed, publishing

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - money.py: Cent conversion helpers
  - schemas.py: Shared Pydantic schemas

IMPORT EXAMPLES:
    from shared.infrastructure.db import get_db
    from shared.config.settings import settings
    from shared.config.constants import Roles, TaskStatus
    from shared.utils.exceptions import NotFoundError, ConflictError
    from shared.utils.money import to_cents
"""
