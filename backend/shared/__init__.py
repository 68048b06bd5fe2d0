"""
Shared module for common utilities used by the REST API and the CLI.

STRUCTURE:
- shared.security: Authentication and capability checks
  - auth.py: JWT verification, current_actor, require_capability

- shared.infrastructure: Database and messaging
  - db.py: SQLAlchemy engine/sessions, transaction_scope(), safe_commit()
  - correlation.py: X-Request-ID middleware and logging filter
  - events/: Redis pub/sub for session lifecycle events

- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging
  - constants.py: Statuses, capabilities, transitions

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging and error kinds
  - schemas.py: Shared Pydantic schemas

IMPORT EXAMPLES:
    from shared.security.auth import require_capability, ActorContext
    from shared.infrastructure.db import get_db, transaction_scope
    from shared.config.settings import settings
    from shared.config.constants import SessionStatus, Capabilities
    from shared.utils.exceptions import NotFoundError, ResourceBusyError
"""
