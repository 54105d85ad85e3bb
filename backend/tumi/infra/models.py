"""Central registry for SQLAlchemy models with string-based relationships.

Importing this module loads every ORM class so mappers can resolve
relationships declared by name, and so ``Base.metadata`` is complete for
Alembic and the test schema.
"""

from tumi.domain.activity_log import db_models as activity_log_db_models  # noqa: F401
from tumi.domain.events import db_models as event_db_models  # noqa: F401
from tumi.domain.payments import db_models as payment_db_models  # noqa: F401
from tumi.domain.registrations import db_models as registration_db_models  # noqa: F401
from tumi.domain.shop import db_models as shop_db_models  # noqa: F401
from tumi.domain.users import db_models as user_db_models  # noqa: F401
