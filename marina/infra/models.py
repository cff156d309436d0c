"""Central registry for SQLAlchemy models with string-based relationships.

Importing this module loads all ORM classes that may be referenced by string to
avoid mapper configuration errors when individual models are imported in
isolation.
"""

from marina.domain.clubs import db_models as club_db_models  # noqa: F401
from marina.domain.booking_rules import db_models as booking_rule_db_models  # noqa: F401
from marina.domain.bookings import db_models as booking_db_models  # noqa: F401
from marina.domain.payments import db_models as payment_db_models  # noqa: F401
