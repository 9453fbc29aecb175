"""Domain modules package."""

from app.modules.audit import models as audit_models  # noqa: F401
from app.modules.booking import models as booking_models  # noqa: F401
from app.modules.identity import models as identity_models  # noqa: F401
from app.modules.mentors import models as mentors_models  # noqa: F401
from app.modules.notifications import models as notifications_models  # noqa: F401
from app.modules.reviews import models as reviews_models  # noqa: F401
from app.modules.scheduling import models as scheduling_models  # noqa: F401
from app.modules.subscriptions import models as subscriptions_models  # noqa: F401
