from .db import (
    create_all,
    dispose_engine,
    get_engine,
    get_session_maker,
    ping,
)  # noqa: F401
from .models import (
    Base,
    Caregiver,
    EmergencyContact,
    Medication,
    Patient,
    ReminderInstance,
)  # noqa: F401
