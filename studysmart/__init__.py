"""StudySmart core library — planning and discipline-scoring engine.

Public API re-exports for convenient imports:
    from studysmart import open_session, generate_schedule, Task, ...
"""

# Models
from studysmart.models import (
    DisciplineLog,
    PlanSummary,
    ScheduledTask,
    StudyPlan,
    StudyPlanConfig,
    Task,
    UserProfile,
)

# Scheduling
from studysmart.scheduler import (
    generate_schedule,
    plan_to_markdown,
    rank_tasks,
)

# Discipline
from studysmart.discipline import (
    DisciplineEngine,
    compute_penalty,
)

# Focus mode
from studysmart.focus import (
    AppStateSource,
    FocusSessionMonitor,
    LogNotifier,
    NotificationUnavailable,
)

# Storage
from studysmart.storage import (
    JsonProfileStore,
    JsonTaskStore,
    StorageError,
)
from studysmart.database import SqliteTaskStore

# Settings & session
from studysmart.settings import Settings, load_settings
from studysmart.session import AppSession, open_session
