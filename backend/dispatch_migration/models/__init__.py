from dispatch_migration.models.enums import *  # noqa: F403
from dispatch_migration.models.messages import (
    Message,
    TemplateViewGroup,
    TemplateViewRole,
)
from dispatch_migration.models.migration import (
    DifferentialAnalysisResult,
    MigrationCheckpoint,
    MigrationExecutionLog,
    MigrationMapping,
    MigrationRun,
)
from dispatch_migration.models.orders import Case, CaseState, File, Order, Payment
from dispatch_migration.models.practice import Doctor, DoctorOffice, Office, Patient
from dispatch_migration.models.profiles import Profile
