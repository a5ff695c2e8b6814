from enum import Enum


class ProfileType(str, Enum):
    DOCTOR = "doctor"
    PATIENT = "patient"
    TECHNICIAN = "technician"
    MASTER = "master"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    UNKNOWN = "unknown"


class CourseType(str, Enum):
    MAIN = "main"
    REFINEMENT = "refinement"
    REPLACEMENT = "replacement"
    ANY = "any"
    INVOICE = "invoice"
    MERCHANDISE = "merchandise"


class OrderStatus(str, Enum):
    NO_PRODUCT = "no_product"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    SHIPPED = "shipped"


class CaseStatus(str, Enum):
    CONSULTATION = "consultation"
    DIAGNOSIS = "diagnosis"
    TREATMENT_PLAN = "treatment_plan"
    ACTIVE = "active"
    REFINEMENT = "refinement"
    RETENTION = "retention"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ON_HOLD = "on_hold"
    TRANSFERRED = "transferred"
    REVISION = "revision"


class CaseStateType(str, Enum):
    TREATMENT_ACTIVE = "treatment_active"
    CASE_CLOSED = "case_closed"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MessageType(str, Enum):
    NOTIFICATION = "notification"
    UPDATE = "update"
    COMMENT = "comment"
    SYSTEM = "system"
    ALERT = "alert"


class RecipientType(str, Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"
    SYSTEM = "system"


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class OperationType(str, Enum):
    BASELINE_ANALYSIS = "baseline_analysis"
    DIFFERENTIAL_DETECTION = "differential_detection"
    RECORD_MIGRATION = "record_migration"
    VALIDATION = "validation"
    CHECKPOINT_SAVE = "checkpoint_save"
    CHECKPOINT_RESTORE = "checkpoint_restore"


class LogStatus(str, Enum):
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"
