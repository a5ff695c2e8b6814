"""Core table definitions for the legacy Django schema.

Only the columns the migrations read are declared. The legacy database is never
written to; ``legacy_metadata.create_all`` is used by the test suite only.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
)

legacy_metadata = MetaData()

auth_user = Table(
    "auth_user",
    legacy_metadata,
    Column("id", Integer, primary_key=True),
    Column("username", String(150)),
    Column("first_name", String(150)),
    Column("last_name", String(150)),
    Column("email", String(254)),
    Column("password", String(128)),
    Column("is_superuser", Boolean, default=False),
    Column("is_staff", Boolean, default=False),
    Column("is_active", Boolean, default=True),
    Column("date_joined", DateTime),
    Column("last_login", DateTime, nullable=True),
)

auth_group = Table(
    "auth_group",
    legacy_metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(150)),
)

dispatch_office = Table(
    "dispatch_office",
    legacy_metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(255)),
    Column("address", String(255), nullable=True),
    Column("apt", String(64), nullable=True),
    Column("city", String(128), nullable=True),
    Column("state", String(64), nullable=True),
    Column("zip", String(32), nullable=True),
    Column("phone", String(64), nullable=True),
    Column("tax_rate", Numeric(8, 4), nullable=True),
    Column("valid", Boolean, default=True),
    Column("sq_customer_id", String(128), nullable=True),
    Column("emails", Boolean, default=True),
)

dispatch_office_doctors = Table(
    "dispatch_office_doctors",
    legacy_metadata,
    Column("id", Integer, primary_key=True),
    Column("office_id", Integer),
    Column("user_id", Integer),
)

dispatch_doctorsetting = Table(
    "dispatch_doctorsetting",
    legacy_metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", Integer, unique=True),
    Column("sq_customer_id", String(128), nullable=True),
    Column("credit", Numeric(10, 2), nullable=True),
    Column("tier_type", Integer, nullable=True),
    Column("company_account", Boolean, default=False),
    Column("clinical_preferences", Text, nullable=True),
    Column("baa_agreed_at", DateTime, nullable=True),
    Column("eula_agreed_at", DateTime, nullable=True),
)

dispatch_patient = Table(
    "dispatch_patient",
    legacy_metadata,
    Column("id", Integer, primary_key=True),
    Column("doctor_id", Integer, nullable=True),
    Column("user_id", Integer),
    Column("office_id", Integer, nullable=True),
    Column("birthdate", DateTime, nullable=True),
    Column("archived", Boolean, default=False),
    Column("status", Integer, nullable=True),
    Column("submitted_at", DateTime, nullable=True),
    Column("suffix", String(32), default=""),
    Column("updated_at", DateTime, nullable=True),
    Column("sex", Integer, nullable=True),
    Column("suspended", Boolean, default=False),
    Column("schemes", Text, nullable=True),
)

dispatch_instruction = Table(
    "dispatch_instruction",
    legacy_metadata,
    Column("id", Integer, primary_key=True),
    Column("patient_id", Integer),
    Column("course_id", Integer, nullable=True),
    Column("status", Integer, nullable=True),
    Column("notes", Text, nullable=True),
    Column("complaint", Text, nullable=True),
    Column("price", Numeric(10, 2), nullable=True),
    Column("submitted_at", DateTime, nullable=True),
    Column("updated_at", DateTime, nullable=True),
    Column("deleted", Boolean, default=False),
    Column("exports", Text, nullable=True),
    Column("model", String(64), nullable=True),
    Column("scanner", String(64), nullable=True),
)

dispatch_state = Table(
    "dispatch_state",
    legacy_metadata,
    Column("id", Integer, primary_key=True),
    Column("status", Integer),
    Column("on", Boolean, default=True),
    Column("changed_at", DateTime),
    Column("actor_id", Integer, nullable=True),
    Column("instruction_id", Integer),
)

dispatch_payment = Table(
    "dispatch_payment",
    legacy_metadata,
    Column("id", Integer, primary_key=True),
    Column("instruction_id", Integer, nullable=True),
    Column("order_id", Integer, nullable=True),
    Column("doctor_id", Integer, nullable=True),
    Column("office_id", Integer, nullable=True),
    Column("paid_price", Numeric(10, 2), nullable=True),
    Column("total_price", Numeric(10, 2), nullable=True),
    Column("subtotal_price", Numeric(10, 2), nullable=True),
    Column("tax_rate", Numeric(8, 4), nullable=True),
    Column("tax_value", Numeric(10, 2), nullable=True),
    Column("used_credit", Numeric(10, 2), nullable=True),
    Column("additional_price", Numeric(10, 2), nullable=True),
    Column("custom_price", Numeric(10, 2), nullable=True),
    Column("paid", Boolean, default=False),
    Column("canceled", Boolean, default=False),
    Column("free", Boolean, default=False),
    Column("made_at", DateTime, nullable=True),
    Column("installments", Text, nullable=True),
)

dispatch_file = Table(
    "dispatch_file",
    legacy_metadata,
    Column("id", Integer, primary_key=True),
    Column("uid", String(64)),
    Column("name", String(255), nullable=True),
    Column("ext", String(16), nullable=True),
    Column("size", Integer, nullable=True),
    Column("type", Integer, nullable=True),
    Column("instruction_id", Integer, nullable=True),
    Column("created_at", DateTime, nullable=True),
    Column("description", Text, nullable=True),
    Column("product_id", Integer, nullable=True),
    Column("parameters", Text, nullable=True),
    Column("record_id", Integer, nullable=True),
    Column("status", Integer, nullable=True),
)

dispatch_record = Table(
    "dispatch_record",
    legacy_metadata,
    Column("id", Integer, primary_key=True),
    Column("target_id", Integer),
    Column("type", Integer, nullable=True),
    Column("created_at", DateTime),
    Column("text", Text, default=""),
    Column("author_id", Integer, nullable=True),
    Column("target_type_id", Integer, nullable=True),
    Column("group_id", Integer, nullable=True),
    Column("public", Boolean, default=False),
)

dispatch_template = Table(
    "dispatch_template",
    legacy_metadata,
    Column("id", Integer, primary_key=True),
    Column("text_name", String(255), nullable=True),
    Column("task_name", String(255), nullable=True),
)

dispatch_role = Table(
    "dispatch_role",
    legacy_metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(150)),
)

dispatch_template_view_groups = Table(
    "dispatch_template_view_groups",
    legacy_metadata,
    Column("id", Integer, primary_key=True),
    Column("template_id", Integer),
    Column("group_id", Integer),
)

dispatch_template_view_roles = Table(
    "dispatch_template_view_roles",
    legacy_metadata,
    Column("id", Integer, primary_key=True),
    Column("template_id", Integer),
    Column("role_id", Integer),
)
