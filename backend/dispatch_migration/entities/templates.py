import uuid

from sqlalchemy import func, select

from dispatch_migration.entities.base import EntityMigration
from dispatch_migration.legacy.tables import (
    auth_group,
    dispatch_role,
    dispatch_template,
    dispatch_template_view_groups,
    dispatch_template_view_roles,
)
from dispatch_migration.models import TemplateViewGroup, TemplateViewRole

VIEW_PERMISSION = "view"


def _template_name():
    t = dispatch_template.c
    return func.coalesce(t.text_name, t.task_name).label("template_name")


class TemplateViewGroupMigration(EntityMigration):
    name = "template_view_groups"
    source_table = dispatch_template_view_groups
    target_model = TemplateViewGroup
    legacy_id_attr = "legacy_junction_id"

    def source_select(self):
        j = dispatch_template_view_groups.c
        return select(
            j.id.label("legacy_id"),
            j.template_id,
            j.group_id,
            _template_name(),
            auth_group.c.name.label("group_name"),
        ).select_from(
            dispatch_template_view_groups.join(
                dispatch_template, dispatch_template.c.id == j.template_id
            ).join(auth_group, auth_group.c.id == j.group_id)
        )

    def transform(self, row, ctx):
        return [
            (
                TemplateViewGroup,
                {
                    "id": uuid.uuid4(),
                    "template_name": row.template_name or f"Template {row.template_id}",
                    "group_name": row.group_name,
                    "permission_level": VIEW_PERMISSION,
                    "is_active": True,
                    "legacy_template_id": row.template_id,
                    "legacy_group_id": row.group_id,
                    "legacy_junction_id": row.legacy_id,
                    "metadata_": {"source_table": "dispatch_template_view_groups"},
                },
            )
        ]


class TemplateViewRoleMigration(EntityMigration):
    name = "template_view_roles"
    source_table = dispatch_template_view_roles
    target_model = TemplateViewRole
    legacy_id_attr = "legacy_junction_id"

    def source_select(self):
        j = dispatch_template_view_roles.c
        return select(
            j.id.label("legacy_id"),
            j.template_id,
            j.role_id,
            _template_name(),
            dispatch_role.c.name.label("role_name"),
        ).select_from(
            dispatch_template_view_roles.join(
                dispatch_template, dispatch_template.c.id == j.template_id
            ).join(dispatch_role, dispatch_role.c.id == j.role_id)
        )

    def transform(self, row, ctx):
        return [
            (
                TemplateViewRole,
                {
                    "id": uuid.uuid4(),
                    "template_name": row.template_name or f"Template {row.template_id}",
                    "role_name": row.role_name,
                    "permission_level": VIEW_PERMISSION,
                    "is_active": True,
                    "legacy_template_id": row.template_id,
                    "legacy_role_id": row.role_id,
                    "legacy_junction_id": row.legacy_id,
                    "metadata_": {"source_table": "dispatch_template_view_roles"},
                },
            )
        ]
