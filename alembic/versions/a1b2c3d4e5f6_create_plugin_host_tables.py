"""Create plugin host tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2024-10-07

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a1b2c3d4e5f6"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Plugin state
    op.create_table(
        "plugin_enabled",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("plugin_type", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("enabled_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_plugin_enabled_id", "plugin_enabled", ["id"], unique=False)
    op.create_index("ix_plugin_enabled_type_name", "plugin_enabled", ["plugin_type", "name"], unique=True)

    op.create_table(
        "plugin_versions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("plugin_type", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("installed_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_plugin_versions_id", "plugin_versions", ["id"], unique=False)
    op.create_index("ix_plugin_versions_type_name", "plugin_versions", ["plugin_type", "name"], unique=True)

    op.create_table(
        "plugin_settings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("component", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_plugin_settings_id", "plugin_settings", ["id"], unique=False)
    op.create_index("ix_plugin_settings_component_name", "plugin_settings", ["component", "name"], unique=True)

    op.create_table(
        "capabilities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("captype", sa.String(length=10), nullable=False, server_default="write"),
        sa.Column("context_level", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("component", sa.String(length=100), nullable=False),
        sa.Column("risk_bitmask", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index("ix_capabilities_id", "capabilities", ["id"], unique=False)
    op.create_index("ix_capabilities_component", "capabilities", ["component"], unique=False)

    # Blocks
    op.create_table(
        "block_instances",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("block_name", sa.String(length=40), nullable=False),
        sa.Column("parent_context_id", sa.Integer(), nullable=False),
        sa.Column("show_in_subcontexts", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("page_type_pattern", sa.String(length=64), nullable=False),
        sa.Column("subpage_pattern", sa.String(length=16), nullable=True),
        sa.Column("default_region", sa.String(length=16), nullable=False),
        sa.Column("default_weight", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("config_data", sa.LargeBinary(), nullable=True),
        sa.Column("visible", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("time_created", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("time_modified", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_block_instances_id", "block_instances", ["id"], unique=False)
    op.create_index("ix_block_instances_block_name", "block_instances", ["block_name"], unique=False)
    op.create_index("ix_block_instances_parent_context_id", "block_instances", ["parent_context_id"], unique=False)

    op.create_table(
        "block_positions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("block_instance_id", sa.Integer(), nullable=False),
        sa.Column("context_id", sa.Integer(), nullable=False),
        sa.Column("page_type", sa.String(length=64), nullable=False),
        sa.Column("subpage", sa.String(length=16), nullable=False, server_default=""),
        sa.Column("visible", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("region", sa.String(length=16), nullable=False),
        sa.Column("weight", sa.Integer(), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["block_instance_id"], ["block_instances.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_block_positions_id", "block_positions", ["id"], unique=False)
    op.create_index(
        "ix_block_positions_coordinate",
        "block_positions",
        ["block_instance_id", "context_id", "page_type", "subpage"],
        unique=True,
    )
    op.create_index("ix_block_positions_page", "block_positions", ["context_id", "page_type", "region"], unique=False)

    # Course structure and progress
    op.create_table(
        "course_sections",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("course_id", sa.Integer(), nullable=False),
        sa.Column("section", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("sequence", sa.Text(), nullable=False, server_default=""),
        sa.Column("visible", sa.Boolean(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_course_sections_id", "course_sections", ["id"], unique=False)
    op.create_index("ix_course_sections_course_id", "course_sections", ["course_id"], unique=False)
    op.create_index("ix_course_sections_course_section", "course_sections", ["course_id", "section"], unique=True)

    op.create_table(
        "course_modules",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("course_id", sa.Integer(), nullable=False),
        sa.Column("module", sa.String(length=40), nullable=False),
        sa.Column("instance_id", sa.Integer(), nullable=False),
        sa.Column("section_id", sa.Integer(), nullable=False),
        sa.Column("idnumber", sa.String(length=100), nullable=True),
        sa.Column("added", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("visible", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("visible_on_course_page", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("indent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("group_mode", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("show_description", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("completion", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completion_view", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("completion_expected", sa.DateTime(), nullable=True),
        sa.Column("availability", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["section_id"], ["course_sections.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_course_modules_id", "course_modules", ["id"], unique=False)
    op.create_index("ix_course_modules_course_id", "course_modules", ["course_id"], unique=False)
    op.create_index("ix_course_modules_module_instance", "course_modules", ["module", "instance_id"], unique=False)

    op.create_table(
        "course_modules_completion",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("course_module_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("completion_state", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("viewed", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("time_modified", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["course_module_id"], ["course_modules.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_course_modules_completion_id", "course_modules_completion", ["id"], unique=False)
    op.create_index(
        "ix_course_modules_completion_user_module",
        "course_modules_completion",
        ["user_id", "course_module_id"],
        unique=True,
    )

    op.create_table(
        "grade_items",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("course_id", sa.Integer(), nullable=False),
        sa.Column("course_module_id", sa.Integer(), nullable=True),
        sa.Column("item_type", sa.String(length=30), nullable=False, server_default="mod"),
        sa.Column("item_module", sa.String(length=30), nullable=False),
        sa.Column("item_instance", sa.Integer(), nullable=False),
        sa.Column("item_name", sa.String(length=255), nullable=True),
        sa.Column("grade_type", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("grade_max", sa.Float(), nullable=False, server_default="100"),
        sa.Column("grade_min", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_grade_items_id", "grade_items", ["id"], unique=False)
    op.create_index("ix_grade_items_course_id", "grade_items", ["course_id"], unique=False)
    op.create_index(
        "ix_grade_items_module_instance", "grade_items", ["course_id", "item_module", "item_instance"], unique=False
    )

    op.create_table(
        "user_enrolments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("course_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("time_start", sa.DateTime(), nullable=True),
        sa.Column("time_end", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_enrolments_id", "user_enrolments", ["id"], unique=False)
    op.create_index("ix_user_enrolments_user_course", "user_enrolments", ["user_id", "course_id"], unique=True)

    # Built-in module plugins
    op.create_table(
        "quiz",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("course_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("intro", sa.Text(), nullable=False, server_default=""),
        sa.Column("time_open", sa.DateTime(), nullable=True),
        sa.Column("time_close", sa.DateTime(), nullable=True),
        sa.Column("time_limit", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("grade_method", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("grade", sa.Float(), nullable=False, server_default="100"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_quiz_id", "quiz", ["id"], unique=False)
    op.create_index("ix_quiz_course_id", "quiz", ["course_id"], unique=False)

    op.create_table(
        "quiz_attempts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("quiz_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("attempt", sa.Integer(), nullable=False),
        sa.Column("state", sa.String(length=16), nullable=False, server_default="inprogress"),
        sa.Column("sum_grades", sa.Float(), nullable=True),
        sa.Column("time_start", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("time_finish", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["quiz_id"], ["quiz.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_quiz_attempts_id", "quiz_attempts", ["id"], unique=False)
    op.create_index("ix_quiz_attempts_quiz_user", "quiz_attempts", ["quiz_id", "user_id", "attempt"], unique=True)

    op.create_table(
        "page",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("course_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("intro", sa.Text(), nullable=False, server_default=""),
        sa.Column("content", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_page_id", "page", ["id"], unique=False)
    op.create_index("ix_page_course_id", "page", ["course_id"], unique=False)


def downgrade() -> None:
    for table in (
        "page",
        "quiz_attempts",
        "quiz",
        "user_enrolments",
        "grade_items",
        "course_modules_completion",
        "course_modules",
        "course_sections",
        "block_positions",
        "block_instances",
        "capabilities",
        "plugin_settings",
        "plugin_versions",
        "plugin_enabled",
    ):
        op.drop_table(table)
