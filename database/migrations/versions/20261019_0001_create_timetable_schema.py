"""create timetable schema

Revision ID: 20261019_0001
Revises: None
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


user_role_enum = sa.Enum("admin", "scheduler", "teacher", "student", name="user_role")
session_status_enum = sa.Enum("draft", "active", "completed", "archived", name="academic_session_status")
slot_type_enum = sa.Enum("regular", "break", "lunch", name="timetable_slot_type")


def _id_column() -> sa.Column:
    return sa.Column("id", sa.String(length=36), primary_key=True, nullable=False)


def _institution_column(nullable: bool = False) -> sa.Column:
    return sa.Column("institution_id", sa.String(length=36), nullable=nullable)


def _created_at_column() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())


def upgrade() -> None:
    op.create_table(
        "users",
        _id_column(),
        _institution_column(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", user_role_enum, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at_column(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_institution_id", "users", ["institution_id"])

    op.create_table(
        "academic_sessions",
        _id_column(),
        _institution_column(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("weekly_off_days", sa.JSON(), nullable=False),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("status", session_status_enum, nullable=False),
        _created_at_column(),
    )
    op.create_index("ix_academic_sessions_institution_id", "academic_sessions", ["institution_id"])

    op.create_table(
        "session_holidays",
        _id_column(),
        _institution_column(),
        sa.Column("session_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        _created_at_column(),
    )
    op.create_index("ix_session_holidays_institution_id", "session_holidays", ["institution_id"])
    op.create_index("ix_session_holidays_session_id", "session_holidays", ["session_id"])

    op.create_table(
        "classes",
        _id_column(),
        _institution_column(),
        sa.Column("name", sa.String(length=100), nullable=False),
        _created_at_column(),
    )
    op.create_index("ix_classes_institution_id", "classes", ["institution_id"])

    op.create_table(
        "sections",
        _id_column(),
        _institution_column(),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default="0"),
        _created_at_column(),
        sa.UniqueConstraint("class_id", "name", name="uq_sections_class_name"),
    )
    op.create_index("ix_sections_institution_id", "sections", ["institution_id"])
    op.create_index("ix_sections_class_id", "sections", ["class_id"])

    op.create_table(
        "subjects",
        _id_column(),
        _institution_column(),
        sa.Column("code", sa.String(length=50), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("color_code", sa.String(length=20), nullable=True),
        _created_at_column(),
    )
    op.create_index("ix_subjects_institution_id", "subjects", ["institution_id"])

    op.create_table(
        "teachers",
        _id_column(),
        _institution_column(),
        sa.Column("employee_id", sa.String(length=50), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        _created_at_column(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_teachers_institution_id", "teachers", ["institution_id"])

    op.create_table(
        "class_subjects",
        _id_column(),
        _institution_column(),
        sa.Column("session_id", sa.String(length=36), nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("section_id", sa.String(length=36), nullable=True),
        sa.Column("subject_id", sa.String(length=36), nullable=False),
        sa.Column("teacher_id", sa.String(length=36), nullable=True),
        sa.Column("periods_per_week", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("max_periods_per_day", sa.Integer(), nullable=True),
        sa.Column("scheduling_preferences", sa.JSON(), nullable=False),
        sa.Column("requires_special_room", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("special_room_type", sa.String(length=50), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at_column(),
    )
    for column in ("institution_id", "session_id", "class_id", "section_id"):
        op.create_index(f"ix_class_subjects_{column}", "class_subjects", [column])

    op.create_table(
        "timetable_templates",
        _id_column(),
        _institution_column(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("total_slots_per_day", sa.Integer(), nullable=True),
        sa.Column("start_time", sa.String(length=5), nullable=True),
        sa.Column("slot_duration_minutes", sa.Integer(), nullable=True),
        sa.Column("break_slots", sa.JSON(), nullable=False),
        sa.Column("lunch_slot", sa.Integer(), nullable=True),
        sa.Column("generation_rules", sa.JSON(), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at_column(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_timetable_templates_institution_id", "timetable_templates", ["institution_id"])

    op.create_table(
        "timetable_slots",
        _id_column(),
        _institution_column(),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("section_id", sa.String(length=36), nullable=False),
        sa.Column("session_id", sa.String(length=36), nullable=False),
        sa.Column("subject_id", sa.String(length=36), sa.ForeignKey("subjects.id"), nullable=True),
        sa.Column("teacher_id", sa.String(length=36), sa.ForeignKey("teachers.id"), nullable=True),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("slot_number", sa.Integer(), nullable=False),
        sa.Column("slot_type", slot_type_enum, nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("room_number", sa.String(length=50), nullable=True),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at_column(),
        sa.UniqueConstraint(
            "section_id",
            "session_id",
            "day_of_week",
            "slot_number",
            name="uq_timetable_slots_section_session_position",
        ),
    )
    for column in ("institution_id", "section_id", "session_id", "teacher_id"):
        op.create_index(f"ix_timetable_slots_{column}", "timetable_slots", [column])

    op.create_table(
        "activity_logs",
        _id_column(),
        _institution_column(nullable=True),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=True),
        sa.Column("entity_id", sa.String(length=36), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        _created_at_column(),
    )
    op.create_index("ix_activity_logs_institution_id", "activity_logs", ["institution_id"])
    op.create_index("ix_activity_logs_user_id", "activity_logs", ["user_id"])
    op.create_index("ix_activity_logs_entity", "activity_logs", ["entity_type", "entity_id"])


def downgrade() -> None:
    for table_name in (
        "activity_logs",
        "timetable_slots",
        "timetable_templates",
        "class_subjects",
        "teachers",
        "subjects",
        "sections",
        "classes",
        "session_holidays",
        "academic_sessions",
        "users",
    ):
        op.drop_table(table_name)
    bind = op.get_bind()
    slot_type_enum.drop(bind, checkfirst=True)
    session_status_enum.drop(bind, checkfirst=True)
    user_role_enum.drop(bind, checkfirst=True)
