from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    participant_status = postgresql.ENUM(
        "active", "inactive", "suspended", "blocked", name="participantstatus"
    )
    participant_status.create(op.get_bind(), checkfirst=True)
    tutor_role = postgresql.ENUM("generic", "staff", name="tutorrole")
    tutor_role.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "tutors",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=64), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("status", participant_status, server_default="active"),
        sa.Column("role", tutor_role, server_default="generic"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "students",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("surname", sa.String(length=128), nullable=False),
        sa.Column("student_class", sa.String(length=32)),
        sa.Column("description", sa.Text()),
        sa.Column("status", participant_status, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    booking_kind = postgresql.ENUM("lesson", "prenotation", name="bookingkind")
    booking_kind.create(op.get_bind(), checkfirst=True)
    booking_state = postgresql.ENUM(
        "pending", "confirmed", "completed", "canceled", name="bookingstate"
    )
    booking_state.create(op.get_bind(), checkfirst=True)
    participant_role = postgresql.ENUM("tutor", "student", name="participantrole")
    participant_role.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("kind", booking_kind, server_default="prenotation"),
        sa.Column("tutor_id", sa.Integer(), sa.ForeignKey("tutors.id", ondelete="CASCADE")),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("students.id", ondelete="CASCADE")),
        sa.Column("creator_id", sa.Integer()),
        sa.Column("creator_role", participant_role, server_default="tutor"),
        sa.Column("starts_at", sa.DateTime(timezone=True)),
        sa.Column("ends_at", sa.DateTime(timezone=True)),
        sa.Column("state", booking_state, server_default="pending"),
        sa.Column("description", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("canceled_at", sa.DateTime(timezone=True)),
        sa.Column("canceled_by", sa.String(length=64)),
        sa.Column("cancellation_reason", sa.String(length=255)),
        sa.CheckConstraint("starts_at < ends_at", name="ck_booking_range_positive"),
    )
    op.create_index("ix_bookings_tutor_id", "bookings", ["tutor_id"])
    op.create_index("ix_bookings_student_id", "bookings", ["student_id"])
    op.create_index("ix_bookings_creator_id", "bookings", ["creator_id"])
    op.create_index("ix_bookings_starts_at", "bookings", ["starts_at"])

    op.create_table(
        "calendar_notes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("description", sa.Text()),
        sa.Column("starts_at", sa.DateTime(timezone=True)),
        sa.Column("ends_at", sa.DateTime(timezone=True)),
        sa.Column("creator_id", sa.Integer(), sa.ForeignKey("tutors.id", ondelete="CASCADE")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_calendar_notes_starts_at", "calendar_notes", ["starts_at"])
    op.create_index("ix_calendar_notes_creator_id", "calendar_notes", ["creator_id"])

    op.create_table(
        "calendar_note_tutors",
        sa.Column(
            "calendar_note_id",
            sa.Integer(),
            sa.ForeignKey("calendar_notes.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "tutor_id",
            sa.Integer(),
            sa.ForeignKey("tutors.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    admin_role = postgresql.ENUM("admin", "manager", "viewer", name="adminrole")
    admin_role.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "admin_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=64), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", admin_role, server_default="viewer"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_login_at", sa.DateTime(timezone=True)),
    )

    actor_type = postgresql.ENUM("admin", "tutor", "student", "system", name="actortype")
    actor_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_type", actor_type),
        sa.Column("actor_id", sa.Integer()),
        sa.Column("action", sa.String(length=255)),
        sa.Column("payload", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("admin_users")
    op.drop_table("calendar_note_tutors")
    op.drop_table("calendar_notes")
    op.drop_table("bookings")
    op.drop_table("students")
    op.drop_table("tutors")
    for name in (
        "actortype",
        "adminrole",
        "participantrole",
        "bookingstate",
        "bookingkind",
        "tutorrole",
        "participantstatus",
    ):
        postgresql.ENUM(name=name).drop(op.get_bind(), checkfirst=True)
