from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("resource_id", sa.Integer(), nullable=True),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("starts_at", sa.DateTime(), nullable=False),
        sa.Column("ends_at", sa.DateTime(), nullable=False),
        sa.Column("team_ids", sa.JSON(), nullable=False),
        sa.Column("booking_type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False, server_default=""),
        sa.Column("notes", sa.String(), nullable=False, server_default=""),
        sa.Column("other_participants", sa.String(), nullable=True),
        sa.Column("estimated_attendance", sa.Integer(), nullable=True),
        sa.CheckConstraint("end_time > start_time", name="ck_bookings_window"),
    )
    op.create_index("ix_bookings_resource_date", "bookings", ["resource_id", "booking_date"], unique=False)
    op.create_index("ix_bookings_status", "bookings", ["status"], unique=False)

    # authoritative double-booking guard: no two active bookings on one
    # resource may share any instant of [starts_at, ends_at)
    if op.get_bind().dialect.name == "postgresql":
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            """
            ALTER TABLE bookings
            ADD CONSTRAINT ex_bookings_resource_window
            EXCLUDE USING gist (
                resource_id WITH =,
                tsrange(starts_at, ends_at, '[)') WITH &&
            )
            WHERE (resource_id IS NOT NULL AND status <> 'Cancelled')
            """
        )


def downgrade():
    if op.get_bind().dialect.name == "postgresql":
        op.execute("ALTER TABLE bookings DROP CONSTRAINT IF EXISTS ex_bookings_resource_window")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_resource_date", table_name="bookings")
    op.drop_table("bookings")
