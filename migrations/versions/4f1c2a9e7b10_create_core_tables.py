from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "4f1c2a9e7b10"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "feedback",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("customer_name", sa.String(length=200), nullable=False),
        sa.Column("phone_number", sa.String(length=32), nullable=False),
        sa.Column("account_number", sa.String(length=64), nullable=False),
        sa.Column("coffee_type", sa.String(length=100), nullable=False),
        sa.Column("coffee_weight", sa.Float(), nullable=False),
        sa.Column("customer_location", sa.String(length=200), nullable=False),
        sa.Column("coffee_quality", sa.Integer(), nullable=False),
        sa.Column("delivery_experience", sa.Integer(), nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("coffee_quality BETWEEN 1 AND 5", name="ck_feedback_quality_range"),
        sa.CheckConstraint("delivery_experience BETWEEN 1 AND 5", name="ck_feedback_delivery_range"),
    )
    op.create_index("ix_feedback_user_id", "feedback", ["user_id"], unique=False)
    op.create_index("ix_feedback_phone_number", "feedback", ["phone_number"], unique=False)
    op.create_index("ix_feedback_created_at", "feedback", ["created_at"], unique=False)

    op.create_table(
        "sms_messages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("recipient_phone", sa.String(length=32), nullable=False),
        sa.Column("recipient_name", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("provider_message_id", sa.String(length=64), nullable=True),
        sa.Column("error", sa.String(length=500), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sms_messages_user_id", "sms_messages", ["user_id"], unique=False)
    op.create_index("ix_sms_messages_recipient_phone", "sms_messages", ["recipient_phone"], unique=False)
    op.create_index("ix_sms_messages_status", "sms_messages", ["status"], unique=False)
    op.create_index("ix_sms_messages_provider_message_id", "sms_messages", ["provider_message_id"], unique=False)
    op.create_index("ix_sms_messages_created_at", "sms_messages", ["created_at"], unique=False)

    op.create_table(
        "message_templates",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("variables", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_message_templates_user_id", "message_templates", ["user_id"], unique=False)

def downgrade():
    op.drop_index("ix_message_templates_user_id", table_name="message_templates")
    op.drop_table("message_templates")
    for ix in (
        "ix_sms_messages_created_at",
        "ix_sms_messages_provider_message_id",
        "ix_sms_messages_status",
        "ix_sms_messages_recipient_phone",
        "ix_sms_messages_user_id",
    ):
        op.drop_index(ix, table_name="sms_messages")
    op.drop_table("sms_messages")
    op.drop_index("ix_feedback_created_at", table_name="feedback")
    op.drop_index("ix_feedback_phone_number", table_name="feedback")
    op.drop_index("ix_feedback_user_id", table_name="feedback")
    op.drop_table("feedback")
    op.drop_table("users")
