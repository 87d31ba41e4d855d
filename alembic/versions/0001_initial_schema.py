"""initial schema: schools, users, kinship, fees, invoices, payments

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "a1b2c3d4e5f6"
down_revision = None
branch_labels = None
depends_on = None

ENUMS = {
    "user_role": ("ADMIN", "ACCOUNTANT", "TEACHER", "STAFF", "STUDENT", "PARENT"),
    "kinship_relationship": ("FATHER", "MOTHER", "GUARDIAN", "OTHER"),
    "discount_type": ("PERCENTAGE", "FLAT"),
    "invoice_status": ("UNPAID", "PARTIAL", "OVERDUE", "PAID", "CANCELLED"),
    "payment_method": ("CASH", "BANK_TRANSFER", "ONLINE", "CHEQUE"),
}


def _enum(name):
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _base_columns():
    return [
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def _school_id():
    return sa.Column("school_id", sa.UUID(), sa.ForeignKey("schools.id", ondelete="CASCADE"), nullable=False)


def _index(table, *columns, unique=False):
    op.create_index(op.f(f"ix_{table}_{'_'.join(columns)}"), table, list(columns), unique=unique)


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "schools",
        *_base_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("schools", "id")
    _index("schools", "is_active")

    op.create_table(
        "school_classes",
        *_base_columns(),
        _school_id(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("school_id", "name", name="uq_school_classes_school_name"),
    )
    _index("school_classes", "id")
    _index("school_classes", "school_id")

    op.create_table(
        "users",
        *_base_columns(),
        _school_id(),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(255), nullable=False),
        sa.Column("last_name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("role", _enum("user_role"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("users", "id")
    _index("users", "school_id")
    _index("users", "deleted_at")
    _index("users", "email", unique=True)
    _index("users", "role")
    _index("users", "is_active")

    op.create_table(
        "student_profiles",
        *_base_columns(),
        _school_id(),
        sa.Column("user_id", sa.UUID(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "school_class_id", sa.UUID(), sa.ForeignKey("school_classes.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("admission_number", sa.String(50), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
        sa.UniqueConstraint("school_id", "admission_number", name="uq_student_profiles_admission"),
    )
    _index("student_profiles", "id")
    _index("student_profiles", "school_id")
    _index("student_profiles", "school_class_id")

    op.create_table(
        "parent_profiles",
        *_base_columns(),
        _school_id(),
        sa.Column("user_id", sa.UUID(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("occupation", sa.String(255), nullable=True),
        sa.Column("cnic", sa.String(50), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )
    _index("parent_profiles", "id")
    _index("parent_profiles", "school_id")

    op.create_table(
        "kinships",
        *_base_columns(),
        sa.Column("parent_id", sa.UUID(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("student_id", sa.UUID(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("relationship", _enum("kinship_relationship"), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("parent_id", "student_id", name="uq_kinships_parent_student"),
    )
    _index("kinships", "id")
    _index("kinships", "parent_id")
    _index("kinships", "student_id")

    op.create_table(
        "fee_heads",
        *_base_columns(),
        _school_id(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("school_id", "name", name="uq_fee_heads_school_name"),
    )
    _index("fee_heads", "id")
    _index("fee_heads", "school_id")

    op.create_table(
        "fee_structures",
        *_base_columns(),
        _school_id(),
        sa.Column(
            "school_class_id", sa.UUID(), sa.ForeignKey("school_classes.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("fee_head_id", sa.UUID(), sa.ForeignKey("fee_heads.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("school_class_id", "fee_head_id", name="uq_fee_structures_class_head"),
    )
    _index("fee_structures", "id")
    _index("fee_structures", "school_id")
    _index("fee_structures", "school_class_id")

    op.create_table(
        "student_fee_structures",
        *_base_columns(),
        _school_id(),
        sa.Column("student_id", sa.UUID(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "school_class_id", sa.UUID(), sa.ForeignKey("school_classes.id", ondelete="SET NULL"), nullable=True
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("student_fee_structures", "id")
    _index("student_fee_structures", "school_id")
    _index("student_fee_structures", "student_id", unique=True)

    op.create_table(
        "student_fee_structure_items",
        *_base_columns(),
        sa.Column(
            "student_fee_structure_id",
            sa.UUID(),
            sa.ForeignKey("student_fee_structures.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("fee_head_id", sa.UUID(), sa.ForeignKey("fee_heads.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("student_fee_structure_items", "id")
    _index("student_fee_structure_items", "student_fee_structure_id")

    op.create_table(
        "discounts",
        *_base_columns(),
        _school_id(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("type", _enum("discount_type"), nullable=False),
        sa.Column("value", sa.Numeric(12, 2), nullable=False),
        sa.Column("fee_head_id", sa.UUID(), sa.ForeignKey("fee_heads.id", ondelete="CASCADE"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("discounts", "id")
    _index("discounts", "school_id")

    op.create_table(
        "student_discounts",
        *_base_columns(),
        sa.Column("student_id", sa.UUID(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("discount_id", sa.UUID(), sa.ForeignKey("discounts.id", ondelete="CASCADE"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("student_id", "discount_id", name="uq_student_discounts_student_discount"),
    )
    _index("student_discounts", "id")
    _index("student_discounts", "student_id")

    op.create_table(
        "invoices",
        *_base_columns(),
        _school_id(),
        sa.Column("student_id", sa.UUID(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("invoice_no", sa.String(64), nullable=False),
        sa.Column("month", sa.Integer(), nullable=True),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("paid_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", _enum("invoice_status"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("school_id", "invoice_no", name="uq_invoices_school_invoice_no"),
    )
    _index("invoices", "id")
    _index("invoices", "school_id")
    _index("invoices", "student_id")
    _index("invoices", "invoice_no")
    _index("invoices", "due_date")
    _index("invoices", "status")

    op.create_table(
        "invoice_items",
        *_base_columns(),
        sa.Column("invoice_id", sa.UUID(), sa.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False),
        sa.Column("fee_head_id", sa.UUID(), sa.ForeignKey("fee_heads.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("original_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("invoice_items", "id")
    _index("invoice_items", "invoice_id")

    op.create_table(
        "payments",
        *_base_columns(),
        _school_id(),
        sa.Column("invoice_id", sa.UUID(), sa.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("method", _enum("payment_method"), nullable=False),
        sa.Column("paid_at", sa.DateTime(), nullable=False),
        sa.Column("transaction_id", sa.String(255), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    _index("payments", "id")
    _index("payments", "school_id")
    _index("payments", "invoice_id")
    _index("payments", "paid_at")


def downgrade() -> None:
    for table in (
        "payments",
        "invoice_items",
        "invoices",
        "student_discounts",
        "discounts",
        "student_fee_structure_items",
        "student_fee_structures",
        "fee_structures",
        "fee_heads",
        "kinships",
        "parent_profiles",
        "student_profiles",
        "users",
        "school_classes",
        "schools",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for name in ENUMS:
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
