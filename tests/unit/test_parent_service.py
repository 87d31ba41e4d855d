"""Unit tests for ParentService.summarize_family."""

from decimal import Decimal
from uuid import uuid4

from schoolms.models.enums import Relationship
from schoolms.models.school import SchoolClass
from schoolms.models.user import Kinship, StudentProfile, User
from schoolms.services.parent_service import ParentService


def _child(first_name, admission_number=None, class_name=None):
    student = User(id=uuid4(), first_name=first_name, last_name="Khan")
    if admission_number:
        student.student_profile = StudentProfile(
            admission_number=admission_number,
            school_class=SchoolClass(name=class_name) if class_name else None,
        )
    return Kinship(relationship_type=Relationship.FATHER, is_primary=True, student=student)


def test_summarize_family_totals_children_dues():
    ali = _child("Ali", "A-001", "Grade 5")
    sara = _child("Sara", "A-002", "Grade 3")
    dues = {ali.student.id: Decimal("1200.00"), sara.student.id: Decimal("300.50")}

    family = ParentService.summarize_family([ali, sara], dues)

    assert family["children_count"] == 2
    assert family["total_family_due"] == Decimal("1500.50")
    assert family["children"][0]["name"] == "Ali Khan"
    assert family["children"][0]["class_name"] == "Grade 5"
    assert family["children"][1]["invoice_due"] == Decimal("300.50")


def test_summarize_family_child_without_dues_or_profile():
    orphan = _child("Bilal")

    family = ParentService.summarize_family([orphan], {})

    child = family["children"][0]
    assert child["total_due"] == Decimal("0")
    assert child["class_name"] == "N/A"
    assert child["admission_number"] == "-"
    assert family["total_family_due"] == Decimal("0")


def test_summarize_family_no_children():
    family = ParentService.summarize_family([], {})
    assert family == {"children": [], "children_count": 0, "total_family_due": Decimal("0")}
