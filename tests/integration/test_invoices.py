"""Integration tests: Fee setup, invoice generation, single payments and dues search."""

from decimal import Decimal

import pytest
from tests.conftest import requires_db

pytestmark = requires_db
from httpx import AsyncClient


@pytest.fixture
async def billed_class(
    async_client: AsyncClient,
    api_base: str,
    registered_school: dict,
    class_id: str,
    fee_head_id: str,
    create_student,
    unique_suffix: str,
):
    """A class with a 1000 tuition fee, two students and a 50% discount for the first."""
    headers = registered_school["headers"]
    resp = await async_client.post(
        f"{api_base}/finance/fee-structures",
        headers=headers,
        json={"class_id": class_id, "fee_head_id": fee_head_id, "amount": "1000"},
    )
    assert resp.status_code == 200, resp.text

    discounted = await create_student(f"D{unique_suffix}", first_name="Ali", class_id=class_id)
    regular = await create_student(f"R{unique_suffix}", first_name="Sara", class_id=class_id)

    resp = await async_client.post(
        f"{api_base}/finance/discounts",
        headers=headers,
        json={"name": "Sibling", "type": "PERCENTAGE", "value": "50", "fee_head_id": fee_head_id},
    )
    assert resp.status_code == 201, resp.text
    discount_id = resp.json()["data"]["id"]

    resp = await async_client.post(
        f"{api_base}/students/{discounted}/discounts",
        headers=headers,
        json={"discount_id": discount_id},
    )
    assert resp.status_code == 201, resp.text

    return {"class_id": class_id, "discounted": discounted, "regular": regular, "discount_id": discount_id}


async def _generate(client, api_base, headers, class_id, month=1, year=2024):
    return await client.post(
        f"{api_base}/finance/invoices/generate",
        headers=headers,
        json={"class_id": class_id, "month": month, "year": year, "due_date": f"{year}-{month:02d}-10"},
    )


async def _invoices_by_student(client, api_base, headers):
    resp = await client.get(f"{api_base}/finance/invoices", headers=headers)
    assert resp.status_code == 200
    return {inv["student_id"]: inv for inv in resp.json()["data"]}


@pytest.mark.asyncio
async def test_generate_applies_discounts(
    async_client: AsyncClient, api_base: str, registered_school: dict, billed_class: dict, unique_suffix: str
):
    headers = registered_school["headers"]
    resp = await _generate(async_client, api_base, headers, billed_class["class_id"])
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["generated"] == 2

    invoices = await _invoices_by_student(async_client, api_base, headers)
    discounted = invoices[billed_class["discounted"]]
    assert Decimal(discounted["total_amount"]) == Decimal("500")
    assert discounted["invoice_no"] == f"INV-202401-D{unique_suffix}"
    assert discounted["status"] == "UNPAID"
    assert Decimal(invoices[billed_class["regular"]]["total_amount"]) == Decimal("1000")


@pytest.mark.asyncio
async def test_generate_twice_conflicts(
    async_client: AsyncClient, api_base: str, registered_school: dict, billed_class: dict
):
    headers = registered_school["headers"]
    assert (await _generate(async_client, api_base, headers, billed_class["class_id"])).status_code == 200
    resp = await _generate(async_client, api_base, headers, billed_class["class_id"])
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_generate_without_fee_structure(
    async_client: AsyncClient, api_base: str, registered_school: dict, class_id: str
):
    resp = await _generate(async_client, api_base, registered_school["headers"], class_id)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_single_payment_and_overpayment(
    async_client: AsyncClient, api_base: str, registered_school: dict, billed_class: dict
):
    headers = registered_school["headers"]
    await _generate(async_client, api_base, headers, billed_class["class_id"])
    invoice = (await _invoices_by_student(async_client, api_base, headers))[billed_class["regular"]]

    resp = await async_client.post(
        f"{api_base}/finance/payments",
        headers=headers,
        json={"invoice_id": invoice["id"], "amount": "400", "method": "CHEQUE", "transaction_id": "CHQ-77"},
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["status"] == "PARTIAL"
    assert Decimal(data["pending_amount"]) == Decimal("600")
    assert data["payments"][0]["transaction_id"] == "CHQ-77"

    resp = await async_client.post(
        f"{api_base}/finance/payments",
        headers=headers,
        json={"invoice_id": invoice["id"], "amount": "600.01"},
    )
    assert resp.status_code == 400

    resp = await async_client.post(
        f"{api_base}/finance/payments",
        headers=headers,
        json={"invoice_id": invoice["id"], "amount": "0"},
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_invoice_actions(
    async_client: AsyncClient, api_base: str, registered_school: dict, billed_class: dict
):
    headers = registered_school["headers"]
    await _generate(async_client, api_base, headers, billed_class["class_id"])
    invoice = (await _invoices_by_student(async_client, api_base, headers))[billed_class["regular"]]

    resp = await async_client.patch(
        f"{api_base}/finance/invoices/{invoice['id']}", headers=headers, json={"action": "CANCEL"}
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "CANCELLED"

    resp = await async_client.get(f"{api_base}/finance/invoices?status=CANCELLED", headers=headers)
    assert [inv["id"] for inv in resp.json()["data"]] == [invoice["id"]]

    resp = await async_client.post(
        f"{api_base}/finance/payments", headers=headers, json={"invoice_id": invoice["id"], "amount": "10"}
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_mark_overdue(
    async_client: AsyncClient, api_base: str, registered_school: dict, billed_class: dict
):
    headers = registered_school["headers"]
    await _generate(async_client, api_base, headers, billed_class["class_id"], month=1, year=2020)

    resp = await async_client.post(f"{api_base}/finance/invoices/mark-overdue", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["updated"] == 2

    invoices = await _invoices_by_student(async_client, api_base, headers)
    assert {inv["status"] for inv in invoices.values()} == {"OVERDUE"}


@pytest.mark.asyncio
async def test_search_dues(
    async_client: AsyncClient, api_base: str, registered_school: dict, billed_class: dict, unique_suffix: str
):
    headers = registered_school["headers"]
    await _generate(async_client, api_base, headers, billed_class["class_id"])

    resp = await async_client.get(
        f"{api_base}/finance/search-dues", headers=headers, params={"q": f"r{unique_suffix}"}
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["id"] == billed_class["regular"]
    assert Decimal(data["total_due"]) == Decimal("1000")
    assert len(data["invoices"]) == 1

    resp = await async_client.get(
        f"{api_base}/finance/search-dues", headers=headers, params={"q": "nobody-by-that-name"}
    )
    assert resp.status_code == 404

    resp = await async_client.get(f"{api_base}/finance/search-dues", headers=headers, params={"q": "%"})
    assert resp.status_code == 404

    resp = await async_client.get(f"{api_base}/finance/search-dues", headers=headers)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_student_discount_removal(
    async_client: AsyncClient, api_base: str, registered_school: dict, billed_class: dict
):
    headers = registered_school["headers"]
    student = billed_class["discounted"]

    resp = await async_client.get(f"{api_base}/students/{student}/discounts", headers=headers)
    assert [d["id"] for d in resp.json()["data"]] == [billed_class["discount_id"]]

    resp = await async_client.delete(
        f"{api_base}/students/{student}/discounts/{billed_class['discount_id']}", headers=headers
    )
    assert resp.status_code == 200

    resp = await async_client.get(f"{api_base}/students/{student}/discounts", headers=headers)
    assert resp.json()["data"] == []


@pytest.mark.asyncio
async def test_percentage_discount_over_100(
    async_client: AsyncClient, api_base: str, registered_school: dict, fee_head_id: str
):
    resp = await async_client.post(
        f"{api_base}/finance/discounts",
        headers=registered_school["headers"],
        json={"name": "Too much", "type": "PERCENTAGE", "value": "150", "fee_head_id": fee_head_id},
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_same_admission_number_in_two_schools(
    async_client: AsyncClient, api_base: str, registered_school: dict, billed_class: dict, unique_suffix: str
):
    headers = registered_school["headers"]
    assert (await _generate(async_client, api_base, headers, billed_class["class_id"])).status_code == 200

    email = f"other_admin_{unique_suffix}@test.example.com"
    resp = await async_client.post(
        f"{api_base}/auth/register/school",
        json={"email": email, "password": "TestPassword123!", "school_name": f"Other School {unique_suffix}"},
    )
    assert resp.status_code == 200, resp.text
    resp = await async_client.post(f"{api_base}/auth/login", json={"email": email, "password": "TestPassword123!"})
    other = {"Authorization": f"Bearer {resp.json()['data']['access_token']}"}

    resp = await async_client.post(f"{api_base}/classes", headers=other, json={"name": "Grade 1"})
    other_class = resp.json()["data"]["id"]
    resp = await async_client.post(f"{api_base}/finance/fee-heads", headers=other, json={"name": "Tuition"})
    other_head = resp.json()["data"]["id"]
    resp = await async_client.post(
        f"{api_base}/finance/fee-structures",
        headers=other,
        json={"class_id": other_class, "fee_head_id": other_head, "amount": "700"},
    )
    assert resp.status_code == 200, resp.text
    resp = await async_client.post(
        f"{api_base}/students",
        headers=other,
        json={
            "email": f"twin_{unique_suffix}@test.example.com",
            "first_name": "Twin",
            "last_name": "Khan",
            "admission_number": f"R{unique_suffix}",
            "class_id": other_class,
        },
    )
    assert resp.status_code == 200, resp.text

    resp = await _generate(async_client, api_base, other, other_class)
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["generated"] == 1

    mine = (await _invoices_by_student(async_client, api_base, headers))[billed_class["regular"]]
    theirs = list((await _invoices_by_student(async_client, api_base, other)).values())
    assert [inv["invoice_no"] for inv in theirs] == [mine["invoice_no"]]
    assert Decimal(theirs[0]["total_amount"]) == Decimal("700")


@pytest.mark.asyncio
async def test_student_fee_structure_snapshot(
    async_client: AsyncClient, api_base: str, registered_school: dict, billed_class: dict, fee_head_id: str
):
    headers = registered_school["headers"]
    student = billed_class["regular"]
    url = f"{api_base}/students/{student}/fee-structure"

    resp = await async_client.put(url, headers=headers, json={"mode": "KEEP_EXISTING"})
    assert resp.status_code == 200, resp.text
    assert resp.json()["message"] == "Previous fee structure retained."
    assert resp.json()["data"] is None

    resp = await async_client.put(url, headers=headers, json={"mode": "SWITCH_TO_CLASS_DEFAULT"})
    assert resp.status_code == 200, resp.text
    snapshot = resp.json()["data"]
    assert snapshot["school_class_id"] == billed_class["class_id"]
    assert [(i["fee_head_id"], Decimal(i["amount"])) for i in snapshot["items"]] == [(fee_head_id, Decimal("1000"))]

    resp = await async_client.post(
        f"{api_base}/finance/fee-structures",
        headers=headers,
        json={"class_id": billed_class["class_id"], "fee_head_id": fee_head_id, "amount": "1500"},
    )
    assert resp.status_code == 200, resp.text

    resp = await async_client.get(url, headers=headers)
    assert resp.status_code == 200
    overview = resp.json()["data"]
    assert overview["class_id"] == billed_class["class_id"]
    assert Decimal(overview["current_fee_structure"]["items"][0]["amount"]) == Decimal("1000")
    assert Decimal(overview["class_defaults"][0]["amount"]) == Decimal("1500")

    resp = await async_client.put(url, headers=headers, json={"mode": "KEEP_EXISTING"})
    assert resp.json()["data"]["id"] == snapshot["id"]

    await _generate(async_client, api_base, headers, billed_class["class_id"])
    invoices = await _invoices_by_student(async_client, api_base, headers)
    assert Decimal(invoices[student]["total_amount"]) == Decimal("1000")
    assert Decimal(invoices[billed_class["discounted"]]["total_amount"]) == Decimal("750")

    resp = await async_client.put(url, headers=headers, json={"mode": "SWITCH_TO_CLASS_DEFAULT"})
    assert resp.status_code == 200
    assert resp.json()["data"]["id"] == snapshot["id"]
    assert [Decimal(i["amount"]) for i in resp.json()["data"]["items"]] == [Decimal("1500")]


@pytest.mark.asyncio
async def test_student_fee_structure_errors(
    async_client: AsyncClient, api_base: str, registered_school: dict, class_id: str, create_student
):
    headers = registered_school["headers"]
    unassigned = await create_student("NOCLASS")

    resp = await async_client.put(
        f"{api_base}/students/{unassigned}/fee-structure", headers=headers, json={"mode": "SWITCH_TO_CLASS_DEFAULT"}
    )
    assert resp.status_code == 400

    resp = await async_client.put(
        f"{api_base}/students/{unassigned}/fee-structure",
        headers=headers,
        json={"mode": "SWITCH_TO_CLASS_DEFAULT", "class_id": class_id},
    )
    assert resp.status_code == 400

    resp = await async_client.get(f"{api_base}/students/{unassigned}/fee-structure", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["current_fee_structure"] is None
    assert resp.json()["data"]["class_defaults"] == []

    resp = await async_client.get(
        f"{api_base}/students/00000000-0000-0000-0000-000000000000/fee-structure", headers=headers
    )
    assert resp.status_code == 404
