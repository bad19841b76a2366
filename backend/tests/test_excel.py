# Overview: Pytest coverage for spreadsheet templates, uploads and exports.

"""
Excel Tests

Workbooks are built in memory with openpyxl using the same Korean headers
as the downloadable templates.
"""

from decimal import Decimal
from io import BytesIO

import pytest
from openpyxl import Workbook, load_workbook

from erp.models import ActivityLog, Customer, Payment, Product, Purchase, Sales
from erp.services import excel_service


XLSX = excel_service.XLSX_MIMETYPE


def make_xlsx(headers, rows) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.append(headers)
    for row in rows:
        ws.append(row)
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def read_xlsx(data: bytes) -> list[tuple]:
    wb = load_workbook(BytesIO(data))
    return list(wb.active.iter_rows(values_only=True))


def upload(client, business, upload_type, data, headers, filename="upload.xlsx", mimetype=XLSX):
    return client.post(
        f"/api/excel/upload/{business.id}/{upload_type}",
        data={"file": (BytesIO(data), filename, mimetype)},
        content_type="multipart/form-data",
        headers=headers,
    )


CUSTOMER_HEADERS = [header for header, _ in excel_service.CUSTOMER_COLUMNS]
PRODUCT_HEADERS = [header for header, _ in excel_service.PRODUCT_COLUMNS]
SALES_HEADERS = [header for header, _ in excel_service.SALES_COLUMNS]


class TestTemplates:

    @pytest.mark.parametrize("template_type", sorted(excel_service.TEMPLATES))
    def test_template_download(self, client, headers_a, template_type):
        resp = client.get(f"/api/excel/template/{template_type}", headers=headers_a)
        assert resp.status_code == 200
        assert resp.mimetype == XLSX
        assert excel_service.TEMPLATES[template_type].filename in resp.headers["Content-Disposition"]

        header_row, example_row = read_xlsx(resp.data)
        assert list(header_row) == [h for h, _ in excel_service.TEMPLATES[template_type].columns]
        assert example_row[0] is not None

    def test_unknown_template(self, client, headers_a):
        resp = client.get("/api/excel/template/invoices", headers=headers_a)
        assert resp.status_code == 404


class TestHelpers:

    @pytest.mark.parametrize("raw,expected", [
        ("C1", "C0001"),
        ("C012", "C0012"),
        ("C0003", "C0003"),
        ("VIP-1", "VIP-1"),
        (None, None),
    ])
    def test_normalize_customer_code(self, raw, expected):
        assert excel_service.normalize_customer_code(raw) == expected

    def test_cell_text(self):
        assert excel_service.cell_text(12.0) == "12"
        assert excel_service.cell_text("  ") is None

    def test_blank_rows_are_skipped(self):
        data = make_xlsx(["거래처명"], [["첫째"], [None], ["  "], ["둘째"]])
        rows = excel_service.read_rows(data)
        assert [(n, r["거래처명"]) for n, r in rows] == [(2, "첫째"), (5, "둘째")]


class TestCustomerUpload:

    def test_creates_and_upserts(self, client, db_session, business_a, customer_a, headers_a):
        data = make_xlsx(CUSTOMER_HEADERS, [
            ["C1", "가나다유통(주)", "111-22-33333", None, None, None, None, "02-777-9999", None, None, None, "매출처", "Y"],
            [None, "새거래처", "333-44-55555", "부산시", None, None, "최사장", None, None, None, "010-1111-0000", "매입처", "Y"],
        ])
        resp = upload(client, business_a, "customers", data, headers_a)

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["data"] == {"success": 2, "failed": 0, "errors": []}
        assert body["message"] == "2건이 등록되었습니다."

        db_session.expire_all()
        updated = db_session.get(Customer, customer_a.id)
        assert updated.name == "가나다유통(주)"
        assert updated.phone == "02-777-9999"

        created = db_session.query(Customer).filter_by(name="새거래처").one()
        assert created.customer_code == "C0002"
        assert created.business_number == "3334455555"
        assert created.manager_contact == "010-1111-0000"
        assert created.customer_type == "매입처"

    def test_failed_rows_are_reported(self, client, db_session, business_a, headers_a):
        data = make_xlsx(CUSTOMER_HEADERS, [
            ["C0001", "정상", None, None, None, None, None, None, None, None, None, None, "Y"],
            ["C0002", None, None, None, None, None, None, None, None, None, None, None, "Y"],
            ["C0003", "잘못된구분", None, None, None, None, None, None, None, None, None, "VIP", "Y"],
        ])
        body = upload(client, business_a, "customers", data, headers_a).get_json()

        assert body["data"]["success"] == 1
        assert body["data"]["failed"] == 2
        assert body["message"] == "1건이 등록되었습니다. (2건 실패)"
        assert body["data"]["errors"][0].startswith("3행")
        assert db_session.query(Customer).count() == 1

    def test_inactive_flag(self, client, db_session, business_a, headers_a):
        data = make_xlsx(CUSTOMER_HEADERS, [
            ["C0001", "휴면거래처", None, None, None, None, None, None, None, None, None, None, "N"],
        ])
        upload(client, business_a, "customers", data, headers_a)
        assert db_session.query(Customer).one().is_active is False


class TestProductUpload:

    def test_duplicate_code_fails_row(self, client, db_session, business_a, product_a, headers_a):
        data = make_xlsx(PRODUCT_HEADERS, [
            ["P001", "중복", None, None, 100, 200, None, None, None, "Y"],
            ["P002", "형광펜", "노랑", "EA", 500, 800, "필기구", "tax_separate", None, "Y"],
        ])
        body = upload(client, business_a, "products", data, headers_a).get_json()

        assert body["data"]["success"] == 1
        assert body["data"]["failed"] == 1
        assert "이미 등록된 품목코드입니다." in body["data"]["errors"][0]

        product = db_session.query(Product).filter_by(product_code="P002").one()
        assert product.sell_price == Decimal("800")
        assert product.category == "필기구"


class TestDocumentUpload:

    def test_sales_grouped_by_date_and_customer(self, client, db_session, business_a, customer_a, headers_a):
        data = make_xlsx(SALES_HEADERS, [
            ["2025-03-02", "가나다유통", "A4 복사용지", "80g", 2, "BOX", 25000, 50000, 5000, None],
            ["2025-03-02", "가나다유통", "볼펜", None, 10, "EA", 1000, 10000, None, None],
            ["2025-03-03", "가나다유통", "토너", None, 1, "EA", 55000, None, None, "급송"],
        ])
        body = upload(client, business_a, "sales", data, headers_a).get_json()
        assert body["data"] == {"success": 2, "failed": 0, "errors": []}

        first, second = db_session.query(Sales).order_by(Sales.transaction_date).all()
        assert first.customer_id == customer_a.id
        assert len(first.items) == 2
        assert first.total_amount == Decimal("60000")
        assert first.vat_amount == Decimal("6000")
        assert second.total_amount == Decimal("55000")
        assert second.memo == "급송"

    def test_unknown_customer_fails_group(self, client, db_session, business_a, headers_a):
        data = make_xlsx(SALES_HEADERS, [
            ["2025-03-02", "없는거래처", "볼펜", None, 1, "EA", 1000, None, None, None],
        ])
        body = upload(client, business_a, "sales", data, headers_a).get_json()
        assert body["data"]["failed"] == 1
        assert "없는거래처" in body["data"]["errors"][0]
        assert db_session.query(Sales).count() == 0

    def test_purchases(self, client, db_session, business_a, customer_a, headers_a):
        headers = [h for h, _ in excel_service.PURCHASE_COLUMNS]
        data = make_xlsx(headers, [["2025-03-04", "가나다유통", "원지", None, 5, "롤", 30000, None, None, None]])
        body = upload(client, business_a, "purchases", data, headers_a).get_json()
        assert body["data"]["success"] == 1

        purchase = db_session.query(Purchase).one()
        assert purchase.total_amount == Decimal("150000")
        assert purchase.vat_amount == Decimal("15000")

    def test_receivables_and_payables(self, client, db_session, business_a, customer_a, headers_a):
        receivables = make_xlsx(
            [h for h, _ in excel_service.RECEIVABLE_COLUMNS],
            [[1, "2025-03-05", "가나다유통", 330000, "3월분"]],
        )
        payables = make_xlsx(
            [h for h, _ in excel_service.PAYABLE_COLUMNS],
            [[1, "2025-03-06", "가나다유통", 100000, None]],
        )
        upload(client, business_a, "receivables", receivables, headers_a)
        upload(client, business_a, "payables", payables, headers_a)

        types = sorted(p.payment_type for p in db_session.query(Payment).all())
        assert types == ["수금", "입금"]


class TestUploadValidation:

    def test_wrong_extension(self, client, business_a, headers_a):
        resp = upload(client, business_a, "customers", b"a,b,c", headers_a, filename="data.csv", mimetype="text/csv")
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "ERR_FILE_003"

    def test_not_a_zip(self, client, business_a, headers_a):
        resp = upload(client, business_a, "customers", b"not a workbook", headers_a)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "ERR_FILE_002"

    def test_missing_file(self, client, business_a, headers_a):
        resp = client.post(f"/api/excel/upload/{business_a.id}/customers", data={}, headers=headers_a)
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "ERR_FILE_004"

    def test_unknown_type(self, client, business_a, headers_a):
        resp = upload(client, business_a, "invoices", make_xlsx(["a"], [["b"]]), headers_a)
        assert resp.status_code == 404

    def test_upload_is_logged(self, client, db_session, business_a, headers_a):
        upload(client, business_a, "customers", make_xlsx(CUSTOMER_HEADERS, [["C0001", "기록"]]), headers_a)
        log = db_session.query(ActivityLog).one()
        assert log.action_type == "upload"
        assert log.entity == "customers"


class TestExport:

    def test_customers_round_trip_headers(self, client, business_a, customer_a, headers_a):
        resp = client.get(f"/api/excel/export/{business_a.id}/customers", headers=headers_a)
        assert resp.status_code == 200
        assert f"customers_{business_a.id}.xlsx" in resp.headers["Content-Disposition"]

        header_row, row = read_xlsx(resp.data)
        assert list(header_row) == CUSTOMER_HEADERS
        assert row[0] == "C0001"
        assert row[1] == customer_a.name
        assert row[-1] == "Y"

    def test_sales_one_row_per_line(self, client, db_session, business_a, customer_a, headers_a):
        data = make_xlsx(SALES_HEADERS, [
            ["2025-03-02", "가나다유통", "A4 복사용지", None, 2, "BOX", 25000, None, None, None],
            ["2025-03-02", "가나다유통", "볼펜", None, 10, "EA", 1000, None, None, None],
        ])
        upload(client, business_a, "sales", data, headers_a)

        resp = client.get(f"/api/excel/export/{business_a.id}/sales", headers=headers_a)
        rows = read_xlsx(resp.data)[1:]
        assert [r[2] for r in rows] == ["A4 복사용지", "볼펜"]
        assert rows[0][7] == 50000

    def test_unknown_export(self, client, business_a, headers_a):
        resp = client.get(f"/api/excel/export/{business_a.id}/payments", headers=headers_a)
        assert resp.status_code == 404
