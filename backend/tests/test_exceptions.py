"""Error envelope and database error mapping."""

import json

import pytest

from storecredit.middleware.exceptions import (
    NegativeBalanceError,
    _describe_integrity_error,
    create_error_response,
)


@pytest.mark.unit
class TestErrorEnvelope:
    def test_shape(self):
        resp = create_error_response(404, "Customer not found: c1", "RESOURCE_NOT_FOUND")
        assert resp.status_code == 404
        assert json.loads(resp.body) == {
            "success": False,
            "message": "Customer not found: c1",
            "code": "RESOURCE_NOT_FOUND",
        }

    def test_field_errors_included(self):
        errors = [{"field": "amount", "message": "too big", "type": "value_error"}]
        resp = create_error_response(400, "Validation failed", "VALIDATION_ERROR", errors=errors)
        assert json.loads(resp.body)["errors"] == errors

    def test_negative_balance_error(self):
        exc = NegativeBalanceError()
        assert (exc.status_code, exc.error_code) == (400, "NEGATIVE_BALANCE")


@pytest.mark.unit
class TestIntegrityMapping:
    @pytest.mark.parametrize(
        "db_message, code",
        [
            (
                'new row for relation "customers" violates check constraint '
                '"ck_customers_credit_balance_non_negative"',
                "NEGATIVE_BALANCE",
            ),
            ("CHECK constraint failed: ck_customers_credit_limit_non_negative", "NEGATIVE_LIMIT"),
            ("UNIQUE constraint failed: stores.code", "DUPLICATE_RECORD"),
            ("FOREIGN KEY constraint failed", "FOREIGN_KEY_VIOLATION"),
            ("CHECK constraint failed: ck_credit_tx_amount_non_negative", "CHECK_VIOLATION"),
            ("something else entirely", "INTEGRITY_ERROR"),
        ],
    )
    def test_codes(self, db_message, code):
        assert _describe_integrity_error(db_message)[1] == code
