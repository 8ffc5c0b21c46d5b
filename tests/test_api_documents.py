"""Tests for POST /v1/documents/evaluate."""

from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

from linecalc.api.main import create_app

EVALUATE = "/v1/documents/evaluate"


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app())


def _lines(*texts: str) -> list[dict[str, Any]]:
    return [{"text": text} for text in texts]


class TestEvaluateDocument:
    """Successful evaluations."""

    def test_units_document(self, client: TestClient) -> None:
        response = client.post(EVALUATE, json={"lines": _lines("10 m + 5 ft =>")})

        assert response.status_code == 200
        data = response.json()
        assert data["results"][0]["display_text"] == "10 m + 5 ft => 11.524 m"
        assert data["results"][0]["value"]["type"] == "unit"
        assert data["statuses"] == {"1": "result"}
        assert data["error_count"] == 0

    def test_variables_and_errors(self, client: TestClient) -> None:
        body = {"lines": _lines("a = 5 kg", "b = a * 2 =>", "10 / 0 =>")}
        data = client.post(EVALUATE, json=body).json()

        assert [r["display_text"] for r in data["results"]] == [
            "b = a * 2 => 10 kg",
            "10 / 0 => ⚠️ Division by zero",
        ]
        assert data["results"][1]["error_kind"] == "DivisionByZeroError"
        assert data["error_count"] == 1
        assert [v["name"] for v in data["variables"]] == ["a", "b"]
        assert data["variables"][1]["unit"] == "kg"

    def test_settings_override(self, client: TestClient) -> None:
        body = {"lines": _lines("1 / 3 =>"), "settings": {"decimal_places": 2}}
        data = client.post(EVALUATE, json=body).json()
        assert data["results"][0]["result"] == "0.33"

    def test_today_is_used_for_date_keywords(self, client: TestClient) -> None:
        body = {"lines": _lines("today + 1 day =>"), "today": "2024-02-28"}
        data = client.post(EVALUATE, json=body).json()
        assert data["results"][0]["result"] == "2024-02-29"

    def test_cross_line_reference(self, client: TestClient) -> None:
        body = {
            "lines": [
                {"id": "src", "text": "1 / 0 =>"},
                {
                    "id": "dep",
                    "text": "REF * 2 =>",
                    "references": [{"placeholder": "REF", "target_line_id": "src"}],
                },
            ]
        }
        data = client.post(EVALUATE, json=body).json()

        assert data["statuses"]["2"] == "broken_reference"
        assert data["line_states"]["dep"]["has_error"] is True
        assert data["results"][1]["display_text"] == "REF * 2 => ⚠ source line has error"

    def test_live_metrics(self, client: TestClient) -> None:
        data = client.post(EVALUATE, json={"lines": _lines("5 + 3", "buy milk")}).json()

        assert data["live_metrics"]["attempted"] == 1
        assert data["live_metrics"]["shown"] == 1
        assert data["live_metrics"]["suppressed"]["plaintext"] == 1
        assert data["suppressed"] == {"2": "plaintext"}

    def test_response_carries_request_id(self, client: TestClient) -> None:
        response = client.post(
            EVALUATE, json={"lines": _lines("1 =>")}, headers={"X-Request-Id": "doc-1"}
        )
        assert response.headers["X-Request-Id"] == "doc-1"


class TestEvaluateDocumentErrors:
    """Rejected requests use the error envelope."""

    def test_duplicate_line_ids(self, client: TestClient) -> None:
        body = {"lines": [{"id": "a", "text": "1"}, {"id": "a", "text": "2"}]}
        response = client.post(EVALUATE, json=body)

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "DUPLICATE_LINE_ID"
        assert data["details"] == {"line_ids": ["a"]}

    def test_invalid_settings(self, client: TestClient) -> None:
        body = {"lines": _lines("1 =>"), "settings": {"max_function_depth": 0}}
        response = client.post(EVALUATE, json=body)

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "INVALID_SETTINGS"
        assert "max_function_depth" in data["message"]

    def test_unknown_field_rejected(self, client: TestClient) -> None:
        response = client.post(EVALUATE, json={"lines": [], "mode": "fast"})

        assert response.status_code == 422
        data = response.json()
        assert data["code"] == "REQUEST_VALIDATION_FAILED"
        assert data["details"]["errors"][0]["field"] == "mode"

    def test_decimal_places_out_of_range(self, client: TestClient) -> None:
        body = {"lines": _lines("1 =>"), "settings": {"decimal_places": 99}}
        response = client.post(EVALUATE, json=body)

        assert response.status_code == 422
        assert response.json()["details"]["errors"][0]["field"] == "settings.decimal_places"

    @pytest.mark.parametrize(
        ("field", "value"),
        [("scientific_upper_exponent", 400), ("max_function_depth", 10_000)],
    )
    def test_settings_upper_bounds(self, client: TestClient, field: str, value: int) -> None:
        body = {"lines": _lines("1 + 1 =>"), "settings": {field: value}}
        response = client.post(EVALUATE, json=body)

        assert response.status_code == 422
        data = response.json()
        assert data["code"] == "REQUEST_VALIDATION_FAILED"
        assert data["details"]["errors"][0]["field"] == f"settings.{field}"

    def test_missing_text(self, client: TestClient) -> None:
        response = client.post(EVALUATE, json={"lines": [{"id": "x"}]})

        assert response.status_code == 422
        assert response.json()["details"]["errors"][0]["field"] == "lines.0.text"
