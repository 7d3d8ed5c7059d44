import pytest
from fastapi.testclient import TestClient

from backend.app.main import app
from stepmatrix.types import GENERAL_CASE


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def test_health(client: TestClient) -> None:
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


class TestMatrixOperations:
    def test_add(self, client: TestClient) -> None:
        response = client.post(
            "/api/matrix/add", json={"a": [[1, 2], [3, 4]], "b": [[5, 6], [7, 8]]}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["result"] == [[6, 8], [10, 12]]
        assert [s["step_number"] for s in data["steps"]] == [1, 2, 3]

    def test_determinant_with_method(self, client: TestClient) -> None:
        response = client.post(
            "/api/matrix/determinant",
            json={"a": [[2, 0, 0], [0, 3, 0], [0, 0, 4]], "method": "sarrus"},
        )
        assert response.status_code == 200
        assert response.json()["result"] == [[24]]

    def test_rank(self, client: TestClient) -> None:
        response = client.post("/api/matrix/rank", json={"a": [[1, 2], [2, 4]]})
        assert response.json()["result"] == [[1]]

    def test_singular_inverse_is_400(self, client: TestClient) -> None:
        response = client.post("/api/matrix/inverse", json={"a": [[1, 2], [2, 4]]})
        assert response.status_code == 400
        assert "not invertible" in response.json()["detail"]

    def test_dimension_mismatch_is_400(self, client: TestClient) -> None:
        response = client.post("/api/matrix/add", json={"a": [[1, 2]], "b": [[1], [2]]})
        assert response.status_code == 400

    def test_missing_second_matrix(self, client: TestClient) -> None:
        response = client.post("/api/matrix/multiply", json={"a": [[1, 2]]})
        assert response.status_code == 400

    def test_empty_matrix(self, client: TestClient) -> None:
        response = client.post("/api/matrix/transpose", json={"a": []})
        assert response.status_code == 400
        assert "cannot be empty" in response.json()["detail"]

    def test_unknown_operation(self, client: TestClient) -> None:
        response = client.post("/api/matrix/lu", json={"a": [[1]]})
        assert response.status_code == 404

    def test_unexpected_failure_is_500(self, client: TestClient, monkeypatch) -> None:
        import backend.app.main as api

        def boom(matrix):
            raise RuntimeError("kaput")

        monkeypatch.setitem(api.UNARY_OPERATIONS, "transpose", boom)
        response = client.post("/api/matrix/transpose", json={"a": [[1]]})
        assert response.status_code == 500
        assert "kaput" in response.json()["detail"]


class TestSymbolic:
    def test_symbolic_determinant(self, client: TestClient) -> None:
        response = client.post(
            "/api/symbolic/determinant", json={"matrix": [["k", 1], [1, "k"]]}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["result"] == "k^2 - 1"
        assert data["latex"] == "k^{2} - 1"

    def test_parametric_system(self, client: TestClient) -> None:
        response = client.post(
            "/api/system",
            json={
                "a": [["k", "1"], ["1", "1"]],
                "b": [["0"], ["1"]],
                "method": "cramer",
                "symbolic": True,
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["compatibility"] == GENERAL_CASE
        assert data["special_cases"][0]["condition"] == "k = 1"
        assert data["special_cases"][0]["solution"]["compatibility"].endswith("INCOMPATIBLE")

    def test_symbolic_error_is_reported_in_body(self, client: TestClient) -> None:
        response = client.post(
            "/api/system", json={"a": [[1, 2], [3, 4]], "b": [[1, 2]], "symbolic": True}
        )
        assert response.status_code == 200
        assert response.json()["compatibility"].startswith("ERROR: ")


class TestNumericSystem:
    def test_gauss(self, client: TestClient) -> None:
        response = client.post("/api/system", json={"a": [[1, 1], [1, -1]], "b": [[4], [0]]})
        assert response.status_code == 200
        data = response.json()
        assert data["solution"] == [[2], [2]]
        assert data["compatibility"] == "COMPATIBLE DETERMINADO"

    def test_cramer(self, client: TestClient) -> None:
        response = client.post(
            "/api/system",
            json={"a": [[2, 1], [1, 3]], "b": [[3], [5]], "method": "cramer"},
        )
        assert response.json()["solution"] == [[pytest.approx(0.8)], [pytest.approx(1.4)]]

    def test_strings_need_symbolic_flag(self, client: TestClient) -> None:
        response = client.post("/api/system", json={"a": [["k"]], "b": [[1]]})
        assert response.status_code == 400
