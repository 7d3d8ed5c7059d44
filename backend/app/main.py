from typing import Any, Optional, Union

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from stepmatrix import (
    MatrixError,
    add_matrices,
    calculate_adjugate,
    calculate_determinant,
    calculate_inverse,
    calculate_rank,
    calculate_symbolic_determinant,
    multiply_matrices,
    solve_linear_system,
    solve_linear_system_with_cramer,
    solve_symbolic_linear_system,
    subtract_matrices,
    transpose_matrix,
)
from stepmatrix.config import VERSION
from stepmatrix.logging_config import get_logger

logger = get_logger("api")

app = FastAPI(title="StepMatrix API", version=VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

Cell = Union[float, str]

BINARY_OPERATIONS = {
    "add": add_matrices,
    "subtract": subtract_matrices,
    "multiply": multiply_matrices,
}
UNARY_OPERATIONS = {
    "transpose": transpose_matrix,
    "adjugate": calculate_adjugate,
    "inverse": calculate_inverse,
    "rank": calculate_rank,
}


class MatrixRequest(BaseModel):
    a: list[list[float]]
    b: Optional[list[list[float]]] = None
    method: Optional[str] = None


class SymbolicDeterminantRequest(BaseModel):
    matrix: list[list[Cell]]
    method: Optional[str] = None


class SystemRequest(BaseModel):
    a: list[list[Cell]]
    b: list[list[Cell]]
    method: Optional[str] = None
    symbolic: bool = False


class StepInfo(BaseModel):
    step_number: int
    title: str
    description: str
    formula: Optional[str] = None
    matrices: list[dict[str, Any]] = []


class OperationResponse(BaseModel):
    result: list[list[float]]
    steps: list[StepInfo]


class SymbolicDeterminantResponse(BaseModel):
    result: str
    latex: str
    steps: list[StepInfo]


def _require_matrix(matrix, name: str) -> None:
    if not matrix or not matrix[0]:
        raise HTTPException(status_code=400, detail=f"{name} cannot be empty.")


def _run(func, *args):
    try:
        return func(*args).to_dict()
    except (MatrixError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Unexpected engine failure in %s", func.__name__, exc_info=True)
        raise HTTPException(status_code=500, detail=f"Engine error: {str(e)}")


@app.get("/api/health")
def health():
    return {"status": "ok", "version": VERSION}


@app.post("/api/matrix/{operation}", response_model=OperationResponse)
def matrix_operation(operation: str, req: MatrixRequest):
    _require_matrix(req.a, "Matrix A")

    if operation in BINARY_OPERATIONS:
        if req.b is None:
            raise HTTPException(status_code=400, detail=f"'{operation}' needs a second matrix b.")
        _require_matrix(req.b, "Matrix B")
        return _run(BINARY_OPERATIONS[operation], req.a, req.b)
    if operation in UNARY_OPERATIONS:
        return _run(UNARY_OPERATIONS[operation], req.a)
    if operation == "determinant":
        return _run(calculate_determinant, req.a, req.method)
    raise HTTPException(status_code=404, detail=f"Unknown operation '{operation}'.")


@app.post("/api/symbolic/determinant", response_model=SymbolicDeterminantResponse)
def symbolic_determinant(req: SymbolicDeterminantRequest):
    _require_matrix(req.matrix, "Matrix")
    return _run(calculate_symbolic_determinant, req.matrix, req.method)


@app.post("/api/system")
def system(req: SystemRequest):
    _require_matrix(req.a, "Matrix A")
    _require_matrix(req.b, "Vector B")

    if req.symbolic:
        return _run(solve_symbolic_linear_system, req.a, req.b, req.method)
    if any(isinstance(cell, str) for row in req.a + req.b for cell in row):
        raise HTTPException(
            status_code=400,
            detail="Numeric systems take numbers only; set symbolic=true for expressions.",
        )
    if req.method == "cramer":
        return _run(solve_linear_system_with_cramer, req.a, req.b)
    if req.method not in (None, "gauss"):
        raise HTTPException(status_code=400, detail=f"Unknown system method '{req.method}'.")
    return _run(solve_linear_system, req.a, req.b)
