"""Command-line interface: run one operation on JSON matrices and print the trace."""

import argparse
import json
import sys

from stepmatrix import config
from stepmatrix.determinant import calculate_determinant
from stepmatrix.logging_config import get_logger, setup_logging
from stepmatrix.numeric import (
    add_matrices,
    calculate_adjugate,
    calculate_inverse,
    calculate_rank,
    multiply_matrices,
    solve_linear_system,
    solve_linear_system_with_cramer,
    subtract_matrices,
    transpose_matrix,
)
from stepmatrix.symbolic_matrix import calculate_symbolic_determinant
from stepmatrix.systems import solve_symbolic_linear_system
from stepmatrix.types import MatrixError

logger = get_logger("cli")

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
OPERATIONS = list(BINARY_OPERATIONS) + list(UNARY_OPERATIONS) + ["det", "solve", "sdet"]


def _load_matrix(text: str, name: str):
    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"{name} is not valid JSON: {e.msg}") from e
    if not isinstance(value, list):
        raise ValueError(f"{name} must be a JSON array of rows")
    return value


def run(args: argparse.Namespace):
    """Dispatch the parsed arguments to the engine; returns a result object."""
    a = _load_matrix(args.matrix, "MATRIX")
    b = _load_matrix(args.b, "--b") if args.b is not None else None
    op = args.operation
    logger.debug("Running %s", op)

    if op in BINARY_OPERATIONS:
        if b is None:
            raise ValueError(f"'{op}' needs a second matrix (--b)")
        return BINARY_OPERATIONS[op](a, b)
    if op in UNARY_OPERATIONS:
        return UNARY_OPERATIONS[op](a)
    if op == "det":
        return calculate_determinant(a, args.method)
    if op == "sdet":
        return calculate_symbolic_determinant(a, args.method)

    if b is None:
        raise ValueError("'solve' needs the right-hand side column (--b)")
    if args.symbolic:
        return solve_symbolic_linear_system(a, b, args.method)
    if args.method == "cramer":
        return solve_linear_system_with_cramer(a, b)
    if args.method not in (None, "gauss"):
        raise ValueError(f"Unknown system method '{args.method}'")
    return solve_linear_system(a, b)


def _print_steps(steps, indent: str = "") -> None:
    for step in steps:
        print(f"{indent}{step.step_number}. {step.title}")
        for line in step.description.splitlines():
            print(f"{indent}   {line}")
        if step.formula:
            print(f"{indent}   {step.formula}")


def _print_result(result) -> None:
    _print_steps(result.steps)
    data = result.to_dict()
    print()
    if "compatibility" in data:
        print(f"Compatibility: {data['compatibility']}")
        if data["solution"] is not None:
            for i, row in enumerate(data["solution"], 1):
                cell = row[0]
                print(f"  x{i} = {cell['text'] if isinstance(cell, dict) else cell}")
        for case in getattr(result, "special_cases", None) or []:
            print()
            print(f"Special case {case.condition}: {case.solution.compatibility}")
            _print_steps(case.solution.steps, indent="  ")
    else:
        print(f"Result: {data['result']}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stepmatrix",
        description="Step-by-step linear algebra on numeric and symbolic matrices",
    )
    parser.add_argument("operation", choices=OPERATIONS, help="Operation to run")
    parser.add_argument("matrix", help='Matrix as a JSON array, e.g. "[[1, 2], [3, 4]]"')
    parser.add_argument("--b", type=str, help="Second matrix or right-hand side column (JSON)")
    parser.add_argument(
        "--method",
        type=str,
        choices=sorted(set(config.DETERMINANT_METHODS + config.SYSTEM_METHODS)),
        help="Determinant or system method",
    )
    parser.add_argument(
        "--symbolic",
        action="store_true",
        help="Solve the system symbolically (cells may be strings such as \"2k\")",
    )
    parser.add_argument(
        "-j", "--json", action="store_true", help="Emit JSON for machine parsing"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=config.LOG_LEVEL.upper(),
        help="Set logging level",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=config.LOG_FILE,
        help="Also write log records to this file",
    )
    parser.add_argument(
        "-v", "--version", action="version", version=f"stepmatrix {config.VERSION}"
    )
    return parser


def main_entry(argv: list[str] | None = None) -> int:
    """
    Main entry point for the StepMatrix CLI.

    Args:
        argv: Optional command-line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, 1 for engine errors)
    """
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level, log_file=args.log_file)

    try:
        result = run(args)
    except (MatrixError, ValueError) as e:
        logger.debug("Operation %s failed: %s", args.operation, e)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        _print_result(result)
    if getattr(result, "ok", True) is False:
        return 1
    return 0


def main() -> None:
    sys.exit(main_entry())


if __name__ == "__main__":
    main()
