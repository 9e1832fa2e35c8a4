"""
Test runner for the PerimeterAgent suite.

Usage:
    python tests/run_tests.py              # whole suite, with coverage if available
    python tests/run_tests.py resolver     # one pipeline phase
"""

import importlib.util
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

PHASES = {
    "graph": ["test_objects.py", "test_rules.py", "test_policy.py", "test_graph.py"],
    "resolver": ["test_resolver.py"],
    "compiler": ["test_compiler.py"],
    "assembler": ["test_assembler.py"],
    "checker": ["test_checker.py"],
    "pipeline": ["test_config.py", "test_blueprint.py", "test_pipeline.py", "test_cli.py"],
}


def run_all_tests():
    """Run all tests in the test suite."""
    args = ["-v", "--tb=short", "tests/"]
    if importlib.util.find_spec("pytest_cov") is not None:
        args.extend(["--cov=perimeter_agent", "--cov-report=term-missing"])
    return pytest.main(args)


def run_phase(phase):
    """Run the tests covering one pipeline phase."""
    if phase not in PHASES:
        print(f"Unknown phase '{phase}'; choose from: {', '.join(sorted(PHASES))}")
        return 2
    return pytest.main(["-v", "--tb=short"] + [f"tests/{name}" for name in PHASES[phase]])


if __name__ == "__main__":
    if len(sys.argv) > 1:
        sys.exit(run_phase(sys.argv[1]))
    sys.exit(run_all_tests())
