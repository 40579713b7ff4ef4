from __future__ import annotations

import ast

from ._gate import require_arch_checks_enabled
from ._utils import capucho_root, iter_python_files, read_tree


def _has_direct_subprocess_call(tree: ast.AST) -> list[int]:
    lines: list[int] = []
    for node in ast.walk(tree):
        if not isinstance(node, ast.Call):
            continue
        func = node.func
        if not isinstance(func, ast.Attribute):
            continue
        if func.attr not in {"run", "check_output", "check_call", "call", "Popen"}:
            continue
        if not isinstance(func.value, ast.Name):
            continue
        if func.value.id != "subprocess":
            continue
        lines.append(node.lineno)
    return lines


def test_direct_subprocess_usage_is_constrained_to_process_module() -> None:
    require_arch_checks_enabled()

    root = capucho_root()
    allowlist = {"platform/process.py"}

    offenders: list[str] = []
    for file_path in iter_python_files(root):
        rel = file_path.relative_to(root)
        if rel.parts and rel.parts[0] == "test":
            continue
        if rel.as_posix() in allowlist:
            continue

        for line in _has_direct_subprocess_call(read_tree(file_path)):
            offenders.append(f"{rel}:{line}: direct subprocess call outside allowlist")

    assert not offenders, "Subprocess policy violations:\n" + "\n".join(offenders)
