"""Python-specific parser using the built-in ast module. Always available, no extra deps."""

from __future__ import annotations

import ast
from pathlib import Path, PurePosixPath

from impactgraph.exceptions import ParserError
from impactgraph.parser.models import (
    UNKNOWN_LINE,
    EntityDescriptor,
    MethodDescriptor,
)

_IGNORED_BASES = {"object", "Generic", "ABC", "Protocol", "Enum", "BaseModel"}
_INTERFACE_BASES = {"ABC", "Protocol"}
_BUILTIN_TYPES = {
    "str", "int", "float", "bool", "bytes", "complex", "list", "dict", "set",
    "frozenset", "tuple", "object", "None", "Any", "Callable", "Iterable",
    "Iterator", "Sequence", "Mapping", "Path",
}


def module_name_for(file_path: str) -> str:
    """Derive a dotted module path from a repository-relative file path."""
    parts = list(PurePosixPath(file_path.replace("\\", "/")).with_suffix("").parts)
    if parts and parts[0] == "src":
        parts = parts[1:]
    if parts and parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join(parts)


def parse_python_file(file_path: str, source: str | None = None) -> list[EntityDescriptor]:
    """Parse a Python file into entity descriptors.

    Classes become class descriptors; module-level functions are grouped under
    a descriptor named after the module so they take part in the graph too.
    """
    if source is None:
        try:
            source = Path(file_path).read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise ParserError(f"Cannot read {file_path}: {e}") from e

    try:
        tree = ast.parse(source, filename=file_path)
    except SyntaxError as e:
        raise ParserError(f"SyntaxError in {file_path}: {e}") from e

    module = module_name_for(file_path)
    scope = _ModuleScope(module, file_path)
    scope.collect_names(tree)

    results: list[EntityDescriptor] = []
    functions: list[MethodDescriptor] = []
    for node in tree.body:
        if isinstance(node, ast.ClassDef):
            _extract_class(node, scope, "", results)
        elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            functions.append(_extract_method(node, module, scope, {}))

    if functions and module:
        results.append(
            EntityDescriptor(
                name=module,
                kind="module",
                file_path=file_path,
                methods=functions,
            )
        )
    return results


class _ModuleScope:
    """Names visible at module level: imports, local classes and functions."""

    def __init__(self, module: str, file_path: str) -> None:
        self.module = module
        self.file_path = file_path
        self.imports: dict[str, str] = {}
        self.local_classes: set[str] = set()
        self.local_functions: set[str] = set()

    def collect_names(self, tree: ast.Module) -> None:
        for node in tree.body:
            if isinstance(node, ast.Import):
                for alias in node.names:
                    self.imports[alias.asname or alias.name.split(".")[0]] = (
                        alias.name if alias.asname else alias.name.split(".")[0]
                    )
            elif isinstance(node, ast.ImportFrom):
                base = node.module or ""
                for alias in node.names:
                    full = f"{base}.{alias.name}" if base else alias.name
                    self.imports[alias.asname or alias.name] = full
            elif isinstance(node, ast.ClassDef):
                self.local_classes.add(node.name)
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                self.local_functions.add(node.name)

    def qualify(self, dotted: str) -> str:
        """Resolve a dotted name against imports and local definitions."""
        if not dotted:
            return ""
        head, _, rest = dotted.partition(".")
        if head in self.imports:
            resolved = self.imports[head]
        elif head in self.local_classes or head in self.local_functions:
            resolved = f"{self.module}.{head}" if self.module else head
        else:
            return dotted
        return f"{resolved}.{rest}" if rest else resolved


def _extract_class(
    node: ast.ClassDef,
    scope: _ModuleScope,
    parent_qualname: str,
    results: list[EntityDescriptor],
) -> None:
    qualname = f"{parent_qualname}.{node.name}" if parent_qualname else node.name
    class_id = f"{scope.module}.{qualname}" if scope.module else qualname

    base_names = [_node_to_name(b) for b in node.bases]
    kind = "interface" if any(b.rsplit(".", 1)[-1] in _INTERFACE_BASES for b in base_names) else "class"
    supertypes = [
        scope.qualify(b) for b in base_names
        if b and b.rsplit(".", 1)[-1] not in _IGNORED_BASES
    ]

    injected, attr_types = _constructor_dependencies(node, scope)

    methods = []
    for child in node.body:
        if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef)):
            methods.append(_extract_method(child, class_id, scope, attr_types))
        elif isinstance(child, ast.ClassDef):
            _extract_class(child, scope, qualname, results)

    results.append(
        EntityDescriptor(
            name=class_id,
            kind=kind,
            file_path=scope.file_path,
            markers=_get_decorators(node),
            supertypes=supertypes,
            injected_dependency_types=injected,
            methods=methods,
        )
    )


def _constructor_dependencies(
    node: ast.ClassDef, scope: _ModuleScope
) -> tuple[list[str], dict[str, str]]:
    """Collect constructor-injected types and the ``self.<attr>`` they land in."""
    injected: list[str] = []
    attr_types: dict[str, str] = {}

    for child in node.body:
        # dataclass / pydantic style fields
        if isinstance(child, ast.AnnAssign) and isinstance(child.target, ast.Name):
            type_name = _annotation_type(child.annotation)
            if type_name:
                qualified = scope.qualify(type_name)
                attr_types[child.target.id] = qualified
                if qualified not in injected:
                    injected.append(qualified)

        if not (isinstance(child, ast.FunctionDef) and child.name == "__init__"):
            continue

        param_types: dict[str, str] = {}
        for arg in child.args.args[1:] + child.args.kwonlyargs:
            type_name = _annotation_type(arg.annotation) if arg.annotation else ""
            if type_name:
                qualified = scope.qualify(type_name)
                param_types[arg.arg] = qualified
                if qualified not in injected:
                    injected.append(qualified)

        for stmt in ast.walk(child):
            if not isinstance(stmt, (ast.Assign, ast.AnnAssign)):
                continue
            targets = stmt.targets if isinstance(stmt, ast.Assign) else [stmt.target]
            for target in targets:
                if (
                    isinstance(target, ast.Attribute)
                    and isinstance(target.value, ast.Name)
                    and target.value.id == "self"
                    and isinstance(stmt.value, ast.Name)
                    and stmt.value.id in param_types
                ):
                    attr_types[target.attr] = param_types[stmt.value.id]

    return injected, attr_types


def _annotation_type(node: ast.AST | None) -> str:
    """Reduce an annotation to a single class-like name, or "" for builtins."""
    if node is None:
        return ""
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        try:
            node = ast.parse(node.value, mode="eval").body
        except SyntaxError:
            return ""
    # Optional[X] / X | None
    if isinstance(node, ast.Subscript) and _node_to_name(node.value).endswith("Optional"):
        return _annotation_type(node.slice)
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        left = _annotation_type(node.left)
        return left or _annotation_type(node.right)
    name = _node_to_name(node)
    if not name or name.rsplit(".", 1)[-1] in _BUILTIN_TYPES:
        return ""
    if isinstance(node, ast.Subscript):
        return ""
    return name


def _extract_method(
    node: ast.FunctionDef | ast.AsyncFunctionDef,
    owner_id: str,
    scope: _ModuleScope,
    attr_types: dict[str, str],
) -> MethodDescriptor:
    start = node.lineno
    if node.decorator_list:
        start = min(start, *(d.lineno for d in node.decorator_list))
    end = getattr(node, "end_lineno", None) or UNKNOWN_LINE

    return MethodDescriptor(
        name=node.name,
        class_name=owner_id,
        called_names=_extract_calls(node, owner_id, scope, attr_types),
        markers=_get_decorators(node),
        start_line=start or UNKNOWN_LINE,
        end_line=end,
    )


def _get_decorators(node: ast.FunctionDef | ast.AsyncFunctionDef | ast.ClassDef) -> list[str]:
    """Extract dotted decorator names (call decorators reduce to their callee)."""
    decorators = []
    for dec in node.decorator_list:
        target = dec.func if isinstance(dec, ast.Call) else dec
        name = _node_to_name(target)
        if name:
            decorators.append(name)
    return decorators


def _extract_calls(
    node: ast.AST, owner_id: str, scope: _ModuleScope, attr_types: dict[str, str]
) -> list[str]:
    """Walk a function body and return call targets in source order."""
    calls: list[tuple[int, int, str]] = []
    for child in ast.walk(node):
        if not isinstance(child, ast.Call):
            continue
        callee = _resolve_callee(child.func, owner_id, scope, attr_types)
        if callee:
            calls.append((child.lineno, child.col_offset, callee))
    calls.sort()
    return [name for _, _, name in calls]


def _resolve_callee(
    func: ast.AST, owner_id: str, scope: _ModuleScope, attr_types: dict[str, str]
) -> str:
    if isinstance(func, ast.Attribute) and isinstance(func.value, ast.Name):
        if func.value.id in ("self", "cls"):
            return f"{owner_id}.{func.attr}"
    if (
        isinstance(func, ast.Attribute)
        and isinstance(func.value, ast.Attribute)
        and isinstance(func.value.value, ast.Name)
        and func.value.value.id == "self"
        and func.value.attr in attr_types
    ):
        return f"{attr_types[func.value.attr]}.{func.attr}"
    return scope.qualify(_node_to_name(func))


def _node_to_name(node: ast.AST) -> str:
    """Convert an AST node to a dotted name string."""
    if isinstance(node, ast.Name):
        return node.id
    elif isinstance(node, ast.Attribute):
        parent = _node_to_name(node.value)
        if parent:
            return f"{parent}.{node.attr}"
        return node.attr
    elif isinstance(node, ast.Subscript):
        return _node_to_name(node.value)
    return ""
