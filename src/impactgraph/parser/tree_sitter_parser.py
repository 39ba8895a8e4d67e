"""Tree-sitter based parser for Java sources (Spring-style services)."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

from impactgraph.exceptions import ParserError
from impactgraph.parser.models import EntityDescriptor, MethodDescriptor

logger = logging.getLogger("impactgraph.parser")

# Tree-sitter language module mapping
# These grammars are required dependencies (installed with pip install impactgraph)
_TS_LANGUAGE_MODULES = {
    "java": "tree_sitter_java",
}

_TYPE_DECLARATIONS = {
    "class_declaration": "class",
    "interface_declaration": "interface",
    "enum_declaration": "class",
    "record_declaration": "class",
}

# Field annotations that mark a dependency injection point
_INJECTION_ANNOTATIONS = {"Autowired", "Inject", "Value", "Resource"}

_PRIMITIVE_TYPES = {
    "integral_type", "floating_point_type", "boolean_type", "void_type",
}


def is_available(language: str | None = None) -> bool:
    """Check if tree-sitter and the required language grammar are available."""
    try:
        import tree_sitter  # noqa: F401
    except ImportError:
        return False

    if language is None:
        return True

    module_name = _TS_LANGUAGE_MODULES.get(language)
    if not module_name:
        return False

    try:
        __import__(module_name)
        return True
    except ImportError:
        return False


def _get_language(lang: str):
    """Get a tree-sitter Language object for the given language."""
    from tree_sitter import Language

    module_name = _TS_LANGUAGE_MODULES.get(lang)
    if not module_name:
        raise ValueError(f"No tree-sitter grammar for language: {lang}")

    module = __import__(module_name)
    return Language(module.language())


def parse_java_file(file_path: str, source: str | None = None) -> list[EntityDescriptor]:
    """Parse a Java file into entity descriptors.

    Every top-level and nested type becomes a descriptor named
    ``<package>.<Outer>.<Inner>``. Constructors are not methods; their
    parameter types count as injected dependencies, as do fields annotated
    with ``@Autowired``, ``@Inject``, ``@Value`` or ``@Resource``.
    """
    from tree_sitter import Parser

    if source is None:
        try:
            source = Path(file_path).read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise ParserError(f"Cannot read {file_path}: {e}") from e

    parser = Parser(_get_language("java"))
    tree = parser.parse(source.encode("utf-8"))
    root = tree.root_node
    if root.has_error:
        logger.debug(f"{file_path} has syntax errors; extracting what parsed")

    scope = _JavaScope(file_path)
    scope.collect(root)

    results: list[EntityDescriptor] = []
    for child in root.children:
        if child.type in _TYPE_DECLARATIONS:
            _extract_type(child, scope, scope.package, results)
    return results


def _text(node) -> str:
    return node.text.decode("utf-8") if node is not None else ""


def _descendants(node, types: set[str]) -> Iterator:
    """Pre-order walk yielding nodes of the given types."""
    for child in node.children:
        if child.type in types:
            yield child
        yield from _descendants(child, types)


class _JavaScope:
    """Names visible in a compilation unit: package, imports, declared types."""

    def __init__(self, file_path: str) -> None:
        self.file_path = file_path
        self.package = ""
        self.imports: dict[str, str] = {}
        self.local_types: dict[str, str] = {}

    def collect(self, root) -> None:
        for child in root.children:
            if child.type == "package_declaration":
                for part in child.named_children:
                    if part.type in ("scoped_identifier", "identifier"):
                        self.package = _text(part)
            elif child.type == "import_declaration":
                if any(c.type == "asterisk" for c in child.children):
                    continue
                for part in child.named_children:
                    if part.type in ("scoped_identifier", "identifier"):
                        full = _text(part)
                        self.imports[full.rsplit(".", 1)[-1]] = full

        for decl in _descendants(root, set(_TYPE_DECLARATIONS)):
            name = _text(decl.child_by_field_name("name"))
            if name and name not in self.local_types:
                self.local_types[name] = self._type_id(decl)

    def _type_id(self, decl) -> str:
        names = []
        node = decl
        while node is not None:
            if node.type in _TYPE_DECLARATIONS:
                names.append(_text(node.child_by_field_name("name")))
            node = node.parent
        qualname = ".".join(reversed(names))
        return f"{self.package}.{qualname}" if self.package else qualname

    def qualify(self, type_name: str) -> str:
        """Resolve a simple or dotted type name to a qualified name."""
        if not type_name:
            return ""
        head, _, rest = type_name.partition(".")
        if head in self.local_types:
            resolved = self.local_types[head]
        elif head in self.imports:
            resolved = self.imports[head]
        elif rest:
            return type_name
        else:
            resolved = f"{self.package}.{head}" if self.package else head
        return f"{resolved}.{rest}" if rest else resolved


def _type_name(node) -> str:
    """Reduce a type node to its raw class name, or "" for primitives."""
    if node is None or node.type in _PRIMITIVE_TYPES:
        return ""
    if node.type == "generic_type":
        return _type_name(node.named_children[0]) if node.named_children else ""
    if node.type == "array_type":
        return _type_name(node.child_by_field_name("element"))
    if node.type in ("type_identifier", "scoped_type_identifier"):
        return _text(node)
    return ""


def _annotations(node) -> list[str]:
    """Annotation names on a declaration's modifiers."""
    names = []
    for child in node.children:
        if child.type != "modifiers":
            continue
        for ann in child.named_children:
            if ann.type in ("marker_annotation", "annotation"):
                name = _text(ann.child_by_field_name("name"))
                if name:
                    names.append(name)
    return names


def _supertypes(decl, scope: _JavaScope) -> list[str]:
    types = []
    for child in decl.children:
        if child.type == "superclass":
            candidates = child.named_children
        elif child.type in ("super_interfaces", "extends_interfaces"):
            candidates = [
                t for lst in child.named_children if lst.type == "type_list"
                for t in lst.named_children
            ]
        else:
            continue
        for type_node in candidates:
            name = _type_name(type_node)
            if name and name != "Object":
                types.append(scope.qualify(name))
    return types


def _extract_type(decl, scope: _JavaScope, parent_id: str, results: list[EntityDescriptor]) -> None:
    name = _text(decl.child_by_field_name("name"))
    if not name:
        return
    type_id = f"{parent_id}.{name}" if parent_id else name
    body = decl.child_by_field_name("body")

    field_types: dict[str, str] = {}
    injected: list[str] = []
    members = list(body.named_children) if body is not None else []
    for extra in [m for m in members if m.type == "enum_body_declarations"]:
        members.extend(extra.named_children)

    for member in members:
        if member.type == "field_declaration":
            type_name = _type_name(member.child_by_field_name("type"))
            if not type_name:
                continue
            qualified = scope.qualify(type_name)
            for declarator in member.named_children:
                if declarator.type == "variable_declarator":
                    field_types[_text(declarator.child_by_field_name("name"))] = qualified
            marked = {a.rsplit(".", 1)[-1] for a in _annotations(member)}
            if marked & _INJECTION_ANNOTATIONS and qualified not in injected:
                injected.append(qualified)
        elif member.type == "constructor_declaration":
            for type_name in _parameter_types(member).values():
                qualified = scope.qualify(type_name)
                if qualified not in injected:
                    injected.append(qualified)

    methods = []
    for member in members:
        if member.type == "method_declaration":
            methods.append(_extract_method(member, type_id, scope, field_types))
        elif member.type in _TYPE_DECLARATIONS:
            _extract_type(member, scope, type_id, results)

    results.append(
        EntityDescriptor(
            name=type_id,
            kind=_TYPE_DECLARATIONS[decl.type],
            file_path=scope.file_path,
            markers=_annotations(decl),
            supertypes=_supertypes(decl, scope),
            injected_dependency_types=injected,
            methods=methods,
        )
    )


def _parameter_types(decl) -> dict[str, str]:
    params = decl.child_by_field_name("parameters")
    types: dict[str, str] = {}
    if params is None:
        return types
    for param in params.named_children:
        if param.type != "formal_parameter":
            continue
        type_name = _type_name(param.child_by_field_name("type"))
        if type_name:
            types[_text(param.child_by_field_name("name"))] = type_name
    return types


def _extract_method(
    node, owner_id: str, scope: _JavaScope, field_types: dict[str, str]
) -> MethodDescriptor:
    local_types = {k: scope.qualify(v) for k, v in _parameter_types(node).items()}
    for decl in _descendants(node, {"local_variable_declaration"}):
        type_name = _type_name(decl.child_by_field_name("type"))
        if not type_name:
            continue
        for declarator in decl.named_children:
            if declarator.type == "variable_declarator":
                local_types[_text(declarator.child_by_field_name("name"))] = scope.qualify(
                    type_name
                )

    calls = [
        _resolve_invocation(inv, owner_id, scope, field_types, local_types)
        for inv in _descendants(node, {"method_invocation"})
    ]

    return MethodDescriptor(
        name=_text(node.child_by_field_name("name")),
        class_name=owner_id,
        called_names=[c for c in calls if c],
        markers=_annotations(node),
        start_line=node.start_point[0] + 1,
        end_line=node.end_point[0] + 1,
    )


def _resolve_invocation(
    inv,
    owner_id: str,
    scope: _JavaScope,
    field_types: dict[str, str],
    local_types: dict[str, str],
) -> str:
    """Best-effort ``<declaring type>.<method>`` for a call; the bare name if unknown."""
    name = _text(inv.child_by_field_name("name"))
    target = inv.child_by_field_name("object")
    if target is None or target.type == "this":
        return f"{owner_id}.{name}"

    if target.type == "field_access":
        obj = target.child_by_field_name("object")
        field = _text(target.child_by_field_name("field"))
        if obj is not None and obj.type == "this" and field in field_types:
            return f"{field_types[field]}.{name}"
        return name

    if target.type == "identifier":
        ident = _text(target)
        if ident in local_types:
            return f"{local_types[ident]}.{name}"
        if ident in field_types:
            return f"{field_types[ident]}.{name}"
        if ident[:1].isupper():
            return f"{scope.qualify(ident)}.{name}"
        return name

    if target.type in ("scoped_identifier", "type_identifier"):
        return f"{scope.qualify(_text(target))}.{name}"

    return name
