"""Tests for the structural parsers."""

from __future__ import annotations

from pathlib import Path

import pytest

from impactgraph.exceptions import ParserError
from impactgraph.parser.core import collect_files, parse_directory, parse_file, parse_files
from impactgraph.parser.models import Marker, MethodDescriptor, detect_language
from impactgraph.parser.python_parser import module_name_for, parse_python_file


def _by_name(descriptors):
    return {d.name: d for d in descriptors}


class TestMarkers:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Transactional", Marker.TRANSACTIONAL),
            ("@org.springframework.transaction.annotation.Transactional", Marker.TRANSACTIONAL),
            ("transaction.atomic", Marker.TRANSACTIONAL),
            ("CacheEvict", Marker.CACHING),
            ("functools.lru_cache", Marker.CACHING),
            ("Scheduled(cron = \"0 0 * * *\")", Marker.SCHEDULED),
            ("celery.shared_task", Marker.ASYNC_DISPATCH),
            ("PreAuthorize", Marker.SECURITY_ENFORCED),
            ("router.post", Marker.HTTP_WRITE_ENDPOINT),
            ("app.delete", Marker.HTTP_WRITE_ENDPOINT),
            ("celery.task", Marker.ASYNC_DISPATCH),
            ("functools.cache", Marker.CACHING),
            ("mock.patch", Marker.NONE),
            ("unittest.mock.patch", Marker.NONE),
            ("patch", Marker.NONE),
            ("client.delete", Marker.NONE),
            ("self.task", Marker.NONE),
            ("GetMapping", Marker.NONE),
            ("property", Marker.NONE),
            ("", Marker.NONE),
        ],
    )
    def test_from_annotation(self, raw: str, expected: Marker):
        assert Marker.from_annotation(raw) is expected

    def test_no_substring_matching(self):
        assert Marker.from_annotation("NotTransactionalAtAll") is Marker.NONE

    def test_descriptor_drops_unmapped(self):
        method = MethodDescriptor(
            name="run",
            class_name="pkg.Job",
            markers=["Scheduled", "Override", "Scheduled", Marker.CACHING],
        )
        assert method.markers == [Marker.SCHEDULED, Marker.CACHING]
        assert method.entity_id == "pkg.Job.run"

    def test_mocked_test_method_is_not_critical(self):
        source = (
            "from unittest import mock\n"
            "\n"
            "\n"
            "class TestCheckout:\n"
            "    @mock.patch(\"shop.client.send\")\n"
            "    def test_send(self, send):\n"
            "        send.delete()\n"
        )
        (case,) = parse_python_file("tests/test_checkout.py", source)

        assert case.methods[0].markers == []

    def test_critical(self):
        assert Marker.SECURITY_ENFORCED.is_critical
        assert not Marker.NONE.is_critical


class TestPythonParser:
    def test_module_name(self):
        assert module_name_for("shop/service.py") == "shop.service"
        assert module_name_for("src/shop/__init__.py") == "shop"
        assert module_name_for("main.py") == "main"

    def test_class_and_methods(self, tmp_project: Path):
        source = (tmp_project / "shop" / "service.py").read_text()
        descriptors = _by_name(parse_python_file("shop/service.py", source))

        service = descriptors["shop.service.OrderService"]
        assert service.kind == "class"
        assert service.file_path == "shop/service.py"
        assert service.simple_name == "OrderService"
        assert [m.name for m in service.methods] == ["__init__", "place", "validate"]
        assert service.injected_dependency_types == ["shop.repository.OrderRepository"]

    def test_calls_resolved_through_self_and_dependencies(self, tmp_project: Path):
        source = (tmp_project / "shop" / "service.py").read_text()
        service = _by_name(parse_python_file("shop/service.py", source))["shop.service.OrderService"]
        place = next(m for m in service.methods if m.name == "place")

        assert place.called_names == [
            "shop.service.OrderService.validate",
            "shop.repository.OrderRepository.save",
        ]
        assert place.markers == [Marker.TRANSACTIONAL]

    def test_line_spans_include_decorators(self, tmp_project: Path):
        source = (tmp_project / "shop" / "service.py").read_text()
        service = _by_name(parse_python_file("shop/service.py", source))["shop.service.OrderService"]
        place = next(m for m in service.methods if m.name == "place")

        assert (place.start_line, place.end_line) == (13, 16)

    def test_module_functions_grouped(self, tmp_project: Path):
        source = (tmp_project / "shop" / "api.py").read_text()
        descriptors = _by_name(parse_python_file("shop/api.py", source))

        module = descriptors["shop.api"]
        assert module.kind == "module"
        assert [m.name for m in module.methods] == ["make_controller"]
        assert module.methods[0].called_names == ["shop.api.OrderController"]

    def test_supertypes_and_interfaces(self):
        source = '''
from abc import ABC, abstractmethod
from typing import Optional

from billing.gateway import Gateway


class Notifier(ABC):
    @abstractmethod
    def send(self, msg): ...


class EmailNotifier(Notifier):
    gateway: Gateway
    retries: int = 3

    def __init__(self, fallback: Optional["SmsNotifier"] = None, name: str = ""):
        self.fallback = fallback

    def send(self, msg):
        self.gateway.deliver(msg)
        self.fallback.send(msg)
'''
        descriptors = _by_name(parse_python_file("notify.py", source))

        assert descriptors["notify.Notifier"].kind == "interface"
        assert descriptors["notify.Notifier"].supertypes == []

        email = descriptors["notify.EmailNotifier"]
        assert email.supertypes == ["notify.Notifier"]
        assert email.injected_dependency_types == ["billing.gateway.Gateway", "SmsNotifier"]
        send = next(m for m in email.methods if m.name == "send")
        assert send.called_names == ["billing.gateway.Gateway.deliver", "SmsNotifier.send"]

    def test_nested_class(self):
        source = "class Outer:\n    class Inner:\n        def go(self):\n            pass\n"
        descriptors = _by_name(parse_python_file("pkg/mod.py", source))
        assert "pkg.mod.Outer.Inner" in descriptors
        assert descriptors["pkg.mod.Outer.Inner"].methods[0].entity_id == "pkg.mod.Outer.Inner.go"

    def test_syntax_error_raises(self):
        with pytest.raises(ParserError):
            parse_python_file("broken.py", "def broken(:\n")


class TestParserCore:
    def test_detect_language(self):
        assert detect_language("a/b.py") == "python"
        assert detect_language("A.java") is None

    def test_parse_file_absorbs_errors(self):
        assert parse_file("broken.py", "class (\n") == []
        assert parse_file("README.md", "# hi") == []

    def test_parse_directory_excludes(self, tmp_project: Path):
        descriptors = parse_directory(tmp_project)
        names = {d.name for d in descriptors}

        assert "shop.service.OrderService" in names
        assert "shop.api.OrderController" in names
        assert not any("Ignored" in n for n in names)
        assert all(not d.file_path.startswith("/") for d in descriptors)

    def test_collect_files_respects_gitignore(self, tmp_project: Path):
        (tmp_project / ".gitignore").write_text("# comment\nshop/api.py\n")
        files = {p.name for p in collect_files(tmp_project)}
        assert "service.py" in files
        assert "api.py" not in files

    def test_parse_files_skips_missing(self, tmp_project: Path):
        seen = []
        descriptors = parse_files(
            tmp_project,
            ["shop/repository.py", "shop/deleted.py", "docs/readme.md"],
            progress_callback=lambda path, current, total: seen.append((path, current, total)),
        )

        assert [d.name for d in descriptors] == ["shop.repository.OrderRepository"]
        assert seen[0] == ("shop/repository.py", 1, 3)
