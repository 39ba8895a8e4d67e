"""Shared test fixtures for ImpactGraph."""

from __future__ import annotations

from pathlib import Path

import pytest

from impactgraph.parser.models import EntityDescriptor, MethodDescriptor


REPOSITORY_SOURCE = '''"""Persistence layer."""


class OrderRepository:
    """Stores orders."""

    def save(self, order):
        return order

    def find(self, order_id):
        return {"id": order_id}
'''

SERVICE_SOURCE = '''"""Order service."""

from shop.repository import OrderRepository
from shop.tx import transactional


class OrderService:
    """Business logic for orders."""

    def __init__(self, repo: OrderRepository):
        self.repo = repo

    @transactional
    def place(self, order):
        self.validate(order)
        return self.repo.save(order)

    def validate(self, order):
        return bool(order)
'''

API_SOURCE = '''"""HTTP layer."""

from shop.service import OrderService


class OrderController:
    def __init__(self, service: OrderService):
        self.service = service

    def create(self, payload):
        return self.service.place(payload)

    def health(self):
        return {"status": "ok"}


def make_controller(service):
    return OrderController(service)
'''


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a temporary project directory with a small layered service."""
    shop = tmp_path / "shop"
    shop.mkdir()
    (shop / "__init__.py").write_text('"""Shop package."""\n')
    (shop / "repository.py").write_text(REPOSITORY_SOURCE)
    (shop / "service.py").write_text(SERVICE_SOURCE)
    (shop / "api.py").write_text(API_SOURCE)

    # Excluded by the default indexer patterns
    venv = tmp_path / ".venv"
    venv.mkdir()
    (venv / "ignored.py").write_text("class Ignored:\n    pass\n")

    return tmp_path


@pytest.fixture
def service_descriptors() -> list[EntityDescriptor]:
    """Hand-built descriptors mirroring a layered Spring-style service."""
    return [
        EntityDescriptor(
            name="app.OrderRepository",
            file_path="app/OrderRepository.java",
            methods=[
                MethodDescriptor(
                    name="save", class_name="app.OrderRepository", start_line=5, end_line=8
                ),
            ],
        ),
        EntityDescriptor(
            name="app.OrderService",
            file_path="app/OrderService.java",
            injected_dependency_types=["OrderRepository"],
            methods=[
                MethodDescriptor(
                    name="place",
                    class_name="app.OrderService",
                    called_names=["app.OrderService.validate", "app.OrderRepository.save"],
                    markers=["org.springframework.transaction.annotation.Transactional"],
                    start_line=5,
                    end_line=20,
                ),
                MethodDescriptor(
                    name="validate",
                    class_name="app.OrderService",
                    called_names=["java.util.Objects.requireNonNull"],
                    start_line=30,
                    end_line=40,
                ),
            ],
        ),
        EntityDescriptor(
            name="app.OrderController",
            file_path="app/OrderController.java",
            injected_dependency_types=["app.OrderService"],
            methods=[
                MethodDescriptor(
                    name="create",
                    class_name="app.OrderController",
                    called_names=["app.OrderService.place"],
                    markers=["PostMapping"],
                    start_line=10,
                    end_line=15,
                ),
            ],
        ),
    ]


def chain_descriptors(length: int, markers: list[str] | None = None) -> list[EntityDescriptor]:
    """One class whose methods call each other in a line: m0 -> m1 -> ... -> m{length-1}."""
    methods = []
    for i in range(length):
        calls = [f"chain.Chain.m{i + 1}"] if i + 1 < length else []
        methods.append(
            MethodDescriptor(
                name=f"m{i}",
                class_name="chain.Chain",
                called_names=calls,
                markers=markers if i == 0 else [],
                start_line=i * 10 + 1,
                end_line=i * 10 + 5,
            )
        )
    return [EntityDescriptor(name="chain.Chain", file_path="chain.py", methods=methods)]


@pytest.fixture
def make_chain():
    return chain_descriptors
