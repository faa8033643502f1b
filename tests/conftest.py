"""Shared test fixtures for the code-graph test suite."""
from __future__ import annotations

from pathlib import Path
from typing import Generator

import pytest

from src.shared.db.connection import ConnectionPool
from src.shared.db.schema import init_code_graph_db
from src.shared.models.common import HealthStatus
from src.shared.models.facts import (
    Component,
    ComponentKind,
    ExternalCallFact,
    FactSet,
    InjectedDependency,
    InjectionType,
    Method,
    RawInvocation,
    TableAccess,
    TopicCallFact,
    TopicDirection,
)


@pytest.fixture
def tmp_db_path(tmp_path: Path) -> Path:
    """Return a temporary database path."""
    return tmp_path / "test.db"


@pytest.fixture
def connection_pool(tmp_db_path: Path) -> Generator[ConnectionPool, None, None]:
    """Create a connection pool with the code-graph schema, closed after the test."""
    pool = ConnectionPool(tmp_db_path)
    init_code_graph_db(pool)
    yield pool
    pool.close()


@pytest.fixture
def sample_health_status() -> HealthStatus:
    return HealthStatus(
        status="healthy",
        service_name="code-graph",
        version="1.0.0",
        database="connected",
        uptime_seconds=12.5,
    )


@pytest.fixture
def shop_facts() -> FactSet:
    """A small order/payment/inventory codebase, not yet bound.

    - OrderController.create -> OrderService.placeOrder (field)
    - OrderService.placeOrder -> validate (self), OrderRepository.save
      (field), PaymentGateway.charge (interface field -> PaymentService)
    - OrderService.placeOrder calls GET http://inventory-service/api/inventory/{sku}
    - topics: order-events (produced + consumed), audit-log (producer
      only), payment-events (consumer only)
    """
    order_repository = Component(
        name="OrderRepository",
        qualified_name="com.shop.order.OrderRepository",
        package="com.shop.order",
        kind=ComponentKind.DATA_ACCESSOR,
        table_access=TableAccess(
            table_name="ORDERS", entity_class="com.shop.order.Order",
            database_type="postgres", operations=["read", "write"],
        ),
        methods=[
            Method(name="save", parameter_types=["Order"]),
            Method(name="findById", parameter_types=["Long"]),
        ],
    )
    payment_service = Component(
        name="PaymentService",
        qualified_name="com.shop.payment.PaymentService",
        package="com.shop.payment",
        kind=ComponentKind.BUSINESS_SERVICE,
        implemented_interfaces=["com.shop.payment.PaymentGateway"],
        methods=[
            Method(
                name="charge",
                parameter_types=["Order"],
                line_start=20,
                topic_calls=[
                    TopicCallFact(topic="audit-log", direction=TopicDirection.PRODUCE, line=24),
                ],
            ),
        ],
    )
    order_service = Component(
        name="OrderService",
        qualified_name="com.shop.order.OrderService",
        package="com.shop.order",
        kind=ComponentKind.BUSINESS_SERVICE,
        dependencies={
            "orderRepository": InjectedDependency(
                field_name="orderRepository",
                declared_type="com.shop.order.OrderRepository",
                injection_type=InjectionType.CONSTRUCTOR,
            ),
            "paymentGateway": InjectedDependency(
                field_name="paymentGateway",
                declared_type="com.shop.payment.PaymentGateway",
                injection_type=InjectionType.CONSTRUCTOR,
            ),
        },
        methods=[
            Method(
                name="placeOrder",
                parameter_types=["OrderRequest"],
                line_start=30,
                invocations=[
                    RawInvocation(method_name="validate", self_call=True, line=31),
                    RawInvocation(
                        method_name="save",
                        declared_type_simple="OrderRepository",
                        declared_type_qualified="com.shop.order.OrderRepository",
                        target_field_name="orderRepository",
                        line=32,
                    ),
                    RawInvocation(
                        method_name="charge",
                        declared_type_simple="PaymentGateway",
                        declared_type_qualified="com.shop.payment.PaymentGateway",
                        target_field_name="paymentGateway",
                        line=33,
                    ),
                    RawInvocation(
                        method_name="toString",
                        declared_type_simple="StringBuilder",
                        declared_type_qualified="java.lang.StringBuilder",
                        line=34,
                    ),
                ],
                external_calls=[
                    ExternalCallFact(
                        client_kind="rest_template", http_method="GET",
                        url="http://inventory-service/api/inventory/{sku}", line=35,
                    ),
                ],
                topic_calls=[
                    TopicCallFact(topic="order-events", direction=TopicDirection.PRODUCE, line=36),
                ],
            ),
            Method(name="validate", parameter_types=["OrderRequest"], line_start=40),
        ],
    )
    order_controller = Component(
        name="OrderController",
        qualified_name="com.shop.order.OrderController",
        package="com.shop.order",
        kind=ComponentKind.ENTRY_POINT_HANDLER,
        base_path="/api/orders",
        dependencies={
            "orderService": InjectedDependency(
                field_name="orderService", declared_type="com.shop.order.OrderService",
            ),
        },
        methods=[
            Method(
                name="create",
                parameter_types=["OrderRequest"],
                http_method="POST",
                path="",
                invocations=[
                    RawInvocation(
                        method_name="placeOrder",
                        declared_type_simple="OrderService",
                        declared_type_qualified="com.shop.order.OrderService",
                        target_field_name="orderService",
                    ),
                ],
            ),
            Method(name="getOrder", parameter_types=["Long"], http_method="GET", path="/{id}"),
            Method(name="helper"),
        ],
    )
    inventory_controller = Component(
        name="InventoryController",
        qualified_name="com.shop.inventory.InventoryController",
        package="com.shop.inventory",
        kind=ComponentKind.ENTRY_POINT_HANDLER,
        base_path="/api/inventory",
        methods=[
            Method(name="getStock", parameter_types=["String"], http_method="GET", path="/{sku}"),
        ],
    )
    listener = Component(
        name="OrderEventsListener",
        qualified_name="com.shop.billing.OrderEventsListener",
        package="com.shop.billing",
        kind=ComponentKind.MESSAGE_LISTENER,
        methods=[
            Method(
                name="onOrderEvent",
                parameter_types=["OrderEvent"],
                topic_calls=[
                    TopicCallFact(
                        topic="order-events", direction=TopicDirection.CONSUME,
                        consumer_group="billing", line=12,
                    ),
                ],
            ),
            Method(
                name="onPaymentEvent",
                parameter_types=["PaymentEvent"],
                topic_calls=[
                    TopicCallFact(topic="payment-events", direction=TopicDirection.CONSUME, line=20),
                ],
            ),
        ],
    )
    app_config = Component(
        name="AppConfig",
        qualified_name="com.shop.AppConfig",
        package="com.shop",
        kind=ComponentKind.CONFIGURATION,
        methods=[Method(name="restTemplate")],
    )
    return FactSet(
        project_id="shop",
        components=[
            order_controller, order_service, app_config, listener,
            payment_service, inventory_controller, order_repository,
        ],
    )


@pytest.fixture
def mock_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set environment variables for config tests."""
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("DATABASE_PATH", "/tmp/test.db")
    monkeypatch.setenv("CANDIDATE_TTL_HOURS", "6")
    monkeypatch.setenv("SWEEP_INTERVAL_SECONDS", "60")
    monkeypatch.setenv("CANDIDATE_WORKERS", "4")
    monkeypatch.setenv("MIN_MATCH_SCORE", "5")
