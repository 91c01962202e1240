"""Unit tests for the pure workflow rules: tax, order roll-up and form access."""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.business.errors import AccessDeniedError, AuthenticationError, NotFoundError
from app.business.statuses import OrderItemStatus, OrderStatus
from app.schemas.auth import AuthUser
from app.services.invoicing import calculate_tax
from app.services.onboarding import generate_access_token, get_form_kind, resolve_form_actor
from app.services.orders import rollup_order_status


def auth_user(role: str, **overrides) -> AuthUser:
    values = {"id": 1, "email": f"{role}@example.com", "name": role.title(), "role": role}
    values.update(overrides)
    return AuthUser(**values)


@pytest.mark.unit
class TestCalculateTax:
    """Test consumption tax calculation."""

    def test_default_rate(self):
        assert calculate_tax(Decimal("1000")) == Decimal("100")

    def test_truncates_fractions(self):
        """Test tax is floored to whole currency units."""
        assert calculate_tax(Decimal("1234")) == Decimal("123")
        assert calculate_tax(Decimal("9.99")) == Decimal("0")

    def test_explicit_rate(self):
        assert calculate_tax(Decimal("1000"), Decimal("0.08")) == Decimal("80")


@pytest.mark.unit
class TestRollupOrderStatus:
    """Test deriving the order status from its lines."""

    def test_all_delivered(self):
        statuses = [OrderItemStatus.DELIVERED.value, OrderItemStatus.DELIVERED.value]
        assert rollup_order_status(OrderStatus.SHIPPED.value, statuses) == OrderStatus.DELIVERED.value

    def test_first_shipment_moves_ordered_to_shipped(self):
        statuses = [OrderItemStatus.SHIPPED.value, OrderItemStatus.PENDING.value]
        assert rollup_order_status(OrderStatus.ORDERED.value, statuses) == OrderStatus.SHIPPED.value

    def test_partial_delivery_from_ordered(self):
        """Test one delivered line among pending ones counts as shipped."""
        statuses = [OrderItemStatus.DELIVERED.value, OrderItemStatus.PENDING.value]
        assert rollup_order_status(OrderStatus.ORDERED.value, statuses) == OrderStatus.SHIPPED.value

    def test_confirmed_order_keeps_status_on_partial_shipment(self):
        statuses = [OrderItemStatus.SHIPPED.value, OrderItemStatus.CONFIRMED.value]
        assert rollup_order_status(OrderStatus.CONFIRMED.value, statuses) == OrderStatus.CONFIRMED.value

    def test_invoiced_order_reaches_delivered(self):
        statuses = [OrderItemStatus.DELIVERED.value]
        assert rollup_order_status(OrderStatus.INVOICED.value, statuses) == OrderStatus.DELIVERED.value

    def test_invoiced_order_keeps_status_on_partial_shipment(self):
        statuses = [OrderItemStatus.SHIPPED.value, OrderItemStatus.PENDING.value]
        assert rollup_order_status(OrderStatus.INVOICED.value, statuses) == OrderStatus.INVOICED.value

    def test_order_without_lines_unchanged(self):
        assert rollup_order_status(OrderStatus.ORDERED.value, []) == OrderStatus.ORDERED.value


@pytest.mark.unit
class TestResolveFormActor:
    """Test who may act on onboarding forms."""

    @pytest.fixture
    def application(self):
        return SimpleNamespace(access_token=generate_access_token())

    def test_admin_acts_as_reviewer(self, application):
        admin = auth_user("admin")
        assert resolve_form_actor(application, admin, None) is admin

    def test_admin_wins_over_token(self, application):
        admin = auth_user("admin")
        assert resolve_form_actor(application, admin, "wrong-token") is admin

    def test_valid_token_is_applicant(self, application):
        assert resolve_form_actor(application, None, application.access_token) is None

    def test_wrong_token_denied(self, application):
        with pytest.raises(AccessDeniedError):
            resolve_form_actor(application, None, "wrong-token")

    def test_no_credentials(self, application):
        with pytest.raises(AuthenticationError):
            resolve_form_actor(application, None, None)

    def test_non_admin_user_denied(self, application):
        member = auth_user("member", member_id=1)
        with pytest.raises(AccessDeniedError):
            resolve_form_actor(application, member, None)

    def test_tokens_are_unique_and_long(self):
        tokens = {generate_access_token() for _ in range(20)}
        assert len(tokens) == 20
        assert all(len(token) == 48 for token in tokens)


@pytest.mark.unit
class TestFormKinds:
    def test_known_slugs(self):
        for slug in ("basic-info", "family-info", "bank-account", "commute-route"):
            assert get_form_kind(slug).slug == slug

    def test_unknown_slug(self):
        with pytest.raises(NotFoundError):
            get_form_kind("tax-info")
