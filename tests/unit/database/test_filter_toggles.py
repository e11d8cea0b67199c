"""Tests for per-session row filter toggles."""

import pytest
from sqlalchemy.orm import Session

from audittrail.core.constants import SESSION_FILTERS_INFO_KEY
from audittrail.core.database.filters import (
    RowFilter,
    disable_filter,
    enable_filter,
    filters_disabled,
    is_filter_enabled,
)


pytestmark = pytest.mark.unit


@pytest.fixture
def unbound_session():
    """Session without a database."""
    with Session() as session:
        yield session


class TestFilterToggles:
    """Tests for disable_filter, enable_filter and filters_disabled."""

    def test_enabled_by_default(self, unbound_session):
        """Test that both filters start enabled."""
        assert is_filter_enabled(unbound_session, RowFilter.SOFT_DELETE)
        assert is_filter_enabled(unbound_session, RowFilter.TENANT)

    def test_toggle_independently(self, unbound_session):
        """Test that disabling one filter leaves the other alone."""
        disable_filter(unbound_session, RowFilter.TENANT)

        assert not is_filter_enabled(unbound_session, RowFilter.TENANT)
        assert is_filter_enabled(unbound_session, RowFilter.SOFT_DELETE)

        enable_filter(unbound_session, RowFilter.TENANT)

        assert is_filter_enabled(unbound_session, RowFilter.TENANT)

    def test_addressed_by_name(self, unbound_session):
        """Test that filters can be named by their string value."""
        disable_filter(unbound_session, "soft_delete")

        assert unbound_session.info[SESSION_FILTERS_INFO_KEY] == {RowFilter.SOFT_DELETE}

    def test_unknown_filter_name(self, unbound_session):
        """Test that a typo is rejected instead of silently ignored."""
        with pytest.raises(ValueError):
            disable_filter(unbound_session, "soft-delete")

    def test_context_manager_restores_state(self, unbound_session):
        """Test that filters_disabled restores the previous state."""
        disable_filter(unbound_session, RowFilter.TENANT)

        with filters_disabled(unbound_session, RowFilter.SOFT_DELETE, RowFilter.TENANT):
            assert not is_filter_enabled(unbound_session, RowFilter.SOFT_DELETE)
            assert not is_filter_enabled(unbound_session, RowFilter.TENANT)

        assert is_filter_enabled(unbound_session, RowFilter.SOFT_DELETE)
        assert not is_filter_enabled(unbound_session, RowFilter.TENANT)

    def test_context_manager_restores_on_error(self, unbound_session):
        """Test that the state is restored when the block raises."""
        with (
            pytest.raises(RuntimeError),
            filters_disabled(unbound_session, RowFilter.SOFT_DELETE),
        ):
            raise RuntimeError("boom")

        assert is_filter_enabled(unbound_session, RowFilter.SOFT_DELETE)
