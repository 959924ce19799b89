"""
Unit tests for the activity log.
"""

import pytest
from decimal import Decimal

from ryme.exceptions import ValidationError
from ryme.models import ActivityAction
from ryme.services.activity_log_service import get_activity_log, log_activity


class TestActivityLog:
    """Append and query."""

    def test_entry_lands_with_caller_commit(self, session):
        log_activity(session, ActivityAction.CREATE, 'product', 'Created product Soap',
                     data={'price': Decimal('1.50')}, entity_id=3)
        session.commit()

        entry = get_activity_log(session)[0]
        assert entry.entity_id == '3'
        assert entry.to_dict()['data'] == {'price': '1.50'}

    def test_rollback_discards_entry(self, session):
        log_activity(session, ActivityAction.DELETE, 'order', 'Order #1')
        session.rollback()

        assert get_activity_log(session) == []

    def test_newest_first_with_filters(self, session):
        log_activity(session, ActivityAction.CREATE, 'order', 'first')
        session.commit()
        log_activity(session, ActivityAction.UPDATE, 'order', 'second')
        session.commit()
        log_activity(session, ActivityAction.CREATE, 'product', 'third')
        session.commit()

        assert [e.description for e in get_activity_log(session)] == ['third', 'second', 'first']
        assert [e.description for e in get_activity_log(session, entity_type_filter='order')] == ['second', 'first']
        assert [e.description for e in get_activity_log(session, action_filter='create')] == ['third', 'first']
        assert [e.description for e in get_activity_log(session, limit=1, offset=1)] == ['second']

    def test_unknown_action_filter(self, session):
        with pytest.raises(ValidationError):
            get_activity_log(session, action_filter='explode')
