"""Unit tests for the DynamoDB event repository."""
from decimal import Decimal
from unittest.mock import patch

import pytest
from botocore.exceptions import ClientError

from conftest import TABLE_NAME, make_event_document
from planner.models import parse_timestamp
from storage.event_repository import EventRepository, from_item, to_item


@pytest.fixture
def repository(events_table):
    """Create EventRepository instance with mock table."""
    return EventRepository(TABLE_NAME)


def test_to_item_converts_floats_and_drops_none():
    item = to_item({'id': '1', 'totalExpense': 12.5, 'imageUrl': None,
                    'rsvps': [{'userId': '1', 'rating': 7.5}]})

    assert item['totalExpense'] == Decimal('12.5')
    assert item['rsvps'][0]['rating'] == Decimal('7.5')
    assert 'imageUrl' not in item


def test_from_item_restores_numbers():
    value = from_item({'a': Decimal('3'), 'b': [Decimal('2.25')], 'c': 'text'})

    assert value == {'a': 3, 'b': [2.25], 'c': 'text'}
    assert isinstance(value['a'], int)


class TestEventRepository:
    """Test cases for EventRepository class."""

    def test_list_events_empty_table(self, repository):
        assert repository.list_events() == []

    def test_put_and_get_round_trip(self, repository):
        document = make_event_document('evt-1', totalExpense=99.5)
        document['rsvps'][2]['rating'] = 8

        repository.put_event(document)
        stored = repository.get_event('evt-1')

        assert stored == document
        assert stored['rsvps'][0]['rating'] is None

    def test_get_missing_event(self, repository):
        assert repository.get_event('missing') is None

    def test_list_events_sorted_by_date(self, repository):
        repository.put_event(make_event_document('b', date='2023-07-01'))
        repository.put_event(make_event_document('a', date='2023-06-01', time='20:00'))
        repository.put_event(make_event_document('c', date='2023-06-01', time='09:00'))

        assert [event['id'] for event in repository.list_events()] == ['c', 'a', 'b']

    def test_list_events_paginates(self, repository):
        pages = [
            {'Items': [to_item(make_event_document('a'))], 'LastEvaluatedKey': {'id': 'a'}},
            {'Items': [to_item(make_event_document('b'))]},
        ]
        with patch.object(repository.table, 'scan', side_effect=pages) as scan:
            events = repository.list_events()

        assert [event['id'] for event in events] == ['a', 'b']
        scan.assert_called_with(ExclusiveStartKey={'id': 'a'})

    def test_update_event_merges_and_stamps(self, repository):
        repository.put_event(make_event_document('evt-1'))

        merged = repository.update_event('evt-1', {
            'title': 'Sunset BBQ',
            'id': 'hijack',
            'createdAt': '1999-01-01T00:00:00Z',
            'rsvps': [{'userId': '1', 'name': 'Aubrey', 'status': 'attending', 'rating': None}]
        })

        assert merged['id'] == 'evt-1'
        assert merged['title'] == 'Sunset BBQ'
        assert merged['createdAt'] == '2023-05-01T12:00:00.000Z'
        assert len(merged['rsvps']) == 1
        assert parse_timestamp(merged['updatedAt']) > parse_timestamp('2023-05-01T12:00:00Z')
        assert repository.get_event('evt-1') == merged

    def test_update_event_none_removes_field(self, repository):
        repository.put_event(make_event_document('evt-1', imageUrl='https://x.test/a.jpg'))

        merged = repository.update_event('evt-1', {'imageUrl': None})

        assert 'imageUrl' not in merged

    def test_update_missing_event(self, repository):
        assert repository.update_event('missing', {'title': 'x'}) is None

    def test_archive_event(self, repository):
        repository.put_event(make_event_document('evt-1'))

        repository.archive_event('evt-1')

        assert repository.get_event('evt-1')['isArchived'] is True

    def test_delete_event(self, repository):
        repository.put_event(make_event_document('evt-1'))

        assert repository.delete_event('evt-1') is True
        assert repository.get_event('evt-1') is None
        assert repository.delete_event('evt-1') is False

    def test_scan_error_propagates(self, repository):
        error = ClientError(
            {'Error': {'Code': 'ResourceNotFoundException', 'Message': 'gone'}}, 'Scan'
        )
        with patch.object(repository.table, 'scan', side_effect=error):
            with pytest.raises(ClientError):
                repository.list_events()
