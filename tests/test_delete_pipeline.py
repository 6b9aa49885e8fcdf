"""Tests for :meth:`DiscordApi.delete_messages_with_delay`."""

import threading

import pytest
import requests

from helpers import make_response
from sweepcord.api import DeleteResult


def deleted(call):
    return make_response(204)


def test_emits_one_result_per_id_in_order(make_api, sleeps):
    api, session = make_api(deleted)

    results = list(api.delete_messages_with_delay('c1', ['1', '2', '3', '4'], delay=0))

    assert results == [DeleteResult(i, True) for i in ['1', '2', '3', '4']]
    assert [c.path.rsplit('/', 1)[1] for c in session.calls] == ['1', '2', '3', '4']
    assert sleeps == []


def test_failure_does_not_stop_the_batch(make_api):
    def handler(call):
        if call.path.endswith('/2'):
            return make_response(403, json_body={'message': 'Missing Permissions', 'code': 50013})
        return make_response(204)

    api, _ = make_api(handler)

    results = list(api.delete_messages_with_delay('c1', ['1', '2', '3'], delay=0))

    assert [r.success for r in results] == [True, False, True]
    assert results[1].message_id == '2'
    assert results[1].error == 'Discord API Error (403): Missing Permissions'
    assert results[0].error is None


def test_transport_failure_is_captured(make_api):
    def handler(call):
        if call.path.endswith('/1'):
            return requests.exceptions.ConnectionError('reset by peer')
        return make_response(204)

    api, _ = make_api(handler)

    results = list(api.delete_messages_with_delay('c1', ['1', '2'], delay=0))

    assert [r.success for r in results] == [False, True]
    assert 'reset by peer' in results[0].error


def test_delay_between_items_only(make_api, sleeps):
    api, _ = make_api(deleted)

    list(api.delete_messages_with_delay('c1', ['1', '2', '3'], delay=1500))

    assert sleeps == [1.5, 1.5]


def test_rate_limited_delete_is_retried(make_api, sleeps):
    answers = [make_response(429, headers={'Retry-After': '3'}), make_response(204)]
    api, session = make_api(lambda call: answers.pop(0))

    results = list(api.delete_messages_with_delay('c1', ['1'], delay=0))

    assert results == [DeleteResult('1', True)]
    assert sleeps == [3.0]
    assert len(session.calls) == 2


def test_cancel_before_start_emits_nothing(make_api):
    api, session = make_api(deleted)
    cancel = threading.Event()
    cancel.set()

    assert list(api.delete_messages_with_delay('c1', ['1', '2'], delay=0, cancel_event=cancel)) == []
    assert session.calls == []


def test_cancel_mid_run_stops_before_next_item(make_api):
    api, session = make_api(deleted)
    cancel = threading.Event()
    results = []

    for result in api.delete_messages_with_delay('c1', ['1', '2', '3', '4'], delay=0,
                                                 cancel_event=cancel):
        results.append(result)
        if len(results) == 2:
            cancel.set()

    assert [r.message_id for r in results] == ['1', '2']
    assert len(session.calls) == 2


def test_pipeline_is_lazy(make_api):
    api, session = make_api(deleted)

    pipeline = api.delete_messages_with_delay('c1', ['1', '2'], delay=0)
    assert session.calls == []

    next(pipeline)
    assert len(session.calls) == 1


def test_consuming_twice_deletes_twice(make_api):
    api, session = make_api(deleted)

    list(api.delete_messages_with_delay('c1', ['1'], delay=0))
    list(api.delete_messages_with_delay('c1', ['1'], delay=0))

    assert len(session.calls) == 2


def test_negative_delay_rejected(make_api):
    api, _ = make_api(deleted)

    with pytest.raises(ValueError):
        list(api.delete_messages_with_delay('c1', ['1'], delay=-1))
