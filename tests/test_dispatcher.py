import json
import threading
import time

import pytest
import requests

from wprest import ActivityStatus, CancellationToken, ErrorKind, RequestBuilder, WordPressAuthorization
from wprest.activity import ActivityNotifier
from wprest.dispatcher import RequestDispatcher
from wprest.request import Request
from wprest.statistics import EndpointStatistics

from conftest import BASE_URL, FakeSession, SlowRaw, make_response, make_streaming_response

API = BASE_URL + "wp/v2/"


def build(endpoint="posts", method="GET", **options):
    builder = RequestBuilder().with_base_and_endpoint(API, endpoint).with_method(method)
    for name, value in options.items():
        getattr(builder, name)(value)
    return builder.build()


def dispatcher_for(handler, **kwargs):
    return RequestDispatcher(FakeSession(handler), BASE_URL, **kwargs)


def test_successful_get_is_deserialised():
    dispatcher = dispatcher_for(lambda r: make_response(200, {"id": 1, "title": {"rendered": "Hi"}},
                                                       headers={"X-WP-Total": "1"}))

    response = dispatcher.get(build())

    assert response.status
    assert response.status_code == 200
    assert response.value["id"] == 1
    assert response.headers["X-WP-Total"] == "1"
    assert response.error is None
    assert response.messages[0].startswith("Request success with (200)")


def test_parser_is_applied():
    dispatcher = dispatcher_for(lambda r: make_response(200, {"id": 7, "x": 1}))
    response = dispatcher.get(build(), parser=lambda data: data["id"])
    assert response.value == 7


@pytest.mark.parametrize(
    "status_code, body",
    [(404, {"code": "rest_post_invalid_id"}), (500, "Internal error page"), (200, ""), (200, "[]"), (200, "null")],
)
def test_transport_failures(status_code, body):
    dispatcher = dispatcher_for(lambda r: make_response(status_code, body))

    response = dispatcher.get(build())

    assert not response.status
    assert response.value is None
    assert response.status_code == status_code
    assert response.error_kind is ErrorKind.TRANSPORT
    assert response.messages[0].startswith(f"Request failed with ({status_code})")
    assert dispatcher.statistics.get("posts") == 0


def test_body_of_five_characters_passes_length_guard():
    dispatcher = dispatcher_for(lambda r: make_response(200, "[1,2]"))
    response = dispatcher.get(build())
    assert response.status
    assert response.value == [1, 2]


def test_precondition_failure_returns_without_network():
    session = FakeSession()
    dispatcher = RequestDispatcher(session, BASE_URL)

    for request in (None, Request(method="GET", base_url="ftp://example.test/"), Request(method="PATCH", base_url=API)):
        response = dispatcher.execute(request)
        assert not response.status
        assert response.error_kind is ErrorKind.PRECONDITION

    assert session.sent == []


def test_global_preprocessor_rejection():
    dispatcher = dispatcher_for(lambda r: make_response(200, {"id": 1}))
    dispatcher.response_preprocessor = lambda text: False

    response = dispatcher.get(build())

    assert not response.status
    assert response.value is None
    assert response.error_kind is ErrorKind.POLICY
    assert "Globally defined validation restricted" in response.messages[0]
    # The round trip itself still counts.
    assert dispatcher.statistics.get("posts") == 1


def test_per_request_validator_rejection_after_response_callback():
    seen = []
    dispatcher = dispatcher_for(lambda r: make_response(200, {"id": 1}))
    request = (
        RequestBuilder()
        .with_base_and_endpoint(API, "posts")
        .with_callback(on_response=seen.append)
        .with_response_validation(lambda text: "forbidden" in text)
        .build()
    )

    response = dispatcher.get(request)

    assert not response.status
    assert "User defined validation restricted" in response.messages[0]
    assert seen == ['{"id": 1}']


def test_delete_returns_boolean():
    session = FakeSession(lambda r: make_response(200, {"deleted": True, "previous": {"id": 42}}))
    dispatcher = RequestDispatcher(session, BASE_URL)

    response = dispatcher.delete(build("posts/42", "DELETE"))

    assert response.status
    assert response.value is True
    assert session.sent[0][0].method == "DELETE"


def test_put_sends_form_body():
    session = FakeSession(lambda r: make_response(200, {"id": 42, "title": {"rendered": "New"}}))
    dispatcher = RequestDispatcher(session, BASE_URL)
    request = RequestBuilder().with_base_and_endpoint(API, "posts/42").with_method("PUT").with_body({"title": "New"}).build()

    response = dispatcher.execute(request)

    assert response.status
    prepared = session.sent[0][0]
    assert prepared.method == "PUT"
    assert prepared.body == "title=New"


def test_authorization_failure_short_circuits():
    session = FakeSession(lambda r: make_response(403, {}))
    dispatcher = RequestDispatcher(session, BASE_URL)
    statuses = []
    request = (
        RequestBuilder()
        .with_base_and_endpoint(API, "posts")
        .with_authorization_required()
        .with_callback(on_request_status=statuses.append)
        .build()
    )

    response = dispatcher.get(request)

    assert not response.status
    assert response.error_kind is ErrorKind.AUTHORIZATION
    assert response.messages == ("Authorization failed.",)
    assert response.status_code is None
    assert response.headers == {}
    assert session.sent == []
    assert [s.success for s in statuses] == [False]


def test_per_request_authorization_header_is_sent():
    session = FakeSession(lambda r: make_response(200, {"id": 1}))
    dispatcher = RequestDispatcher(session, BASE_URL)
    request = RequestBuilder().with_base_and_endpoint(API, "users/me").with_authorization(
        WordPressAuthorization("user", "pass")
    ).build()

    assert dispatcher.get(request).status
    assert session.sent[0][0].headers["Authorization"].startswith("Basic ")


def test_expired_token_is_cancellation_not_generic_failure():
    errors, statuses = [], []
    session = FakeSession()
    dispatcher = RequestDispatcher(session, BASE_URL)
    token = CancellationToken()
    token.cancel()
    request = (
        RequestBuilder()
        .with_base_and_endpoint(API, "posts")
        .with_cancellation_token(token)
        .with_callback(on_exception=errors.append, on_request_status=statuses.append)
        .build()
    )

    response = dispatcher.get(request)

    assert not response.status
    assert response.cancelled
    assert response.error_kind is ErrorKind.CANCELLED
    assert "exceeded timeout limit" in response.messages[0].lower()
    assert session.sent == []
    assert len(errors) == 1
    assert statuses[0].success is False


def test_transport_timeout_is_cancellation():
    dispatcher = dispatcher_for(lambda r: requests.ReadTimeout("read timed out"), timeout=5)

    response = dispatcher.get(build())

    assert response.error_kind is ErrorKind.CANCELLED
    assert response.error.timeout == 5
    assert isinstance(response.error.__cause__, requests.ReadTimeout)


def test_deadline_enforced_while_body_streams():
    raw = SlowRaw([b"x" * 10] * 11, delay=0.2)
    dispatcher = dispatcher_for(lambda r: make_streaming_response(raw))
    request = (
        RequestBuilder()
        .with_base_and_endpoint(API, "posts")
        .with_cancellation_token(CancellationToken.with_timeout(0.3))
        .build()
    )

    started = time.monotonic()
    response = dispatcher.get(request)

    assert time.monotonic() - started < 1.0
    assert response.error_kind is ErrorKind.CANCELLED
    assert response.status_code == 200
    assert raw.closed


def test_cancel_from_another_thread_stops_body_read():
    raw = SlowRaw([b"x" * 10] * 11, delay=0.2)
    dispatcher = dispatcher_for(lambda r: make_streaming_response(raw))
    token = CancellationToken()
    request = RequestBuilder().with_base_and_endpoint(API, "posts").with_cancellation_token(token).build()
    timer = threading.Timer(0.1, token.cancel)

    timer.start()
    started = time.monotonic()
    response = dispatcher.get(request)
    timer.join()

    assert time.monotonic() - started < 1.0
    assert response.cancelled
    assert raw.closed


def test_body_without_charset_is_read_as_utf8():
    def handler(request):
        response = make_response(200, {"title": "Café au lait"}, headers={"Content-Type": "text/html"})
        response.encoding = "ISO-8859-1"
        return response

    response = dispatcher_for(handler).get(build())

    assert response.value["title"] == "Café au lait"


def test_declared_charset_is_honoured():
    body = json.dumps({"title": "Café au lait"}, ensure_ascii=False).encode("latin-1")

    def handler(request):
        response = make_response(200, body, headers={"Content-Type": "application/json; charset=ISO-8859-1"})
        response.encoding = "ISO-8859-1"
        return response

    response = dispatcher_for(handler).get(build())

    assert response.value["title"] == "Café au lait"


def test_response_headers_are_read_only():
    response = dispatcher_for(lambda r: make_response(200, {"id": 1}, headers={"X-WP-Total": "1"})).get(build())

    with pytest.raises(TypeError):
        response.headers["X-WP-Total"] = "2"
    assert response.headers["X-WP-Total"] == "1"


def test_timeout_is_passed_to_transport():
    session = FakeSession()
    dispatcher = RequestDispatcher(session, BASE_URL, timeout=30)

    dispatcher.get(build())

    kwargs = session.sent[0][1]
    assert 0 < kwargs["timeout"] <= 30
    assert kwargs["stream"] is True


def test_unhandled_exception_is_captured():
    errors = []
    dispatcher = dispatcher_for(lambda r: requests.ConnectionError("connection refused"))
    request = RequestBuilder().with_base_and_endpoint(API, "posts").with_callback(on_exception=errors.append).build()

    response = dispatcher.get(request)

    assert not response.status
    assert response.error_kind is ErrorKind.UNHANDLED
    assert isinstance(response.error, requests.ConnectionError)
    assert errors == [response.error]


def test_invalid_json_is_unhandled_failure():
    dispatcher = dispatcher_for(lambda r: make_response(200, "<html>not json</html>"))
    response = dispatcher.get(build())
    assert response.error_kind is ErrorKind.UNHANDLED
    assert response.status_code == 200
    assert response.value is None


def test_raising_callback_does_not_change_outcome():
    def explode(_):
        raise RuntimeError("boom")

    dispatcher = dispatcher_for(lambda r: make_response(200, {"id": 1}))
    request = (
        RequestBuilder()
        .with_base_and_endpoint(API, "posts")
        .with_callback(on_response=explode, on_request_status=explode, on_progress=explode)
        .build()
    )

    assert dispatcher.get(request).status


def test_progress_reported_until_complete():
    progress = []
    body = '{"content": "' + "x" * 20000 + '"}'
    dispatcher = dispatcher_for(lambda r: make_response(200, body, headers={"Content-Length": str(len(body))}))
    request = RequestBuilder().with_base_and_endpoint(API, "posts").with_callback(on_progress=progress.append).build()

    assert dispatcher.get(request).status
    assert len(progress) > 2
    assert progress == sorted(progress)
    assert progress[-1] == 1.0


def test_activity_sequence():
    events = []
    activity = ActivityNotifier(events.append)
    dispatcher = dispatcher_for(lambda r: make_response(200, {"id": 1}), activity=activity)

    dispatcher.get(build())
    dispatcher.get(None)
    dispatcher.get(_cancelled_request())
    activity.close()

    assert events == [
        ActivityStatus.STARTED, ActivityStatus.RUNNING, ActivityStatus.FINISHED,
        ActivityStatus.STARTED, ActivityStatus.FINISHED,
        ActivityStatus.STARTED, ActivityStatus.RUNNING, ActivityStatus.ABORTED, ActivityStatus.FINISHED,
    ]


def _cancelled_request():
    token = CancellationToken()
    token.cancel()
    return RequestBuilder().with_base_and_endpoint(API, "posts").with_cancellation_token(token).build()


def test_statistics_counted_by_first_segment():
    counts = []
    statistics = EndpointStatistics(lambda endpoint, count: counts.append((endpoint, count)))
    dispatcher = dispatcher_for(lambda r: make_response(200, {"id": 42}), statistics=statistics)

    for _ in range(5):
        dispatcher.get(build("posts/42"))
    for _ in range(3):
        dispatcher.get(build("posts"))
    statistics.close()

    assert statistics.get("posts") == 8
    assert counts == [("posts", n) for n in range(1, 9)]


class GateRecorder:
    def __init__(self):
        self.lock = threading.Lock()
        self.in_flight = 0
        self.peak = 0

    def __call__(self, request):
        with self.lock:
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
        time.sleep(0.05)
        with self.lock:
            self.in_flight -= 1
        return make_response(200, {"id": 1})


def _run_parallel(dispatcher, count):
    results = []
    threads = [threading.Thread(target=lambda: results.append(dispatcher.get(build()))) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def test_concurrency_gate_limits_in_flight_sends():
    recorder = GateRecorder()
    dispatcher = dispatcher_for(recorder, max_concurrent_requests=2)

    results = _run_parallel(dispatcher, 3)

    assert all(r.status for r in results)
    assert recorder.peak <= 2
    assert dispatcher.throttled


def test_zero_disables_throttling():
    # Every send waits until all four are in flight at once.
    barrier = threading.Barrier(4, timeout=5)

    def handler(request):
        barrier.wait()
        return make_response(200, {"id": 1})

    dispatcher = dispatcher_for(handler, max_concurrent_requests=0)

    results = _run_parallel(dispatcher, 4)

    assert all(r.status for r in results)
    assert not dispatcher.throttled


def test_gate_released_after_exception():
    dispatcher = dispatcher_for(lambda r: RuntimeError("transport bug"), max_concurrent_requests=1)

    for _ in range(3):
        assert dispatcher.get(build()).error_kind is ErrorKind.UNHANDLED
