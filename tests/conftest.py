import json
import threading
import time

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from wprest import WordPressClient

BASE_URL = "http://example.test/wp-json/"


def make_response(status_code=200, body="", headers=None, reason="OK", url=""):
    if not isinstance(body, (str, bytes)):
        body = json.dumps(body)
    if isinstance(body, str):
        body = body.encode("utf-8")
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response.url = url
    response._content = body
    response._content_consumed = True
    response.headers = CaseInsensitiveDict(headers or {})
    response.encoding = "utf-8"
    return response


class SlowRaw:
    """Raw stream that hands out ``chunks`` one by one, ``delay`` apart."""

    def __init__(self, chunks, delay):
        self.chunks = chunks
        self.delay = delay
        self.closed = False

    def stream(self, chunk_size, decode_content=True):
        for chunk in self.chunks:
            time.sleep(self.delay)
            yield chunk

    def close(self):
        self.closed = True


def make_streaming_response(raw, status_code=200, reason="OK"):
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response.raw = raw
    return response


class FakeSession(requests.Session):
    """Session whose transport is a function of the prepared request."""

    def __init__(self, handler=None):
        super().__init__()
        self.handler = handler or (lambda request: make_response(200, {"id": 1}))
        self.sent = []
        self._lock = threading.Lock()

    def send(self, request, **kwargs):
        with self._lock:
            self.sent.append((request, kwargs))
        result = self.handler(request)
        if isinstance(result, BaseException):
            raise result
        if result.url == "":
            result.url = request.url
        return result

    def calls_to(self, suffix):
        return [r for r, _ in self.sent if r.url.split("?")[0].endswith(suffix)]


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def client(session):
    c = WordPressClient(BASE_URL, session=session)
    yield c
    c.close()
