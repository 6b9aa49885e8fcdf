"""Fake HTTP plumbing for exercising DiscordApi without a network."""

import json
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

import requests


def make_response(status: int = 200, json_body: Any = None, text: Optional[str] = None,
                  headers: Optional[Dict[str, str]] = None, reason: str = 'OK') -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response.encoding = 'utf-8'
    if json_body is not None:
        response._content = json.dumps(json_body).encode()
        response.headers['Content-Type'] = 'application/json'
    elif text is not None:
        response._content = text.encode()
        response.headers['Content-Type'] = 'text/plain'
    else:
        response._content = b''
    response.headers.update(headers or {})
    return response


class Call:
    def __init__(self, method, url, params, body, timeout):
        self.method = method
        self.url = url
        self.path = urlparse(url).path
        self.params = params
        self.body = body
        self.timeout = timeout


class FakeSession:
    """Stands in for ``requests.Session``; ``handler(call)`` returns a response."""

    def __init__(self, handler: Callable[[Call], requests.Response]):
        self.handler = handler
        self.headers: Dict[str, str] = {}
        self.calls: List[Call] = []
        self.closed = False

    def request(self, method, url, params=None, json=None, timeout=None):
        call = Call(method, url, params, json, timeout)
        self.calls.append(call)
        result = self.handler(call)
        if isinstance(result, Exception):
            raise result
        return result

    def close(self):
        self.closed = True


def sequence(*responses):
    """Handler answering each call with the next item of ``responses``."""
    remaining = list(responses)

    def handler(call):
        return remaining.pop(0)

    return handler


