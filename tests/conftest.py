import json

import pytest

import app as app_module
import language_stats


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        if text is None:
            text = json.dumps(body) if body is not None else ""
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


def page(nodes, has_next=False, end_cursor=None):
    return {
        "data": {
            "user": {
                "repositories": {
                    "pageInfo": {"hasNextPage": has_next, "endCursor": end_cursor},
                    "nodes": nodes,
                }
            }
        }
    }


def node(name, languages=(), primary=None, repo_id=None):
    return {
        "id": repo_id or f"R_{name}",
        "name": name,
        "url": f"https://github.com/someone/{name}",
        "primaryLanguage": {"name": primary, "color": "#123456"} if primary else None,
        "languages": {
            "edges": [
                {"size": size, "node": {"name": lang, "color": color}}
                for lang, size, color in languages
            ]
        },
    }


@pytest.fixture
def github(monkeypatch):
    """
    Queue of responses served to requests.post; records every call.
    """
    calls = []
    responses = []

    def fake_post(url, headers=None, json=None, timeout=None):
        calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        result = responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(language_stats.requests, "post", fake_post)

    class Github:
        def __init__(self):
            self.calls = calls

        def add(self, *items):
            responses.extend(items)

    return Github()


@pytest.fixture
def client(monkeypatch):
    app_module.app.config["TESTING"] = True
    app_module._RATE_WINDOWS.clear()
    with app_module.app.test_client() as c:
        yield c
    app_module._RATE_WINDOWS.clear()
