"""In-process stand-ins for the LLM, search and feed clients."""

import httpx


class SleepRecorder:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class FakeLLM:
    """Scripted LLMClient.

    Each method pops its next scripted result; the last one repeats. A result
    that is an exception instance is raised instead of returned. For `stream`
    a result is a list of chunks, and an exception inside the list is raised
    mid-stream.
    """

    model = "fake-model"

    def __init__(self, complete=None, json=None, tool=None, stream=None):
        self.scripts = {
            "complete": list(complete or []),
            "complete_json": list(json or []),
            "call_tool": list(tool or []),
            "stream": list(stream or []),
        }
        self.calls = {name: [] for name in self.scripts}

    def _next(self, name):
        script = self.scripts[name]
        if not script:
            raise AssertionError(f"unexpected {name} call")
        item = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(item, BaseException):
            raise item
        return item

    async def complete(self, system, messages, max_tokens=1024, temperature=0.7):
        self.calls["complete"].append({
            "system": system, "messages": messages, "max_tokens": max_tokens, "temperature": temperature,
        })
        return self._next("complete")

    async def complete_json(self, system, messages, max_tokens=4096, temperature=0.7):
        self.calls["complete_json"].append({
            "system": system, "messages": messages, "max_tokens": max_tokens, "temperature": temperature,
        })
        return dict(self._next("complete_json"))

    async def call_tool(self, system, messages, tool, max_tokens=512, temperature=0.3):
        self.calls["call_tool"].append({
            "system": system, "messages": messages, "tool": tool, "temperature": temperature,
        })
        return dict(self._next("call_tool"))

    async def stream(self, system, messages, max_tokens=1024, temperature=0.7):
        self.calls["stream"].append({
            "system": system, "messages": messages, "max_tokens": max_tokens, "temperature": temperature,
        })
        for chunk in self._next("stream"):
            if isinstance(chunk, BaseException):
                raise chunk
            yield chunk


class FakeSearch:
    """Scripted ExaSearchClient; `results` may be a list or a query -> list function."""

    def __init__(self, results=None, error=None, configured=True):
        self.results = results if results is not None else []
        self.error = error
        self._configured = configured
        self.queries = []

    @property
    def configured(self):
        return self._configured

    async def search(self, query, num_results=10, search_type="auto", category=None, max_characters=1000):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        results = self.results(query) if callable(self.results) else self.results
        return list(results)[:num_results]


def search_result(title, url, text="Some text"):
    return {
        "id": url,
        "title": title,
        "url": url,
        "publishedDate": None,
        "author": None,
        "score": 0.9,
        "text": text,
    }


class FakeFeedClient:
    """Serves feed documents from a url -> text map; unknown urls fail."""

    def __init__(self, documents):
        self.documents = documents
        self.fetched = []

    async def fetch(self, url):
        self.fetched.append(url)
        if url not in self.documents:
            raise httpx.ConnectError(f"cannot reach {url}")
        return self.documents[url]
