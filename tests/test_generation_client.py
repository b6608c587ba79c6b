"""Tests for pipeline/reportlib/generation_client.py."""

# Standard Library
import os
import sys
import threading
import time

import pytest
import requests

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "pipeline"))

from reportlib import generation_client
from reportlib.pipeline_settings import ReportConfig
from reportlib.report_errors import EmptyResponseError
from reportlib.report_errors import GenerationError
from reportlib.report_errors import SizeLimitError
from reportlib.row_grouper import DepartmentGroup
from reportlib.synthesizer import build_section_results


API_KEY = "test-secret-key"


#============================================
class FakeResponse:
	def __init__(self, status_code: int, payload=None, text: str = ""):
		self.status_code = status_code
		self._payload = payload
		self.text = text

	def json(self):
		if self._payload is None:
			raise ValueError("no json")
		return self._payload


#============================================
class FakeSession:
	"""
	Returns queued responses in order; exceptions in the queue are raised.
	"""

	def __init__(self, responses: list):
		self.responses = list(responses)
		self.calls = []

	def post(self, url, params=None, data=None, headers=None, timeout=None):
		self.calls.append({"url": url, "params": params, "data": data, "timeout": timeout})
		item = self.responses.pop(0)
		if isinstance(item, Exception):
			raise item
		return item


#============================================
def ok_payload(text: str) -> dict:
	return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


#============================================
def make_client(responses: list, **config_changes):
	config = ReportConfig(**config_changes)
	session = FakeSession(responses)
	sleeps = []
	logged = []
	client = generation_client.GenerationClient(
		config,
		API_KEY,
		session=session,
		sleep_fn=sleeps.append,
		logger=logged.append,
	)
	return client, session, sleeps, logged


#============================================
def test_retry_then_success_uses_exponential_backoff() -> None:
	"""
	Two 500s then a 200 returns the text after sleeping 1s then 2s.
	"""
	client, session, sleeps, logged = make_client([
		FakeResponse(500, text="busy"),
		FakeResponse(500, text="busy"),
		FakeResponse(200, ok_payload("hello")),
	])
	assert client.generate("prompt") == "hello"
	assert sleeps == [1.0, 2.0]
	assert len(session.calls) == 3
	assert sum(1 for message in logged if message.startswith("WARNING:")) == 2


#============================================
def test_retries_exhausted_raise_last_status() -> None:
	"""
	Persistent 5xx raises GenerationError carrying the status after max attempts.
	"""
	client, session, sleeps, _ = make_client([FakeResponse(503, text="down")] * 3)
	with pytest.raises(GenerationError) as error_info:
		client.generate("prompt")
	assert error_info.value.http_status == 503
	assert len(session.calls) == 3
	assert sleeps == [1.0, 2.0]


#============================================
def test_client_error_is_not_retried() -> None:
	"""
	A 400 fails on the first attempt.
	"""
	client, session, sleeps, _ = make_client([FakeResponse(400, text="bad request")])
	with pytest.raises(GenerationError) as error_info:
		client.generate("prompt")
	assert error_info.value.http_status == 400
	assert error_info.value.body == "bad request"
	assert len(session.calls) == 1
	assert sleeps == []


#============================================
def test_rate_limit_is_retried() -> None:
	"""
	HTTP 429 counts as transient.
	"""
	client, _, sleeps, _ = make_client(
		[FakeResponse(429, text="slow down"), FakeResponse(200, ok_payload("ok"))],
		initial_backoff_seconds=0.25,
	)
	assert client.generate("prompt") == "ok"
	assert sleeps == [0.25]


#============================================
def test_network_error_is_redacted_and_retried() -> None:
	"""
	Network failures retry and never leak the key into the error text.
	"""
	leak = requests.ConnectionError(f"failed to reach https://host/v1?key={API_KEY}")
	client, session, _, _ = make_client([leak, leak], max_attempts=2)
	with pytest.raises(GenerationError) as error_info:
		client.generate("prompt")
	assert error_info.value.http_status is None
	assert API_KEY not in error_info.value.body
	assert API_KEY not in str(error_info.value)
	assert len(session.calls) == 2


#============================================
def test_error_body_is_redacted() -> None:
	"""
	Provider error bodies echoing the key are redacted.
	"""
	client, _, _, _ = make_client([FakeResponse(403, text=f"invalid key {API_KEY}")])
	with pytest.raises(GenerationError) as error_info:
		client.generate("prompt")
	assert API_KEY not in error_info.value.body


#============================================
def test_empty_response_raises() -> None:
	"""
	Success with no candidate text raises EmptyResponseError.
	"""
	client, _, _, _ = make_client([FakeResponse(200, {"candidates": []})])
	with pytest.raises(EmptyResponseError):
		client.generate("prompt")
	client, _, _, _ = make_client([FakeResponse(200, None, text="<html>")])
	with pytest.raises(EmptyResponseError):
		client.generate("prompt")


#============================================
def test_size_limit_raised_before_dispatch() -> None:
	"""
	An oversized request raises SizeLimitError without any network call.
	"""
	client, session, _, _ = make_client([], max_request_bytes=200)
	with pytest.raises(SizeLimitError) as error_info:
		client.generate("x" * 500)
	assert error_info.value.limit_bytes == 200
	assert error_info.value.size_bytes > 200
	assert session.calls == []


#============================================
def test_size_limit_counts_utf8_bytes() -> None:
	"""
	Multi-byte characters count by encoded size, not character count.
	"""
	client, _, _, _ = make_client([])
	small = client.build_request_body("a" * 10)
	wide = client.build_request_body("営" * 10)
	assert len(wide) - len(small) == 20


#============================================
def test_request_carries_key_param_and_endpoint() -> None:
	"""
	The key travels as a query parameter and the body holds the prompt.
	"""
	client, session, _, _ = make_client(
		[FakeResponse(200, ok_payload("hi"))],
		api_base_url="https://api.example.com/v1beta/",
		api_model="test-model",
	)
	client.generate("hello prompt")
	call = session.calls[0]
	assert call["url"] == "https://api.example.com/v1beta/models/test-model:generateContent"
	assert call["params"] == {"key": API_KEY}
	assert b"hello prompt" in call["data"]


#============================================
def test_extract_response_text_joins_parts() -> None:
	payload = {"candidates": [{"content": {"parts": [{"text": "a"}, {"text": "b"}, {"x": 1}]}}]}
	assert generation_client.extract_response_text(payload) == "ab"
	assert generation_client.extract_response_text({"candidates": [{}]}) == ""
	assert generation_client.extract_response_text([]) == ""


#============================================
def make_requests(count: int) -> list:
	return [
		generation_client.GenerationRequest(group_key=f"Dept{index}", prompt_text=f"prompt {index}")
		for index in range(count)
	]


#============================================
def test_fanout_outcomes_stay_in_input_order() -> None:
	"""
	Completion order differs from input order; outcomes follow input order.
	"""
	def generate_fn(prompt_text: str) -> str:
		index = int(prompt_text.split()[-1])
		# earlier requests finish later
		time.sleep(0.01 * (5 - index))
		return f"text {index}"

	outcomes = generation_client.dispatch_requests(generate_fn, make_requests(5), mode="fanout", max_workers=5)
	assert [outcome.group_key for outcome in outcomes] == [f"Dept{index}" for index in range(5)]
	assert [outcome.text for outcome in outcomes] == [f"text {index}" for index in range(5)]


#============================================
def test_fanout_failure_becomes_error_section_at_its_position() -> None:
	"""
	Five groups, the third failing with HTTP 500 after retries: four real
	sections and one stand-in, each at the right position.
	"""
	lock = threading.Lock()
	attempts = {"count": 0}

	def post_for(prompt_text: str):
		if prompt_text.endswith(" 2"):
			with lock:
				attempts["count"] += 1
			return FakeResponse(500, text="server error")
		return FakeResponse(200, ok_payload(f"detail {prompt_text}\n【DEPT_SUMMARY】\nsummary {prompt_text}"))

	class RoutingSession:
		def post(self, url, params=None, data=None, headers=None, timeout=None):
			text = data.decode("utf-8")
			prompt_text = text.split('"text": "', 1)[1].split('"', 1)[0]
			return post_for(prompt_text)

	config = ReportConfig()
	client = generation_client.GenerationClient(config, API_KEY, session=RoutingSession(), sleep_fn=lambda seconds: None)
	logged = []
	groups = [DepartmentGroup(department=f"Dept{index}") for index in range(5)]
	outcomes = generation_client.dispatch_requests(client.generate, make_requests(5), mode="fanout", logger=logged.append)
	sections = build_section_results(groups, outcomes, "【DEPT_SUMMARY】")

	assert attempts["count"] == 3
	assert [section.department for section in sections] == [f"Dept{index}" for index in range(5)]
	assert [section.failed for section in sections] == [False, False, True, False, False]
	assert "HTTP 500" in sections[2].detail_text
	assert sections[4].detail_text == "detail prompt 4"
	assert sections[4].summary_text == "summary prompt 4"
	assert any(message.startswith("ERROR:") and "Dept2" in message for message in logged)


#============================================
def test_sequential_mode_runs_before_each_hook() -> None:
	seen = []
	outcomes = generation_client.dispatch_requests(
		lambda prompt_text: prompt_text.upper(),
		make_requests(3),
		mode="sequential",
		before_each=seen.append,
	)
	assert seen == ["Dept0", "Dept1", "Dept2"]
	assert [outcome.text for outcome in outcomes] == ["PROMPT 0", "PROMPT 1", "PROMPT 2"]


#============================================
def test_dispatch_rejects_unknown_mode() -> None:
	with pytest.raises(ValueError):
		generation_client.dispatch_requests(lambda text: text, make_requests(1), mode="parallel")
