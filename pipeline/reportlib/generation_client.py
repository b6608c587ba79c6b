"""Generative text API client with size ceiling, retry/backoff, and batch dispatch.

Request body:
	{"contents": [{"parts": [{"text": prompt}]}], "generationConfig": {...}}
Response text path:
	candidates[0].content.parts[*].text
"""

# Standard Library
import json
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import requests

from reportlib import pipeline_settings
from reportlib import report_errors
from reportlib import run_log


MAX_ERROR_BODY_CHARS = 500


#============================================
@dataclass(frozen=True)
class GenerationRequest:
	group_key: str
	prompt_text: str


#============================================
@dataclass(frozen=True)
class GenerationOutcome:
	group_key: str
	text: str = ""
	error: report_errors.GenerationRequestError | None = None

	@property
	def ok(self) -> bool:
		return self.error is None


#============================================
def _log(logger, msg: str) -> None:
	if logger is not None:
		logger(msg)


#============================================
def describe_request_error(error: report_errors.GenerationRequestError) -> str:
	"""
	Short status label for logs and stand-in sections.
	"""
	if isinstance(error, report_errors.GenerationError):
		if error.http_status is None:
			return "network error"
		return f"HTTP {error.http_status}"
	if isinstance(error, report_errors.SizeLimitError):
		return f"request too large ({error.size_bytes} > {error.limit_bytes} bytes)"
	if isinstance(error, report_errors.EmptyResponseError):
		return "empty response"
	return type(error).__name__


#============================================
def extract_response_text(payload) -> str:
	"""
	Join text parts of the first candidate; empty string when absent.
	"""
	if not isinstance(payload, dict):
		return ""
	candidates = payload.get("candidates") or []
	if not isinstance(candidates, list) or not candidates:
		return ""
	first = candidates[0]
	if not isinstance(first, dict):
		return ""
	content = first.get("content") or {}
	parts = content.get("parts") if isinstance(content, dict) else None
	if not isinstance(parts, list):
		return ""
	texts = []
	for part in parts:
		if isinstance(part, dict) and isinstance(part.get("text"), str):
			texts.append(part["text"])
	return "".join(texts).strip()


#============================================
class GenerationClient:
	"""
	Thin requests wrapper for one generative text endpoint.
	"""

	def __init__(
		self,
		config: pipeline_settings.ReportConfig,
		api_key: str,
		session=None,
		sleep_fn=time.sleep,
		logger=None,
	):
		self.config = config
		self.api_key = api_key
		self.session = session if session is not None else requests.Session()
		self.sleep_fn = sleep_fn
		self.logger = logger

	#============================================
	def log(self, message: str) -> None:
		_log(self.logger, message)

	#============================================
	def _redact(self, text: str) -> str:
		return run_log.redact_secrets(text, [self.api_key])

	#============================================
	def endpoint_url(self) -> str:
		base_url = self.config.api_base_url.rstrip("/")
		return f"{base_url}/models/{self.config.api_model}:generateContent"

	#============================================
	def build_request_body(self, prompt_text: str) -> bytes:
		"""
		Serialize the request body and enforce the byte ceiling before dispatch.
		"""
		payload = {
			"contents": [{"parts": [{"text": prompt_text}]}],
			"generationConfig": {
				"temperature": self.config.temperature,
				"maxOutputTokens": self.config.max_output_tokens,
			},
		}
		body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
		if len(body) > self.config.max_request_bytes:
			raise report_errors.SizeLimitError(len(body), self.config.max_request_bytes)
		return body

	#============================================
	def _post_once(self, body: bytes) -> str:
		"""
		Send one POST and return extracted text, raising typed errors.
		"""
		try:
			response = self.session.post(
				self.endpoint_url(),
				params={"key": self.api_key},
				data=body,
				headers={"Content-Type": "application/json; charset=utf-8"},
				timeout=self.config.request_timeout_seconds,
			)
		except requests.RequestException as error:
			# exception text can echo the request URL with the key
			raise report_errors.GenerationError(
				None,
				self._redact(str(error))[:MAX_ERROR_BODY_CHARS],
				f"Generation request failed (network): {type(error).__name__}",
			) from None
		if not (200 <= response.status_code < 300):
			raise report_errors.GenerationError(
				response.status_code,
				self._redact(response.text or "")[:MAX_ERROR_BODY_CHARS],
			)
		try:
			payload = response.json()
		except ValueError as error:
			raise report_errors.EmptyResponseError("Generation response was not valid JSON") from error
		text = extract_response_text(payload)
		if not text:
			raise report_errors.EmptyResponseError("Generation response contained no text")
		return text

	#============================================
	def generate(self, prompt_text: str) -> str:
		"""
		Generate text for one prompt with retry on transient failures.

		Retries HTTP 429, 5xx and network errors up to max_attempts with
		exponential backoff starting at initial_backoff_seconds. Other
		4xx responses fail at once.
		"""
		body = self.build_request_body(prompt_text)
		max_attempts = self.config.max_attempts
		attempt = 0
		while True:
			attempt += 1
			try:
				return self._post_once(body)
			except report_errors.GenerationError as error:
				if (not error.transient) or (attempt >= max_attempts):
					raise
				wait_seconds = self.config.initial_backoff_seconds * (2 ** (attempt - 1))
				self.log(
					f"WARNING: transient generation failure ({describe_request_error(error)}), "
					+ f"attempt {attempt}/{max_attempts}; retrying in {wait_seconds:.1f}s"
				)
				self.sleep_fn(wait_seconds)


#============================================
def _run_one(generate_fn, request: GenerationRequest, logger) -> GenerationOutcome:
	"""
	Run one request; request-level failures become failed outcomes.
	"""
	try:
		text = generate_fn(request.prompt_text)
	except report_errors.GenerationRequestError as error:
		_log(
			logger,
			f"ERROR: generation failed for {request.group_key!r}: {describe_request_error(error)}",
		)
		return GenerationOutcome(group_key=request.group_key, error=error)
	return GenerationOutcome(group_key=request.group_key, text=text)


#============================================
def dispatch_requests(
	generate_fn,
	requests_list: list[GenerationRequest],
	mode: str = "fanout",
	max_workers: int = 8,
	logger=None,
	before_each=None,
) -> list[GenerationOutcome]:
	"""
	Dispatch generation requests and return outcomes in input order.

	Args:
		generate_fn: Callable(prompt_text) -> str, usually GenerationClient.generate.
		requests_list: ordered requests, one per group.
		mode: "sequential" or "fanout".
		max_workers: thread pool size for fanout mode.
		logger: optional callable(str).
		before_each: optional callable(group_key) run before each sequential
			request (used for the wall-clock budget check).

	Returns:
		One GenerationOutcome per request, positionally correlated.
	"""
	if mode not in ("sequential", "fanout"):
		raise ValueError(f"mode must be sequential or fanout; got {mode!r}")
	if not requests_list:
		return []

	if mode == "sequential":
		outcomes = []
		for index, request in enumerate(requests_list, start=1):
			if before_each is not None:
				before_each(request.group_key)
			_log(logger, f"Generating {index}/{len(requests_list)}: {request.group_key}")
			outcomes.append(_run_one(generate_fn, request, logger))
		return outcomes

	worker_count = max(1, min(max_workers, len(requests_list)))
	_log(logger, f"Dispatching {len(requests_list)} requests concurrently ({worker_count} workers)")
	results: list[GenerationOutcome | None] = [None] * len(requests_list)
	with ThreadPoolExecutor(max_workers=worker_count) as executor:
		futures = {}
		for index, request in enumerate(requests_list):
			future = executor.submit(_run_one, generate_fn, request, logger)
			futures[future] = index
		for future, index in futures.items():
			results[index] = future.result()
	return [outcome for outcome in results if outcome is not None]
