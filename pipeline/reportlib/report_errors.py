"""Typed error taxonomy for the sales report pipeline.

Fatal errors abort the run. Request-level errors are caught per department
and replaced with a visible stand-in section.
"""


#============================================
class ReportPipelineError(RuntimeError):
	"""
	Base class for all pipeline errors.
	"""


#============================================
class ConfigurationError(ReportPipelineError):
	"""
	Raised when settings, sheets, or required paths are missing or invalid.
	"""


#============================================
class InputValidationError(ReportPipelineError):
	"""
	Raised when input tables have no data rows or malformed values.
	"""


#============================================
class ExternalReadError(ReportPipelineError):
	"""
	Raised when the prompt template document cannot be read.
	"""


#============================================
class OutputWriteError(ReportPipelineError):
	"""
	Raised when the output folder or document cannot be written.
	"""


#============================================
class TimeBudgetExceededError(ReportPipelineError):
	"""
	Raised when the run exceeds its wall-clock budget.
	"""

	def __init__(self, stage: str, elapsed_seconds: float, budget_seconds: float):
		self.stage = stage
		self.elapsed_seconds = float(elapsed_seconds)
		self.budget_seconds = float(budget_seconds)
		super().__init__(
			f"Time budget exceeded before {stage}: "
			+ f"{self.elapsed_seconds:.1f}s > {self.budget_seconds:.1f}s"
		)


#============================================
class GenerationRequestError(ReportPipelineError):
	"""
	Base class for failures of one generation request.
	"""


#============================================
class GenerationError(GenerationRequestError):
	"""
	Raised on a non-success HTTP status or a network failure after retries.
	"""

	def __init__(self, http_status: int | None, body: str, message: str = ""):
		self.http_status = http_status
		self.body = body or ""
		if not message:
			status_text = str(http_status) if http_status is not None else "network"
			message = f"Generation request failed (status {status_text})"
		super().__init__(message)

	@property
	def transient(self) -> bool:
		"""
		True for 429, 5xx and network-level failures.
		"""
		if self.http_status is None:
			return True
		if self.http_status == 429:
			return True
		return 500 <= self.http_status <= 599


#============================================
class EmptyResponseError(GenerationRequestError):
	"""
	Raised when the provider returns success but no extractable text.
	"""


#============================================
class SizeLimitError(GenerationRequestError):
	"""
	Raised before dispatch when the serialized request exceeds the byte ceiling.
	"""

	def __init__(self, size_bytes: int, limit_bytes: int):
		self.size_bytes = int(size_bytes)
		self.limit_bytes = int(limit_bytes)
		super().__init__(
			f"Request size limit exceeded: {self.size_bytes} > {self.limit_bytes} bytes"
		)
