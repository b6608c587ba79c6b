"""Run log: timestamped progress lines echoed to a rich console and written once per run."""

# Standard Library
import os
import re
from datetime import datetime

import rich.console


REDACTED = "***"
KEY_QUERY_RE = re.compile(r"([?&]key=)[^&\s\"']+")
LEVEL_STYLES = {
	"INFO": "cyan",
	"WARNING": "yellow",
	"ERROR": "bold red",
}


#============================================
def redact_secrets(text: str, secrets: list[str] | tuple[str, ...] = ()) -> str:
	"""
	Mask known secret values and any key= query parameter in text.
	"""
	clean = str(text)
	for secret in secrets:
		if secret:
			clean = clean.replace(secret, REDACTED)
	clean = KEY_QUERY_RE.sub(r"\1" + REDACTED, clean)
	return clean


#============================================
def build_log_path(log_dir: str, started_at: datetime) -> str:
	"""
	Build the timestamped log file path for one run.
	"""
	stamp = started_at.strftime("%Y%m%d_%H%M%S")
	return os.path.join(log_dir, f"sales_report_{stamp}.log")


#============================================
class RunLog:
	"""
	Collects progress lines for one invocation.

	Instances are callable, so they can be passed wherever a module takes an
	optional logger callable.
	"""

	def __init__(self, secrets: list[str] | None = None, console=None, now_fn=datetime.now):
		self.secrets = [item for item in (secrets or []) if item]
		self.console = console if console is not None else rich.console.Console(stderr=True)
		self.now_fn = now_fn
		self.lines: list[str] = []

	#============================================
	def add_secret(self, secret: str) -> None:
		if secret and secret not in self.secrets:
			self.secrets.append(secret)

	#============================================
	def _emit(self, level: str, message: str) -> None:
		now_text = self.now_fn().strftime("%H:%M:%S")
		clean = redact_secrets(message, self.secrets)
		line = f"[{now_text}] {level} {clean}"
		self.lines.append(line)
		# rich markup off: model text may contain [brackets]
		self.console.print(line, style=LEVEL_STYLES.get(level, "cyan"), markup=False)

	#============================================
	def step(self, message: str) -> None:
		self._emit("INFO", message)

	#============================================
	def warning(self, message: str) -> None:
		self._emit("WARNING", message)

	#============================================
	def error(self, message: str) -> None:
		self._emit("ERROR", message)

	#============================================
	def __call__(self, message: str) -> None:
		"""
		Route plain logger calls by their WARNING/ERROR prefix.
		"""
		if message.startswith("WARNING:"):
			self.warning(message[len("WARNING:"):].strip())
			return
		if message.startswith("ERROR:"):
			self.error(message[len("ERROR:"):].strip())
			return
		self.step(message)

	#============================================
	def write(self, log_dir: str, started_at: datetime) -> str:
		"""
		Write all collected lines to the run's log file and return its path.
		"""
		path = build_log_path(log_dir, started_at)
		os.makedirs(log_dir, exist_ok=True)
		with open(path, "w", encoding="utf-8") as handle:
			for line in self.lines:
				handle.write(line + "\n")
		return path
