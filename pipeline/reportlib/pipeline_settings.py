import os
import urllib.parse
from dataclasses import dataclass
from dataclasses import replace
from datetime import date
from datetime import datetime

import yaml

from reportlib import report_errors


ORDER_MODES = ("master", "alphabetical")
UNKNOWN_STAFF_POLICIES = ("bucket", "drop")
GENERATION_MODES = ("sequential", "fanout")

# wire contract with the generative model, bump when changed
PROTOCOL_VERSION = 1
DEFAULT_SUMMARY_TAG = "【DEPT_SUMMARY】"
DEFAULT_DETAIL_PLACEHOLDER = "{{DETAIL_PLACEHOLDER}}"


#============================================
@dataclass(frozen=True)
class ReportConfig:
	"""
	Validated settings for one report run.

	period_days defaults to 1 (the report date only, a daily report);
	0 keeps every row in the workbook.
	"""
	input_path: str = "data/sales_activity.xlsx"
	staff_sheet: str = "Staff"
	activity_sheet: str = "Activity"
	header_rows: int = 1
	report_date: date | None = None
	period_days: int = 1
	order_mode: str = "master"
	unknown_staff_policy: str = "bucket"
	unknown_label: str = "Unknown"
	include_inactive_staff: bool = True
	delimiter: str = ","
	template_path: str = "templates/report_template.txt"
	footer_marker: str = "=== MAINTENANCE ==="
	report_title: str = "Sales Activity Report"
	summary_tag: str = DEFAULT_SUMMARY_TAG
	detail_placeholder: str = DEFAULT_DETAIL_PLACEHOLDER
	api_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
	api_model: str = "gemini-1.5-flash"
	api_key_env: str = "GENERATIVE_API_KEY"
	request_timeout_seconds: float = 120.0
	max_request_bytes: int = 900000
	max_attempts: int = 3
	initial_backoff_seconds: float = 1.0
	temperature: float = 0.4
	max_output_tokens: int = 8192
	generation_mode: str = "fanout"
	max_workers: int = 8
	time_budget_seconds: float = 330.0
	output_dir: str = "out/reports"
	output_prefix: str = "sales_report"
	log_dir: str = "out/logs"
	indent_unit: int = 2


#============================================
def get_repo_root() -> str:
	"""
	Return repository root based on this module location.
	"""
	module_dir = os.path.dirname(os.path.abspath(__file__))
	pipeline_dir = os.path.dirname(module_dir)
	repo_root = os.path.dirname(pipeline_dir)
	return repo_root


#============================================
def resolve_settings_path(path_text: str) -> str:
	"""
	Resolve settings path against cwd first, then repo root.
	"""
	if os.path.isabs(path_text):
		return path_text
	cwd_candidate = os.path.abspath(path_text)
	if os.path.isfile(cwd_candidate):
		return cwd_candidate
	repo_root = get_repo_root()
	repo_candidate = os.path.join(repo_root, path_text)
	return os.path.abspath(repo_candidate)


#============================================
def load_settings(path_text: str) -> tuple[dict, str]:
	"""
	Load YAML settings dict and return it with resolved path.
	"""
	resolved_path = resolve_settings_path(path_text)
	if not os.path.isfile(resolved_path):
		return {}, resolved_path
	try:
		with open(resolved_path, "r", encoding="utf-8") as handle:
			data = yaml.safe_load(handle.read())
	except yaml.YAMLError as error:
		raise report_errors.ConfigurationError(f"Settings file is not valid YAML: {resolved_path}: {error}") from error
	except (OSError, UnicodeDecodeError) as error:
		raise report_errors.ConfigurationError(f"Settings file could not be read: {resolved_path}") from error
	if data is None:
		return {}, resolved_path
	if not isinstance(data, dict):
		raise report_errors.ConfigurationError(f"Settings file must contain a mapping: {resolved_path}")
	return data, resolved_path


#============================================
def get_nested_value(settings: dict, keys: list[str], default_value):
	"""
	Read nested mapping value by key path.
	"""
	current = settings
	for key in keys:
		if not isinstance(current, dict):
			return default_value
		if key not in current:
			return default_value
		current = current[key]
	return current


#============================================
def get_setting_str(settings: dict, keys: list[str], default_value: str) -> str:
	"""
	Read a string setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	return str(value).strip()


#============================================
def get_setting_int(settings: dict, keys: list[str], default_value: int) -> int:
	"""
	Read an integer setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	try:
		return int(value)
	except ValueError as error:
		raise report_errors.ConfigurationError(f"Invalid integer for setting path {'.'.join(keys)}: {value}") from error


#============================================
def get_setting_float(settings: dict, keys: list[str], default_value: float) -> float:
	"""
	Read a float setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	try:
		return float(value)
	except ValueError as error:
		raise report_errors.ConfigurationError(f"Invalid number for setting path {'.'.join(keys)}: {value}") from error


#============================================
def get_setting_bool(settings: dict, keys: list[str], default_value: bool) -> bool:
	"""
	Read a boolean setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if isinstance(value, bool):
		return value
	if isinstance(value, str):
		text = value.strip().lower()
		if text in {"1", "true", "yes", "on"}:
			return True
		if text in {"0", "false", "no", "off"}:
			return False
		raise report_errors.ConfigurationError(f"Invalid boolean for setting path {'.'.join(keys)}: {value}")
	if isinstance(value, int):
		return value != 0
	if value is None:
		return default_value
	raise report_errors.ConfigurationError(f"Invalid boolean for setting path {'.'.join(keys)}: {value}")


#============================================
def parse_report_date(text: str) -> date:
	"""
	Parse a YYYY-MM-DD report date.
	"""
	try:
		return datetime.strptime(text.strip(), "%Y-%m-%d").date()
	except ValueError as error:
		raise report_errors.ConfigurationError(f"Invalid report date (expected YYYY-MM-DD): {text}") from error


#============================================
def build_report_config(settings: dict, report_date_override: str = "") -> ReportConfig:
	"""
	Map nested YAML settings onto a ReportConfig with documented defaults.
	"""
	defaults = ReportConfig()
	report_date_text = report_date_override or get_setting_str(settings, ["report", "date"], "")
	report_date = parse_report_date(report_date_text) if report_date_text else None
	config = ReportConfig(
		input_path=get_setting_str(settings, ["input", "path"], defaults.input_path),
		staff_sheet=get_setting_str(settings, ["input", "staff_sheet"], defaults.staff_sheet),
		activity_sheet=get_setting_str(settings, ["input", "activity_sheet"], defaults.activity_sheet),
		header_rows=get_setting_int(settings, ["input", "header_rows"], defaults.header_rows),
		report_date=report_date,
		period_days=get_setting_int(settings, ["report", "period_days"], defaults.period_days),
		order_mode=get_setting_str(settings, ["grouping", "order"], defaults.order_mode),
		unknown_staff_policy=get_setting_str(
			settings, ["grouping", "unknown_staff_policy"], defaults.unknown_staff_policy
		),
		unknown_label=get_setting_str(settings, ["grouping", "unknown_label"], defaults.unknown_label),
		include_inactive_staff=get_setting_bool(
			settings, ["grouping", "include_inactive_staff"], defaults.include_inactive_staff
		),
		# delimiter is not stripped, a tab must survive
		delimiter=str(get_nested_value(settings, ["encoding", "delimiter"], defaults.delimiter)),
		template_path=get_setting_str(settings, ["prompt", "template_path"], defaults.template_path),
		footer_marker=get_setting_str(settings, ["prompt", "footer_marker"], defaults.footer_marker),
		report_title=get_setting_str(settings, ["report", "title"], defaults.report_title),
		summary_tag=get_setting_str(settings, ["protocol", "summary_tag"], defaults.summary_tag),
		detail_placeholder=get_setting_str(
			settings, ["protocol", "detail_placeholder"], defaults.detail_placeholder
		),
		api_base_url=get_setting_str(settings, ["api", "base_url"], defaults.api_base_url),
		api_model=get_setting_str(settings, ["api", "model"], defaults.api_model),
		api_key_env=get_setting_str(settings, ["api", "key_env"], defaults.api_key_env),
		request_timeout_seconds=get_setting_float(
			settings, ["api", "timeout_seconds"], defaults.request_timeout_seconds
		),
		max_request_bytes=get_setting_int(settings, ["api", "max_request_bytes"], defaults.max_request_bytes),
		max_attempts=get_setting_int(settings, ["api", "max_attempts"], defaults.max_attempts),
		initial_backoff_seconds=get_setting_float(
			settings, ["api", "initial_backoff_seconds"], defaults.initial_backoff_seconds
		),
		temperature=get_setting_float(settings, ["api", "temperature"], defaults.temperature),
		max_output_tokens=get_setting_int(settings, ["api", "max_output_tokens"], defaults.max_output_tokens),
		generation_mode=get_setting_str(settings, ["generation", "mode"], defaults.generation_mode),
		max_workers=get_setting_int(settings, ["generation", "max_workers"], defaults.max_workers),
		time_budget_seconds=get_setting_float(
			settings, ["run", "time_budget_seconds"], defaults.time_budget_seconds
		),
		output_dir=get_setting_str(settings, ["output", "dir"], defaults.output_dir),
		output_prefix=get_setting_str(settings, ["output", "prefix"], defaults.output_prefix),
		log_dir=get_setting_str(settings, ["log", "dir"], defaults.log_dir),
		indent_unit=get_setting_int(settings, ["render", "indent_unit"], defaults.indent_unit),
	)
	return config


#============================================
def with_report_date(config: ReportConfig, today: date) -> ReportConfig:
	"""
	Fill in the report date when settings leave it unset.
	"""
	if config.report_date is not None:
		return config
	return replace(config, report_date=today)


#============================================
def validate_report_config(config: ReportConfig) -> None:
	"""
	Check every setting once at startup; raise ConfigurationError on the first problem.
	"""
	if config.order_mode not in ORDER_MODES:
		raise report_errors.ConfigurationError(
			f"grouping.order must be one of {', '.join(ORDER_MODES)}; got {config.order_mode!r}"
		)
	if config.unknown_staff_policy not in UNKNOWN_STAFF_POLICIES:
		raise report_errors.ConfigurationError(
			"grouping.unknown_staff_policy must be one of "
			+ f"{', '.join(UNKNOWN_STAFF_POLICIES)}; got {config.unknown_staff_policy!r}"
		)
	if config.generation_mode not in GENERATION_MODES:
		raise report_errors.ConfigurationError(
			f"generation.mode must be one of {', '.join(GENERATION_MODES)}; got {config.generation_mode!r}"
		)
	if not config.input_path:
		raise report_errors.ConfigurationError("input.path is required.")
	if not os.path.isfile(config.input_path):
		raise report_errors.ConfigurationError(f"Input workbook not found: {config.input_path}")
	if not config.staff_sheet or not config.activity_sheet:
		raise report_errors.ConfigurationError("input.staff_sheet and input.activity_sheet are required.")
	if config.header_rows < 0:
		raise report_errors.ConfigurationError("input.header_rows must be zero or greater.")
	if config.period_days < 0:
		raise report_errors.ConfigurationError("report.period_days must be zero or greater.")
	if len(config.delimiter) != 1 or config.delimiter in {'"', "\n", "\r"}:
		raise report_errors.ConfigurationError(f"encoding.delimiter must be one character; got {config.delimiter!r}")
	if not config.template_path:
		raise report_errors.ConfigurationError("prompt.template_path is required.")
	if not config.summary_tag or not config.detail_placeholder:
		raise report_errors.ConfigurationError("protocol.summary_tag and protocol.detail_placeholder must be non-empty.")
	if config.summary_tag == config.detail_placeholder:
		raise report_errors.ConfigurationError("protocol.summary_tag and protocol.detail_placeholder must differ.")
	parsed = urllib.parse.urlparse(config.api_base_url)
	if parsed.scheme not in {"http", "https"} or not parsed.netloc:
		raise report_errors.ConfigurationError(f"api.base_url must be an http(s) URL with a host: {config.api_base_url}")
	if not config.api_model:
		raise report_errors.ConfigurationError("api.model is required.")
	if not config.api_key_env:
		raise report_errors.ConfigurationError("api.key_env is required.")
	if config.max_attempts < 1:
		raise report_errors.ConfigurationError("api.max_attempts must be at least 1.")
	if config.max_request_bytes < 1:
		raise report_errors.ConfigurationError("api.max_request_bytes must be positive.")
	if config.initial_backoff_seconds < 0:
		raise report_errors.ConfigurationError("api.initial_backoff_seconds must be zero or greater.")
	if config.request_timeout_seconds <= 0:
		raise report_errors.ConfigurationError("api.timeout_seconds must be positive.")
	if config.max_workers < 1:
		raise report_errors.ConfigurationError("generation.max_workers must be at least 1.")
	if config.time_budget_seconds <= 0:
		raise report_errors.ConfigurationError("run.time_budget_seconds must be positive.")
	if not config.output_dir or not config.output_prefix:
		raise report_errors.ConfigurationError("output.dir and output.prefix are required.")
	if not config.log_dir:
		raise report_errors.ConfigurationError("log.dir is required.")
	if config.indent_unit < 1:
		raise report_errors.ConfigurationError("render.indent_unit must be at least 1.")


#============================================
def resolve_api_key(config: ReportConfig, environ: dict | None = None) -> str:
	"""
	Read the API key from the environment variable named in settings.
	"""
	source = os.environ if environ is None else environ
	api_key = str(source.get(config.api_key_env, "")).strip()
	if not api_key:
		raise report_errors.ConfigurationError(f"API key environment variable is not set: {config.api_key_env}")
	return api_key
