#!/usr/bin/env python3
import argparse
import sys
import time
from dataclasses import dataclass
from datetime import date
from datetime import datetime
from datetime import timedelta

from reportlib import activity_table
from reportlib import docx_writer
from reportlib import generation_client
from reportlib import markdown_renderer
from reportlib import pipeline_settings
from reportlib import prompt_loader
from reportlib import row_grouper
from reportlib import staff_encoder
from reportlib import synthesizer
from reportlib import report_errors
from reportlib import run_log


DEPARTMENT_PROMPT_NAME = "department_report.txt"
SYNTHESIS_PROMPT_NAME = "synthesis_report.txt"


#============================================
@dataclass(frozen=True)
class ReportRunResult:
	output_path: str
	group_count: int
	failed_group_count: int
	placeholder_found: bool
	synthesis_fallback_used: bool


#============================================
def parse_args() -> argparse.Namespace:
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(
		description="Build the sales activity report document from the activity workbook."
	)
	parser.add_argument(
		"--settings",
		default="settings.yaml",
		help="YAML settings path for report defaults.",
	)
	parser.add_argument(
		"--report-date",
		default="",
		help="Report date YYYY-MM-DD (defaults to settings report.date, then today).",
	)
	return parser.parse_args()


#============================================
def check_time_budget(started: float, budget_seconds: float, stage: str, clock=time.monotonic) -> None:
	"""
	Raise TimeBudgetExceededError when the run is over its wall-clock budget.
	"""
	elapsed = clock() - started
	if elapsed > budget_seconds:
		raise report_errors.TimeBudgetExceededError(stage, elapsed, budget_seconds)


#============================================
def describe_period(report_date: date, period_days: int) -> str:
	"""
	Human-readable period label for prompts.
	"""
	if period_days <= 0:
		return f"all activity up to {report_date.isoformat()}"
	if period_days == 1:
		return report_date.isoformat()
	start = report_date - timedelta(days=period_days - 1)
	return f"{start.isoformat()} to {report_date.isoformat()}"


#============================================
def build_department_prompt(
	house_template: str,
	group: row_grouper.DepartmentGroup,
	config: pipeline_settings.ReportConfig,
) -> str:
	"""
	Compose template, stage instructions and the encoded data block for one department.
	"""
	template = prompt_loader.load_prompt(DEPARTMENT_PROMPT_NAME)
	staff_data = staff_encoder.encode_department_block(group, config.delimiter)
	return prompt_loader.render_prompt(template, {
		"house_template": house_template,
		"department_name": group.department,
		"period_label": describe_period(config.report_date, config.period_days),
		"summary_tag": config.summary_tag,
		"staff_data": staff_data,
	})


#============================================
def build_synthesis_prompt(
	house_template: str,
	summary_block: str,
	config: pipeline_settings.ReportConfig,
) -> str:
	"""
	Compose the second-stage prompt over the aggregated department summaries.
	"""
	template = prompt_loader.load_prompt(SYNTHESIS_PROMPT_NAME)
	summaries = summary_block or "(no department analyses were returned)"
	return prompt_loader.render_prompt(template, {
		"house_template": house_template,
		"report_title": config.report_title,
		"report_date": config.report_date.isoformat(),
		"detail_placeholder": config.detail_placeholder,
		"department_summaries": summaries,
	})


#============================================
def run_report(
	config: pipeline_settings.ReportConfig,
	generate_fn,
	report_log,
	clock=time.monotonic,
) -> ReportRunResult:
	"""
	Run the full report pipeline once.

	Args:
		config: validated ReportConfig with report_date set.
		generate_fn: Callable(prompt_text) -> str, usually GenerationClient.generate.
		report_log: callable logger, usually a RunLog.
		clock: monotonic clock for the time budget.

	Returns:
		ReportRunResult describing the written document.
	"""
	started = clock()
	report_log(f"Reading workbook {config.input_path}")
	master, rows = activity_table.load_workbook_tables(
		config.input_path,
		config.staff_sheet,
		config.activity_sheet,
		config.header_rows,
	)
	rows = activity_table.filter_rows_by_period(rows, config.report_date, config.period_days)
	if not rows:
		raise report_errors.InputValidationError(
			f"No activity rows in period {describe_period(config.report_date, config.period_days)}"
		)
	report_log(f"Loaded {len(master)} staff and {len(rows)} activity rows")

	house_template = prompt_loader.load_template_document(config.template_path, config.footer_marker)

	grouping = row_grouper.group_rows(
		rows,
		master,
		order_mode=config.order_mode,
		unknown_policy=config.unknown_staff_policy,
		unknown_label=config.unknown_label,
		include_inactive_staff=config.include_inactive_staff,
		logger=report_log,
	)
	groups = grouping.groups
	if not groups:
		raise report_errors.InputValidationError("No department groups left after grouping")
	report_log(f"Grouped into {len(groups)} departments: {', '.join(group.department for group in groups)}")

	check_time_budget(started, config.time_budget_seconds, "department generation", clock)
	requests_list = [
		generation_client.GenerationRequest(
			group_key=group.department,
			prompt_text=build_department_prompt(house_template, group, config),
		)
		for group in groups
	]
	outcomes = generation_client.dispatch_requests(
		generate_fn,
		requests_list,
		mode=config.generation_mode,
		max_workers=config.max_workers,
		logger=report_log,
		before_each=lambda key: check_time_budget(
			started, config.time_budget_seconds, f"generation for {key}", clock
		),
	)
	check_time_budget(started, config.time_budget_seconds, "synthesis", clock)

	sections = synthesizer.build_section_results(groups, outcomes, config.summary_tag, report_log)
	failed_count = sum(1 for section in sections if section.failed)
	report_log(f"Department sections ready: {len(sections) - failed_count} ok, {failed_count} failed")

	detail_text = synthesizer.build_detail_text(sections)
	summary_block = synthesizer.build_summary_block(sections)
	synthesis = synthesizer.synthesize_report(
		generate_fn,
		build_synthesis_prompt(house_template, summary_block, config),
		detail_text,
		config.detail_placeholder,
		f"{config.report_title} ({config.report_date.isoformat()})",
		logger=report_log,
	)

	blocks = markdown_renderer.render_markdown(synthesis.document_text, config.indent_unit, logger=report_log)
	output_name = docx_writer.build_output_name(config.output_prefix, config.report_date)
	output_path = docx_writer.write_document(blocks, config.output_dir, output_name, logger=report_log)
	report_log(f"Wrote {output_path} ({len(blocks)} blocks)")
	return ReportRunResult(
		output_path=output_path,
		group_count=len(groups),
		failed_group_count=failed_count,
		placeholder_found=synthesis.placeholder_found,
		synthesis_fallback_used=synthesis.fallback_used,
	)


#============================================
def main() -> int:
	"""
	Load settings, run the report, and always write the run log.
	"""
	args = parse_args()
	started_at = datetime.now()
	report_log = run_log.RunLog()
	log_dir = pipeline_settings.ReportConfig().log_dir
	exit_code = 0
	try:
		settings, settings_path = pipeline_settings.load_settings(args.settings)
		report_log(f"Using settings file: {settings_path}")
		config = pipeline_settings.build_report_config(settings, args.report_date)
		log_dir = config.log_dir or log_dir
		config = pipeline_settings.with_report_date(config, started_at.date())
		pipeline_settings.validate_report_config(config)
		api_key = pipeline_settings.resolve_api_key(config)
		report_log.add_secret(api_key)
		client = generation_client.GenerationClient(config, api_key, logger=report_log)
		report_log(
			f"Report date {config.report_date.isoformat()}, mode {config.generation_mode}, "
			+ f"model {config.api_model}"
		)
		result = run_report(config, client.generate, report_log)
		if not result.placeholder_found:
			report_log("WARNING: department detail is missing from the document (placeholder not found)")
		report_log(f"Report complete: {result.output_path}")
	except report_errors.ConfigurationError as error:
		report_log.error(f"Configuration error: {error}")
		exit_code = 2
	except report_errors.ReportPipelineError as error:
		report_log.error(f"Report failed: {error}")
		exit_code = 1
	except Exception as error:
		# unexpected failures still reach the run log before it is written
		report_log.error(f"Unexpected error: {type(error).__name__}: {error}")
		exit_code = 1
	finally:
		try:
			log_path = report_log.write(log_dir, started_at)
			print(f"Run log: {log_path}", file=sys.stderr)
		except OSError as error:
			message = f"Could not write run log to {log_dir}: {error}"
			print(run_log.redact_secrets(message, report_log.secrets), file=sys.stderr)
	return exit_code


if __name__ == "__main__":
	sys.exit(main())
