"""Second-stage synthesis: section results, summary aggregation, and detail splice.

The per-department responses are reduced to an ordered list of
SectionResult values. The synthesis model writes the document framing and
emits the detail placeholder token once; the token is then replaced with
the joined detail sections.
"""

# Standard Library
from dataclasses import dataclass

from reportlib import generation_client
from reportlib import report_errors
from reportlib import response_splitter
from reportlib import row_grouper


#============================================
@dataclass(frozen=True)
class SectionResult:
	department: str
	detail_text: str
	summary_text: str = ""
	failed: bool = False


#============================================
@dataclass(frozen=True)
class SynthesisResult:
	shell_text: str
	document_text: str
	placeholder_found: bool
	fallback_used: bool = False


#============================================
def _log(logger, msg: str) -> None:
	if logger is not None:
		logger(msg)


#============================================
def build_error_section_text(department: str, reason: str) -> str:
	"""
	Visible stand-in for a department whose generation failed.
	"""
	return f"**[Generation failed for {department}: {reason}]**"


#============================================
def build_section_results(
	groups: list[row_grouper.DepartmentGroup],
	outcomes: list[generation_client.GenerationOutcome],
	sentinel_tag: str,
	logger=None,
) -> list[SectionResult]:
	"""
	Pair outcomes with groups by position and split each response.
	"""
	if len(groups) != len(outcomes):
		raise ValueError(f"outcome count {len(outcomes)} does not match group count {len(groups)}")
	sections = []
	for group, outcome in zip(groups, outcomes):
		if not outcome.ok:
			reason = generation_client.describe_request_error(outcome.error)
			sections.append(
				SectionResult(
					department=group.department,
					detail_text=build_error_section_text(group.department, reason),
					failed=True,
				)
			)
			continue
		split = response_splitter.split_response(outcome.text, sentinel_tag)
		if not split.after:
			_log(logger, f"No summary block returned for {group.department!r}")
		sections.append(
			SectionResult(
				department=group.department,
				detail_text=split.before,
				summary_text=split.after,
			)
		)
	return sections


#============================================
def build_detail_text(sections: list[SectionResult]) -> str:
	"""
	Reduce ordered sections into the Markdown detail body.
	"""
	parts = []
	for section in sections:
		parts.append(f"### {section.department}\n\n{section.detail_text}".rstrip())
	return "\n\n".join(parts)


#============================================
def build_summary_block(sections: list[SectionResult]) -> str:
	"""
	Concatenate department summaries; empty summaries contribute nothing.
	"""
	parts = []
	for section in sections:
		if not section.summary_text:
			continue
		parts.append(f"[{section.department}]\n{section.summary_text}")
	return "\n\n".join(parts)


#============================================
def splice_detail(shell_text: str, placeholder: str, detail_text: str, logger=None) -> SynthesisResult:
	"""
	Replace the first placeholder occurrence with the detail text.

	A missing placeholder leaves the shell unchanged and logs a warning,
	since the detail content then never reaches the document.
	"""
	count = shell_text.count(placeholder)
	if count == 0:
		_log(
			logger,
			f"WARNING: placeholder {placeholder} missing from synthesis output; "
			+ "department detail was not spliced into the document",
		)
		return SynthesisResult(shell_text=shell_text, document_text=shell_text, placeholder_found=False)
	if count > 1:
		_log(logger, f"WARNING: placeholder {placeholder} appears {count} times; only the first is replaced")
	document_text = shell_text.replace(placeholder, detail_text, 1)
	return SynthesisResult(shell_text=shell_text, document_text=document_text, placeholder_found=True)


#============================================
def build_fallback_shell(title: str, placeholder: str) -> str:
	return f"# {title}\n\n{placeholder}\n"


#============================================
def synthesize_report(
	generate_fn,
	prompt_text: str,
	detail_text: str,
	placeholder: str,
	fallback_title: str,
	logger=None,
) -> SynthesisResult:
	"""
	Run the synthesis call and splice the detail content into its output.

	Args:
		generate_fn: Callable(prompt_text) -> str.
		prompt_text: fully rendered synthesis prompt.
		detail_text: joined department detail sections.
		placeholder: literal token the model was told to emit.
		fallback_title: title for the minimal shell used if synthesis fails.
		logger: optional callable(str).

	Returns:
		SynthesisResult with the final Markdown document text.
	"""
	try:
		shell_text = generate_fn(prompt_text)
	except report_errors.GenerationRequestError as error:
		_log(
			logger,
			"ERROR: synthesis generation failed "
			+ f"({generation_client.describe_request_error(error)}); "
			+ "using minimal document shell",
		)
		shell_text = build_fallback_shell(fallback_title, placeholder)
		result = splice_detail(shell_text, placeholder, detail_text, logger)
		return SynthesisResult(
			shell_text=result.shell_text,
			document_text=result.document_text,
			placeholder_found=result.placeholder_found,
			fallback_used=True,
		)
	return splice_detail(shell_text, placeholder, detail_text, logger)
