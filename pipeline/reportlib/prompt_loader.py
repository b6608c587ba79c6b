# Standard Library
import os

from reportlib import report_errors


_PROMPT_CACHE = {}


#============================================
def _prompt_root() -> str:
	"""
	Return the prompts/ directory inside this package.
	"""
	module_dir = os.path.dirname(os.path.abspath(__file__))
	return os.path.join(module_dir, "prompts")


#============================================
def load_prompt(prompt_name: str) -> str:
	"""
	Load a stage prompt from reportlib/prompts/.
	"""
	if not prompt_name:
		raise ValueError("prompt_name is required")
	path = os.path.join(_prompt_root(), prompt_name)
	if path in _PROMPT_CACHE:
		return _PROMPT_CACHE[path]
	if not os.path.exists(path):
		raise FileNotFoundError(f"Prompt file not found: {path}")
	with open(path, "r", encoding="utf-8") as handle:
		text = handle.read()
	_PROMPT_CACHE[path] = text
	return text


#============================================
def strip_footer_section(text: str, footer_marker: str) -> str:
	"""
	Drop everything from the first line containing the footer marker.
	"""
	if not footer_marker:
		return text.strip()
	kept = []
	for line in text.splitlines():
		if footer_marker in line:
			break
		kept.append(line)
	return "\n".join(kept).strip()


#============================================
def load_template_document(path: str, footer_marker: str) -> str:
	"""
	Read the house-style template document and strip its maintenance footer.
	"""
	try:
		with open(path, "r", encoding="utf-8") as handle:
			text = handle.read()
	except (OSError, UnicodeDecodeError) as error:
		raise report_errors.ExternalReadError(f"Prompt template document unreadable: {path}") from error
	template = strip_footer_section(text, footer_marker)
	if not template:
		raise report_errors.ExternalReadError(f"Prompt template document is empty: {path}")
	return template


#============================================
def render_prompt(template: str, values: dict[str, str]) -> str:
	"""
	Replace {{token}} placeholders with supplied values.
	"""
	if not template:
		return ""
	rendered = template
	for key, value in values.items():
		token = "{{" + key + "}}"
		replacement = value if value is not None else ""
		rendered = rendered.replace(token, replacement)
	return rendered
