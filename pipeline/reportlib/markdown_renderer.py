"""Line-oriented renderer for the constrained Markdown the model emits.

Supported per line: blank line, --- rule, # to #### headings, - or *
bullets with indentation levels, plain paragraphs, and **bold** spans.
"""

# Standard Library
import re
from dataclasses import dataclass
from dataclasses import field


BOLD_RE = re.compile(r"\*\*(.+?)\*\*")
HEADING_RE = re.compile(r"^(#{1,4}) (.*)$")
BULLET_RE = re.compile(r"^([ \t]*)[-*] (.*)$")
RULE_RE = re.compile(r"^\s*---\s*$")
BOLD_DELIMITER_WIDTH = 2


#============================================
@dataclass
class DocumentBlock:
	kind: str
	text: str = ""
	level: int = 0
	bold_spans: list[tuple[int, int]] = field(default_factory=list)
	bold: bool = False


#============================================
def _log(logger, msg: str) -> None:
	if logger is not None:
		logger(msg)


#============================================
def parse_inline_bold(text: str) -> tuple[str, list[tuple[int, int]]]:
	"""
	Remove **...** delimiters and return plain text with bold span offsets.

	Matches are handled left to right; each span start is shifted back by
	the delimiter characters already removed before it.
	"""
	pieces = []
	spans = []
	removed = 0
	cursor = 0
	for match in BOLD_RE.finditer(text):
		inner = match.group(1)
		pieces.append(text[cursor:match.start()])
		start = match.start() - removed
		end = start + len(inner)
		pieces.append(inner)
		spans.append((start, end))
		removed += 2 * BOLD_DELIMITER_WIDTH
		cursor = match.end()
	pieces.append(text[cursor:])
	return "".join(pieces), spans


#============================================
def bullet_level(indent_text: str, indent_unit: int = 2) -> int:
	"""
	Map leading whitespace width to a nesting level.
	"""
	width = len(indent_text.expandtabs(indent_unit))
	return width // indent_unit


#============================================
def render_line(line: str, indent_unit: int = 2) -> DocumentBlock:
	"""
	Render one Markdown line into a block.
	"""
	if not line.strip():
		return DocumentBlock(kind="empty")
	if RULE_RE.match(line):
		return DocumentBlock(kind="rule")
	heading_match = HEADING_RE.match(line)
	if heading_match:
		# headings are bold as a whole, inline markers are dropped
		plain, _spans = parse_inline_bold(heading_match.group(2).strip())
		return DocumentBlock(
			kind="heading",
			text=plain,
			level=len(heading_match.group(1)),
			bold=True,
		)
	bullet_match = BULLET_RE.match(line)
	if bullet_match:
		plain, spans = parse_inline_bold(bullet_match.group(2).strip())
		return DocumentBlock(
			kind="bullet",
			text=plain,
			level=bullet_level(bullet_match.group(1), indent_unit),
			bold_spans=spans,
		)
	plain, spans = parse_inline_bold(line)
	return DocumentBlock(kind="paragraph", text=plain, bold_spans=spans)


#============================================
def render_markdown(text: str, indent_unit: int = 2, logger=None) -> list[DocumentBlock]:
	"""
	Render Markdown text into an ordered list of document blocks.

	A line that fails to parse is kept as a plain paragraph so the
	document stays complete.
	"""
	blocks = []
	for line_number, raw_line in enumerate((text or "").splitlines(), start=1):
		line = raw_line.rstrip()
		try:
			blocks.append(render_line(line, indent_unit))
		except (ValueError, TypeError, IndexError) as error:
			_log(logger, f"WARNING: markdown line {line_number} kept unstyled: {error}")
			blocks.append(DocumentBlock(kind="paragraph", text=line))
	return blocks
