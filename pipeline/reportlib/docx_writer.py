"""Write rendered document blocks to a .docx file.

Heading levels 1-3 map to Word Heading 1-3; level 4 becomes a bold
Normal paragraph. Bullets use List Bullet at every level, with the left
indent growing per level, so the glyph stays the same.
"""

# Standard Library
import os
from datetime import date

from docx import Document
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Inches
from docx.shared import Pt

from reportlib import markdown_renderer
from reportlib import report_errors


MAX_WORD_HEADING_LEVEL = 3
BULLET_INDENT_INCHES = 0.25


#============================================
def _log(logger, msg: str) -> None:
	if logger is not None:
		logger(msg)


#============================================
def build_output_name(prefix: str, report_date: date) -> str:
	"""
	Derive the artifact name <prefix>_<YYYY-MM-DD>.
	"""
	return f"{prefix}_{report_date.isoformat()}"


#============================================
def add_text_runs(paragraph, block: markdown_renderer.DocumentBlock) -> None:
	"""
	Add runs for plain text and bold spans of one block.
	"""
	text = block.text
	if block.bold:
		run = paragraph.add_run(text)
		run.bold = True
		return
	cursor = 0
	for start, end in sorted(block.bold_spans):
		if start > cursor:
			paragraph.add_run(text[cursor:start])
		bold_run = paragraph.add_run(text[start:end])
		bold_run.bold = True
		cursor = max(cursor, end)
	if cursor < len(text):
		paragraph.add_run(text[cursor:])


#============================================
def add_horizontal_rule(document) -> None:
	"""
	Add an empty paragraph with a bottom border.
	"""
	paragraph = document.add_paragraph()
	p_pr = paragraph._p.get_or_add_pPr()
	borders = OxmlElement("w:pBdr")
	bottom = OxmlElement("w:bottom")
	bottom.set(qn("w:val"), "single")
	bottom.set(qn("w:sz"), "6")
	bottom.set(qn("w:space"), "1")
	bottom.set(qn("w:color"), "auto")
	borders.append(bottom)
	p_pr.append(borders)


#============================================
def add_block(document, block: markdown_renderer.DocumentBlock) -> None:
	"""
	Append one block to a python-docx Document.
	"""
	if block.kind == "empty":
		document.add_paragraph("")
		return
	if block.kind == "rule":
		add_horizontal_rule(document)
		return
	if block.kind == "heading":
		if block.level <= MAX_WORD_HEADING_LEVEL:
			paragraph = document.add_heading("", level=block.level)
		else:
			paragraph = document.add_paragraph("")
		add_text_runs(paragraph, block)
		return
	if block.kind == "bullet":
		paragraph = document.add_paragraph("", style="List Bullet")
		paragraph.paragraph_format.left_indent = Inches(BULLET_INDENT_INCHES * (block.level + 1))
		add_text_runs(paragraph, block)
		return
	paragraph = document.add_paragraph("")
	add_text_runs(paragraph, block)


#============================================
def build_document(blocks: list[markdown_renderer.DocumentBlock], title: str = ""):
	"""
	Build an in-memory python-docx Document from blocks.
	"""
	document = Document()
	if title:
		document.core_properties.title = title
	normal = document.styles["Normal"]
	normal.font.size = Pt(10.5)
	for block in blocks:
		add_block(document, block)
	return document


#============================================
def write_document(
	blocks: list[markdown_renderer.DocumentBlock],
	output_dir: str,
	output_name: str,
	logger=None,
) -> str:
	"""
	Write blocks to <output_dir>/<output_name>.docx, superseding any previous file.

	Returns:
		Path of the written document.
	"""
	path = os.path.join(output_dir, f"{output_name}.docx")
	document = build_document(blocks, title=output_name)
	try:
		os.makedirs(output_dir, exist_ok=True)
		if os.path.exists(path):
			os.remove(path)
			_log(logger, f"Removed previous artifact {path}")
		document.save(path)
	except OSError as error:
		raise report_errors.OutputWriteError(f"Could not write output document {path}: {error}") from error
	return path
