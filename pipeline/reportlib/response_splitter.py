# Standard Library
from dataclasses import dataclass


#============================================
@dataclass(frozen=True)
class SplitResult:
	before: str
	after: str


#============================================
def split_response(raw_text: str, sentinel_tag: str) -> SplitResult:
	"""
	Split at the first sentinel tag into detail (before) and summary (after).

	An absent tag returns the whole text as detail and an empty summary.
	"""
	text = raw_text or ""
	if not sentinel_tag:
		return SplitResult(before=text.strip(), after="")
	before, found, after = text.partition(sentinel_tag)
	if not found:
		return SplitResult(before=text.strip(), after="")
	return SplitResult(before=before.strip(), after=after.strip())
