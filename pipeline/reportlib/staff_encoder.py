# Standard Library
import csv
import io

from reportlib import row_grouper


FIELD_NAMES = ("date", "customer", "purpose", "result", "external_attendee")
NO_ACTIVITY_LINE = "(no activity recorded)"


#============================================
def encode_delimited_line(fields: list[str], delimiter: str = ",") -> str:
	"""
	Encode one line with minimal quoting: fields holding the delimiter,
	a quote, or a newline are quoted and embedded quotes doubled.
	"""
	# carriage returns folded into \n so the lineterminator check quotes them
	clean = [str(value).replace("\r\n", "\n").replace("\r", "\n") for value in fields]
	buffer = io.StringIO()
	writer = csv.writer(buffer, delimiter=delimiter, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
	writer.writerow(clean)
	return buffer.getvalue().rstrip("\n")


#============================================
def encode_staff_block(entry: row_grouper.StaffEntry, delimiter: str = ",") -> str:
	"""
	Render one staff member's rows as a header line plus delimited lines.
	"""
	record = entry.record
	lines = [f"Staff: {record.name} / Department: {record.department}"]
	if not entry.has_activity:
		lines.append(NO_ACTIVITY_LINE)
		return "\n".join(lines)
	lines.append(encode_delimited_line(list(FIELD_NAMES), delimiter))
	for row in entry.rows:
		fields = [
			row.date.isoformat(),
			row.customer_name,
			row.purpose,
			row.result_text,
			row.external_attendee,
		]
		lines.append(encode_delimited_line(fields, delimiter))
	return "\n".join(lines)


#============================================
def encode_department_block(group: row_grouper.DepartmentGroup, delimiter: str = ",") -> str:
	"""
	Join all staff blocks of one department into the model's data block.
	"""
	blocks = [f"Department: {group.department}"]
	for entry in group.entries:
		blocks.append(encode_staff_block(entry, delimiter))
	return "\n\n".join(blocks)
