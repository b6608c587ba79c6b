"""Read the staff master and activity sheets into named-field records.

Column layout of the staff master sheet:
	index | staff name | department | exclusion flag (optional)

Column layout of the activity sheet:
	date | staff name | customer | purpose | result text | external attendee
"""

# Standard Library
import os
import zipfile
from dataclasses import dataclass
from datetime import date
from datetime import datetime
from datetime import timedelta

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from reportlib import report_errors


DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d")
EXCLUSION_VALUES = {"1", "true", "yes", "y", "x", "exclude", "excluded", "除外"}


#============================================
@dataclass(frozen=True)
class StaffRecord:
	name: str
	department: str
	index: int = 0
	excluded: bool = False


#============================================
@dataclass(frozen=True)
class ActivityRow:
	date: date
	staff_name: str
	customer_name: str
	purpose: str
	result_text: str
	external_attendee: str


#============================================
def cell_text(value) -> str:
	"""
	Normalize one cell value to stripped text.
	"""
	if value is None:
		return ""
	if isinstance(value, float) and value.is_integer():
		return str(int(value))
	return str(value).strip()


#============================================
def parse_cell_date(value, sheet_name: str, row_number: int) -> date:
	"""
	Parse a date cell; raise InputValidationError naming the sheet row when malformed.
	"""
	if isinstance(value, datetime):
		return value.date()
	if isinstance(value, date):
		return value
	text = cell_text(value)
	# datetime text such as 2026-10-01 09:30:00 keeps only the date part
	head = text.split(" ")[0].split("T")[0]
	for date_format in DATE_FORMATS:
		try:
			return datetime.strptime(head, date_format).date()
		except ValueError:
			continue
	raise report_errors.InputValidationError(
		f"Malformed date in sheet {sheet_name!r} row {row_number}: {text!r}"
	)


#============================================
def is_excluded(value) -> bool:
	return cell_text(value).lower() in EXCLUSION_VALUES


#============================================
def _padded(values: tuple, width: int) -> list:
	row = list(values[:width])
	while len(row) < width:
		row.append(None)
	return row


#============================================
def _get_sheet(workbook, sheet_name: str):
	if sheet_name not in workbook.sheetnames:
		raise report_errors.ConfigurationError(
			f"Sheet {sheet_name!r} not found; available sheets: {', '.join(workbook.sheetnames)}"
		)
	return workbook[sheet_name]


#============================================
def read_staff_master(workbook, sheet_name: str, header_rows: int = 1) -> list[StaffRecord]:
	"""
	Read the staff master sheet in sheet order.
	"""
	sheet = _get_sheet(workbook, sheet_name)
	records = []
	start_row = header_rows + 1
	for row_number, values in enumerate(sheet.iter_rows(min_row=start_row, values_only=True), start=start_row):
		index_value, name_value, department_value, exclude_value = _padded(values, 4)
		name = cell_text(name_value)
		if not name:
			continue
		index_text = cell_text(index_value)
		try:
			index = int(index_text) if index_text else row_number
		except ValueError:
			index = row_number
		records.append(
			StaffRecord(
				name=name,
				department=cell_text(department_value),
				index=index,
				excluded=is_excluded(exclude_value),
			)
		)
	return records


#============================================
def read_activity_rows(workbook, sheet_name: str, header_rows: int = 1) -> list[ActivityRow]:
	"""
	Read the activity sheet in sheet order, skipping fully blank rows.
	"""
	sheet = _get_sheet(workbook, sheet_name)
	rows = []
	start_row = header_rows + 1
	for row_number, values in enumerate(sheet.iter_rows(min_row=start_row, values_only=True), start=start_row):
		padded = _padded(values, 6)
		if all(cell_text(value) == "" for value in padded):
			continue
		date_value, staff_value, customer_value, purpose_value, result_value, attendee_value = padded
		staff_name = cell_text(staff_value)
		if not staff_name:
			raise report_errors.InputValidationError(
				f"Missing staff name in sheet {sheet_name!r} row {row_number}"
			)
		rows.append(
			ActivityRow(
				date=parse_cell_date(date_value, sheet_name, row_number),
				staff_name=staff_name,
				customer_name=cell_text(customer_value),
				purpose=cell_text(purpose_value),
				result_text=cell_text(result_value),
				external_attendee=cell_text(attendee_value),
			)
		)
	return rows


#============================================
def load_workbook_tables(
	path: str,
	staff_sheet: str,
	activity_sheet: str,
	header_rows: int = 1,
) -> tuple[list[StaffRecord], list[ActivityRow]]:
	"""
	Open the workbook once and read both tables.
	"""
	if not os.path.isfile(path):
		raise report_errors.ConfigurationError(f"Input workbook not found: {path}")
	try:
		workbook = openpyxl.load_workbook(path, read_only=True, data_only=True)
	except (OSError, KeyError, ValueError, zipfile.BadZipFile, InvalidFileException) as error:
		raise report_errors.ConfigurationError(f"Input workbook could not be opened: {path}") from error
	try:
		master = read_staff_master(workbook, staff_sheet, header_rows)
		rows = read_activity_rows(workbook, activity_sheet, header_rows)
	finally:
		workbook.close()
	if not master:
		raise report_errors.InputValidationError(f"Staff master sheet {staff_sheet!r} has no data rows")
	if not rows:
		raise report_errors.InputValidationError(f"Activity sheet {activity_sheet!r} has no data rows")
	return master, rows


#============================================
def filter_rows_by_period(rows: list[ActivityRow], report_date: date, period_days: int) -> list[ActivityRow]:
	"""
	Keep rows dated within the period ending on report_date; 0 keeps all rows.
	"""
	if period_days <= 0:
		return list(rows)
	window_start = report_date - timedelta(days=period_days)
	return [row for row in rows if window_start < row.date <= report_date]
