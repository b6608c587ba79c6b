"""Tests for pipeline/reportlib/activity_table.py."""

# Standard Library
import os
import sys
from datetime import date
from datetime import datetime

import openpyxl
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "pipeline"))

from reportlib import activity_table
from reportlib.report_errors import ConfigurationError
from reportlib.report_errors import InputValidationError


STAFF_HEADER = ["No", "Staff", "Department", "Exclude"]
ACTIVITY_HEADER = ["Date", "Staff", "Customer", "Purpose", "Result", "External attendee"]


#============================================
def write_workbook(path, staff_rows: list, activity_rows: list) -> str:
	"""
	Write a two-sheet workbook for reader tests.
	"""
	workbook = openpyxl.Workbook()
	staff_sheet = workbook.active
	staff_sheet.title = "Staff"
	staff_sheet.append(STAFF_HEADER)
	for row in staff_rows:
		staff_sheet.append(row)
	activity_sheet = workbook.create_sheet("Activity")
	activity_sheet.append(ACTIVITY_HEADER)
	for row in activity_rows:
		activity_sheet.append(row)
	workbook.save(str(path))
	return str(path)


#============================================
def test_load_workbook_tables_reads_named_fields(tmp_path) -> None:
	"""
	Rows should be read into named-field records in sheet order.
	"""
	path = write_workbook(
		tmp_path / "book.xlsx",
		[[1, "Alice", "Sales", None], [2, "Bob", "Support", "yes"]],
		[
			[datetime(2026, 10, 16, 9, 0), "Alice", "Acme, Inc.", "Visit", "Quote sent", "Mr. Tanaka"],
			["2026/10/15", "Bob", "Globex", "Call", "Follow-up", None],
		],
	)
	master, rows = activity_table.load_workbook_tables(path, "Staff", "Activity", 1)
	assert [record.name for record in master] == ["Alice", "Bob"]
	assert master[0].department == "Sales"
	assert master[0].excluded is False
	assert master[1].excluded is True
	assert rows[0].date == date(2026, 10, 16)
	assert rows[0].customer_name == "Acme, Inc."
	assert rows[0].external_attendee == "Mr. Tanaka"
	assert rows[1].date == date(2026, 10, 15)
	assert rows[1].external_attendee == ""


#============================================
def test_blank_rows_are_skipped(tmp_path) -> None:
	"""
	Fully blank activity rows and nameless master rows are ignored.
	"""
	path = write_workbook(
		tmp_path / "book.xlsx",
		[[1, "Alice", "Sales", None], [2, None, "Sales", None]],
		[["2026-10-16", "Alice", "Acme", "Visit", "ok", ""], [None, None, None, None, None, None]],
	)
	master, rows = activity_table.load_workbook_tables(path, "Staff", "Activity", 1)
	assert len(master) == 1
	assert len(rows) == 1


#============================================
def test_malformed_date_raises_with_row_number(tmp_path) -> None:
	"""
	A malformed date should raise InputValidationError naming the row.
	"""
	path = write_workbook(
		tmp_path / "book.xlsx",
		[[1, "Alice", "Sales", None]],
		[["2026-10-16", "Alice", "Acme", "Visit", "ok", ""], ["next tuesday", "Alice", "Acme", "Visit", "ok", ""]],
	)
	with pytest.raises(InputValidationError, match="row 3"):
		activity_table.load_workbook_tables(path, "Staff", "Activity", 1)


#============================================
def test_no_activity_rows_raises(tmp_path) -> None:
	"""
	An activity sheet with only a header is an input validation error.
	"""
	path = write_workbook(tmp_path / "book.xlsx", [[1, "Alice", "Sales", None]], [])
	with pytest.raises(InputValidationError):
		activity_table.load_workbook_tables(path, "Staff", "Activity", 1)


#============================================
def test_missing_sheet_raises(tmp_path) -> None:
	"""
	A missing sheet name is a configuration error.
	"""
	path = write_workbook(tmp_path / "book.xlsx", [[1, "Alice", "Sales", None]], [])
	with pytest.raises(ConfigurationError):
		activity_table.load_workbook_tables(path, "Staff", "Visits", 1)


#============================================
def test_missing_workbook_raises(tmp_path) -> None:
	"""
	A missing workbook file is a configuration error.
	"""
	with pytest.raises(ConfigurationError):
		activity_table.load_workbook_tables(str(tmp_path / "missing.xlsx"), "Staff", "Activity", 1)


#============================================
def test_filter_rows_by_period() -> None:
	"""
	period_days keeps the trailing window ending on the report date.
	"""
	rows = [
		activity_table.ActivityRow(date(2026, 10, day), "Alice", "Acme", "Visit", "ok", "")
		for day in (13, 14, 15, 16, 17)
	]
	kept = activity_table.filter_rows_by_period(rows, date(2026, 10, 16), 2)
	assert [row.date.day for row in kept] == [15, 16]
	assert len(activity_table.filter_rows_by_period(rows, date(2026, 10, 16), 0)) == 5
