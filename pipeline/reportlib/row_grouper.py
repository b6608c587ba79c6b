"""Partition activity rows into department groups in master order.

Placement rules:
- staff flagged as excluded in the master are left out with their rows
- rows for staff missing from the master are bucketed under an unknown
  department (appended last) or dropped, by policy; both cases are counted
- master staff without rows get an explicit no-activity entry
"""

# Standard Library
from dataclasses import dataclass
from dataclasses import field

from reportlib import activity_table


#============================================
@dataclass
class StaffEntry:
	record: activity_table.StaffRecord
	rows: list[activity_table.ActivityRow] = field(default_factory=list)

	@property
	def has_activity(self) -> bool:
		return len(self.rows) > 0


#============================================
@dataclass
class DepartmentGroup:
	department: str
	entries: list[StaffEntry] = field(default_factory=list)

	@property
	def row_count(self) -> int:
		return sum(len(entry.rows) for entry in self.entries)


#============================================
@dataclass
class GroupingResult:
	groups: list[DepartmentGroup]
	unknown_staff_names: list[str] = field(default_factory=list)
	unknown_row_count: int = 0
	dropped_row_count: int = 0
	excluded_row_count: int = 0


#============================================
def _log(logger, msg: str) -> None:
	if logger is not None:
		logger(msg)


#============================================
def _department_order(master: list[activity_table.StaffRecord], unknown_label: str) -> list[str]:
	"""
	Return departments in first-seen master order.
	"""
	order = []
	seen = set()
	for record in master:
		department = record.department or unknown_label
		if department in seen:
			continue
		seen.add(department)
		order.append(department)
	return order


#============================================
def group_rows(
	rows: list[activity_table.ActivityRow],
	master: list[activity_table.StaffRecord],
	order_mode: str = "master",
	unknown_policy: str = "bucket",
	unknown_label: str = "Unknown",
	include_inactive_staff: bool = True,
	logger=None,
) -> GroupingResult:
	"""
	Build ordered department groups from flat rows and the staff master.

	Args:
		rows: activity rows in sheet order.
		master: staff master records in sheet order.
		order_mode: "master" keeps master order; "alphabetical" sorts
			departments and staff by name.
		unknown_policy: "bucket" or "drop" for rows of staff missing from master.
		unknown_label: department name used for bucketed unknown staff.
		include_inactive_staff: emit a no-activity entry for staff without rows.
		logger: optional callable(str) for progress messages.

	Returns:
		GroupingResult with groups and placement counts.
	"""
	if order_mode not in ("master", "alphabetical"):
		raise ValueError(f"order_mode must be master or alphabetical; got {order_mode!r}")
	if unknown_policy not in ("bucket", "drop"):
		raise ValueError(f"unknown_policy must be bucket or drop; got {unknown_policy!r}")

	# name lookup built once; first master entry wins on duplicate names
	lookup: dict[str, activity_table.StaffRecord] = {}
	for record in master:
		if record.name not in lookup:
			lookup[record.name] = record

	rows_by_staff: dict[str, list[activity_table.ActivityRow]] = {}
	unknown_names: list[str] = []
	result = GroupingResult(groups=[])
	for row in rows:
		name = row.staff_name.strip()
		record = lookup.get(name)
		if record is None:
			if name not in unknown_names:
				unknown_names.append(name)
			result.unknown_row_count += 1
			if unknown_policy == "drop":
				result.dropped_row_count += 1
				continue
		elif record.excluded:
			result.excluded_row_count += 1
			continue
		rows_by_staff.setdefault(name, []).append(row)
	result.unknown_staff_names = unknown_names

	departments = _department_order(master, unknown_label)
	staff_by_department: dict[str, list[activity_table.StaffRecord]] = {name: [] for name in departments}
	for record in lookup.values():
		if record.excluded:
			continue
		staff_by_department[record.department or unknown_label].append(record)

	if order_mode == "alphabetical":
		departments = sorted(departments)
		for records in staff_by_department.values():
			records.sort(key=lambda item: item.name)

	for department in departments:
		group = DepartmentGroup(department=department)
		for record in staff_by_department[department]:
			staff_rows = rows_by_staff.get(record.name, [])
			if (not staff_rows) and (not include_inactive_staff):
				continue
			group.entries.append(StaffEntry(record=record, rows=staff_rows))
		if group.entries:
			result.groups.append(group)

	if unknown_names and unknown_policy == "bucket":
		unknown_group = _find_group(result.groups, unknown_label)
		if unknown_group is None:
			unknown_group = DepartmentGroup(department=unknown_label)
			result.groups.append(unknown_group)
		for name in unknown_names:
			record = activity_table.StaffRecord(name=name, department=unknown_label, index=0)
			unknown_group.entries.append(StaffEntry(record=record, rows=rows_by_staff[name]))
		_log(
			logger,
			f"WARNING: {len(unknown_names)} staff not in master bucketed under "
			+ f"{unknown_label!r} ({result.unknown_row_count} rows): {', '.join(unknown_names)}",
		)
	elif unknown_names:
		_log(
			logger,
			f"WARNING: dropped {result.dropped_row_count} rows for {len(unknown_names)} "
			+ f"staff not in master: {', '.join(unknown_names)}",
		)
	if result.excluded_row_count:
		_log(logger, f"Skipped {result.excluded_row_count} rows for staff excluded in master")
	return result


#============================================
def _find_group(groups: list[DepartmentGroup], department: str) -> DepartmentGroup | None:
	for group in groups:
		if group.department == department:
			return group
	return None
