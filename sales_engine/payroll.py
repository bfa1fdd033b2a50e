"""
Attendance-based payroll projection for the finance console.

Paid hours per day follow the attendance status weights (present 1.0,
late 0.75, leave 0.5, absent 0) of an 8-hour workday:

    regular_hours = present*8 + late*6 + leave*4
    regular_pay   = regular_hours * hourly_rate
    overtime_pay  = overtime_hours * hourly_rate * overtime_multiplier
    gross_pay     = regular_pay + overtime_pay + bonus
    net_pay       = gross_pay - deductions

Overrides live only for the console session and are never written back to
the attendance source.
"""
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sales_engine.config import PayrollConfig, config
from sales_engine.models import (
    ATTENDANCE_STATUSES,
    AttendanceCounts,
    Employee,
    PayrollProjection,
    PayrollRow,
    PayrollTotals,
    SalaryConfig,
    round2,
    to_number,
)
from sales_engine.observability import get_logger

logger = get_logger(__name__)

SALARY_FIELDS = ("hourly_rate", "overtime_hours", "overtime_multiplier", "bonus", "deductions")

# Fields accepted from camelCase console payloads
_FIELD_ALIASES = {
    "hourlyRate": "hourly_rate",
    "overtimeHours": "overtime_hours",
    "overtimeMultiplier": "overtime_multiplier",
}

ALL_ROLES = "all"


def sanitize_numeric(value: Any, allow_negative: bool = False) -> float:
    """Finite number from console input; negatives clamp to 0 unless allowed."""
    number = to_number(value, 0.0)
    if allow_negative:
        return number
    return max(0.0, number)


def default_salary_config(employee: Employee, settings: Optional[PayrollConfig] = None) -> SalaryConfig:
    """Role-based defaults: hourly rate from the daily rate table."""
    settings = settings or config.payroll
    return SalaryConfig(
        hourly_rate=round2(settings.daily_rate_for(employee.role) / settings.workday_hours),
        overtime_hours=0.0,
        overtime_multiplier=settings.overtime_multiplier_default,
        bonus=0.0,
        deductions=0.0,
    )


def apply_override(base: SalaryConfig, override: Optional[Mapping[str, Any]]) -> SalaryConfig:
    """
    Merge console overrides over a salary config.

    Every field except ``bonus`` is clamped to be non-negative; a negative
    bonus is a penalty adjustment.
    """
    if not override:
        return base

    values = {name: getattr(base, name) for name in SALARY_FIELDS}
    for raw_key, raw_value in override.items():
        name = _FIELD_ALIASES.get(raw_key, raw_key)
        if name not in values:
            continue
        values[name] = sanitize_numeric(raw_value, allow_negative=(name == "bonus"))
    return SalaryConfig(**values)


class SalaryOverrides:
    """
    Per-employee salary overrides for one console session.

    Keyed by employee id. ``sync`` drops overrides for employees that are no
    longer in the attendance data.
    """

    def __init__(self):
        self._overrides: Dict[str, Dict[str, float]] = {}

    def set_override(self, user_id: str, field: str, value: Any) -> None:
        """Store one sanitized override field for an employee."""
        name = _FIELD_ALIASES.get(field, field)
        if name not in SALARY_FIELDS:
            logger.debug(f"Ignoring unknown salary field '{field}'")
            return
        sanitized = sanitize_numeric(value, allow_negative=(name == "bonus"))
        self._overrides.setdefault(user_id, {})[name] = sanitized

    def get(self, user_id: str) -> Dict[str, float]:
        return dict(self._overrides.get(user_id, {}))

    def as_mapping(self) -> Dict[str, Dict[str, float]]:
        return {user_id: dict(values) for user_id, values in self._overrides.items()}

    def sync(self, employees: Iterable[Employee]) -> None:
        """Forget overrides of employees missing from the current attendance."""
        valid_ids = {employee.user_id for employee in employees}
        for user_id in list(self._overrides):
            if user_id not in valid_ids:
                del self._overrides[user_id]

    def reset(self, user_id: Optional[str] = None) -> None:
        """Clear one employee's overrides, or all of them."""
        if user_id is None:
            self._overrides.clear()
        else:
            self._overrides.pop(user_id, None)


def parse_attendance(summary: Optional[Mapping[str, Any]]) -> List[Employee]:
    """Employees from an attendance summary ``{users: [...], range: {...}}``."""
    users = (summary or {}).get("users") or []
    employees = []
    for user in users:
        employee = Employee.from_api(user)
        if employee is not None:
            employees.append(employee)
    return employees


def filter_by_role(employees: Iterable[Employee], role: Optional[str]) -> List[Employee]:
    """Employees with the given role (case-insensitive); 'all' keeps everyone."""
    role_key = str(role or ALL_ROLES).strip().lower()
    if role_key == ALL_ROLES:
        return list(employees)
    return [employee for employee in employees if employee.role.lower() == role_key]


def role_options(employees: Iterable[Employee], settings: Optional[PayrollConfig] = None) -> List[str]:
    """Distinct staff roles for the role selector, sorted; suppliers and customers excluded."""
    settings = settings or config.payroll
    roles = set()
    for employee in employees:
        if not employee.role:
            continue
        normalized = employee.role.lower()
        if any(keyword in normalized for keyword in settings.excluded_role_keywords):
            continue
        if normalized in settings.excluded_roles:
            continue
        roles.add(employee.role)
    return sorted(roles, key=str.lower)


def attendance_totals(employees: Iterable[Employee]) -> Dict[str, int]:
    """Summed attendance counts plus head count and worked days."""
    totals = {status: 0 for status in ATTENDANCE_STATUSES}
    people = 0
    for employee in employees:
        people += 1
        for status in ATTENDANCE_STATUSES:
            totals[status] += getattr(employee.counts, status)
    totals["people"] = people
    totals["workedDays"] = totals["present"] + totals["late"]
    return totals


def regular_hours_for(counts: AttendanceCounts, settings: Optional[PayrollConfig] = None) -> float:
    settings = settings or config.payroll
    return (
        counts.present * settings.hours_for("present")
        + counts.late * settings.hours_for("late")
        + counts.leave * settings.hours_for("leave")
        + counts.absent * settings.hours_for("absent")
    )


def project_row(
    employee: Employee,
    override: Optional[Mapping[str, Any]] = None,
    settings: Optional[PayrollConfig] = None,
) -> PayrollRow:
    """
    Payroll row for one employee.

    Each pay column is rounded to cents before it feeds the next one, so
    ``net_pay == regular_pay + overtime_pay + bonus - deductions`` holds
    exactly on the exposed values.
    """
    raw = apply_override(default_salary_config(employee, settings), override)
    salary = SalaryConfig(
        hourly_rate=round2(raw.hourly_rate),
        overtime_hours=round2(raw.overtime_hours),
        overtime_multiplier=round2(raw.overtime_multiplier),
        bonus=round2(raw.bonus),
        deductions=round2(raw.deductions),
    )

    regular_hours = round2(regular_hours_for(employee.counts, settings))
    regular_pay = round2(regular_hours * salary.hourly_rate)
    overtime_pay = round2(salary.overtime_hours * salary.hourly_rate * salary.overtime_multiplier)
    gross_pay = round2(regular_pay + overtime_pay + salary.bonus)
    net_pay = round2(gross_pay - salary.deductions)

    return PayrollRow(
        employee=employee,
        salary=salary,
        regular_hours=regular_hours,
        regular_pay=regular_pay,
        overtime_pay=overtime_pay,
        gross_pay=gross_pay,
        net_pay=net_pay,
    )


def payroll_totals(rows: Iterable[PayrollRow]) -> PayrollTotals:
    """Column-wise sum of payroll rows."""
    totals = PayrollTotals()
    for row in rows:
        totals.regular_hours += row.regular_hours
        totals.overtime_hours += row.salary.overtime_hours
        totals.regular_pay += row.regular_pay
        totals.overtime_pay += row.overtime_pay
        totals.bonus += row.salary.bonus
        totals.deductions += row.salary.deductions
        totals.gross_pay += row.gross_pay
        totals.net_pay += row.net_pay

    return PayrollTotals(**{
        name: round2(value) for name, value in totals.__dict__.items()
    })


def project_payroll(
    attendance: Any,
    overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
    role: Optional[str] = ALL_ROLES,
    settings: Optional[PayrollConfig] = None,
) -> PayrollProjection:
    """
    Project payroll for every employee in an attendance summary.

    Args:
        attendance: Attendance summary mapping, or a list of Employees
        overrides: Salary overrides keyed by employee id
        role: Only project employees with this role ('all' for everyone)
        settings: Payroll settings (defaults to global config)

    Returns:
        PayrollProjection with one row per employee and column totals
    """
    if isinstance(attendance, Mapping):
        employees = parse_attendance(attendance)
    else:
        employees = list(attendance or [])

    overrides = overrides or {}
    rows = [
        project_row(employee, overrides.get(employee.user_id), settings)
        for employee in filter_by_role(employees, role)
    ]
    return PayrollProjection(
        rows=rows,
        totals=payroll_totals(rows),
        role=str(role or ALL_ROLES),
    )
