"""Read-only access to the payroll collaborators (employees, entries, pay runs, schedules)."""
