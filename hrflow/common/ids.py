"""Distinct identifier namespaces.

Employee-record ids and account ids are both UUIDs in storage but are never
interchangeable: notifications are addressed to accounts, workflow records
reference employees.
"""

import uuid
from typing import NewType

EmployeeId = NewType("EmployeeId", uuid.UUID)
AccountId = NewType("AccountId", uuid.UUID)
