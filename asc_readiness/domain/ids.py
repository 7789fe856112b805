"""Typed identifiers.

Every id is a UUID string at runtime. The distinct types keep a case id from
being passed where a catalog id is expected.
"""

from typing import NewType

FacilityId = NewType("FacilityId", str)
UserId = NewType("UserId", str)
ClinicId = NewType("ClinicId", str)
CaseId = NewType("CaseId", str)
CatalogItemId = NewType("CatalogItemId", str)
InventoryItemId = NewType("InventoryItemId", str)
LocationId = NewType("LocationId", str)
AttestationId = NewType("AttestationId", str)
SurgeryRequestId = NewType("SurgeryRequestId", str)
SubmissionId = NewType("SubmissionId", str)
PatientRefId = NewType("PatientRefId", str)
