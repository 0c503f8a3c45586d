from __future__ import annotations

from enum import Enum


class MyFilterKey(str, Enum):
    APPLICATION_DATE = "ApplicationDate"
    ACCEPTANCE_DATE = "AcceptanceDate"
    PRIORITY_DATE = "PriorityDate"
    PUBLICATION_DATE = "PublicationDate"
    REGISTRATION_DATE = "RegistrationDate"
    RENEWAL_DUE_DATE = "RenewalDueDate"
    CERTIFICATE_ISSUE_DATE = "CertificateIssueDate"
    CASE_NUMBER = "CaseNumber"


class MyFilterStrategy(str, Enum):
    DAY = "Day"
    DATE_RANGE = "DateRange"
    VALUE = "Value"
