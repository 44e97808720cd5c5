"""Exceptions for script submission."""

from examcustody.state_store import CustodyError


class SubmissionError(CustodyError):
    """Base exception for rejected script submissions."""


class NotRegisteredError(SubmissionError):
    """Student has no registration for the exam entry."""


class AlreadySubmittedError(SubmissionError):
    """A script has already been collected from this student for this exam."""


class BatchNotProvisionedError(SubmissionError):
    """The exam entry has no batch to collect scripts into."""
