"""Domain models for the PAD mail dispatcher.

This package contains the schema registry and the value objects passed
between validation, attachment resolution, composition and dispatch.
"""

from .attachment import Attachment
from .batch_report import BatchReport, BatchStatus, PreviewReport
from .delivery import Period, RowFields
from .error_record import ErrorRecord
from .row_data import RowData
from .row_outcome import OutcomeStatus, RowOutcome
from .schema import HEADER_CONTRACT, REQUIRED_FILES, PadPlan
from .validation_error import ValidationError

__all__ = [
    # Schema registry
    "HEADER_CONTRACT",
    "REQUIRED_FILES",
    "PadPlan",
    # Row processing models
    "Attachment",
    "Period",
    "RowData",
    "RowFields",
    "ValidationError",
    # Results
    "BatchReport",
    "BatchStatus",
    "ErrorRecord",
    "OutcomeStatus",
    "PreviewReport",
    "RowOutcome",
]
