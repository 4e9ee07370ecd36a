"""Workflow layer for noteflow.

Contains the processing logic between sources and sinks:
- Guards: in-memory dedup of files and webhook deliveries
- Pipeline: list, filter, extract, analyze, validate, publish
- Webhooks and the folder monitor: what triggers a pipeline run
"""

from .budget import CallBudget, BudgetExceededError
from .guard import (
    ProcessingGuard,
    ProcessingState,
    Outcome,
    WebhookDigestGuard,
    payload_digest,
)
from .file_metadata import DownloadedFile, InsightResult, PublishRecord
from .filtering import FilterPolicy, sanitize_filename, unsafe_name_reason
from .insights import InsightGenerator, normalize_sentiment, title_from_filename
from .validation import ValidationConfig, ValidationGate, ValidationVerdict
from .outcome_log import FileOutcome, OutcomeLog
from .pipeline import Pipeline, SourceFolder, Trigger, downloaded_file
from .webhooks import Acknowledgement, WebhookReceiver
from .monitor import FolderMonitor


__all__ = [
    # Budget
    'CallBudget',
    'BudgetExceededError',

    # Guards
    'ProcessingGuard',
    'ProcessingState',
    'Outcome',
    'WebhookDigestGuard',
    'payload_digest',

    # Pipeline data
    'DownloadedFile',
    'InsightResult',
    'PublishRecord',
    'FileOutcome',
    'OutcomeLog',

    # Stages
    'FilterPolicy',
    'sanitize_filename',
    'unsafe_name_reason',
    'InsightGenerator',
    'normalize_sentiment',
    'title_from_filename',
    'ValidationConfig',
    'ValidationGate',
    'ValidationVerdict',

    # Orchestration
    'Pipeline',
    'SourceFolder',
    'Trigger',
    'downloaded_file',
    'Acknowledgement',
    'WebhookReceiver',
    'FolderMonitor',
]
