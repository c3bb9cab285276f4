"""Generic managed resource machinery: connect, reconcile, schedule."""

from .connector import Connector
from .controller import Controller
from .credentials import CredentialResolver
from .interfaces import (
    ExternalCreation,
    ExternalObservation,
    ExternalUpdate,
)
from .publisher import APISecretPublisher
from .reconciler import Deadline, ReconcileResult, Reconciler
from .store import KubernetesRecordStore
from .usage import ProviderConfigUsageTracker

__all__ = [
    "Connector",
    "Controller",
    "CredentialResolver",
    "ExternalObservation",
    "ExternalCreation",
    "ExternalUpdate",
    "APISecretPublisher",
    "Deadline",
    "ReconcileResult",
    "Reconciler",
    "KubernetesRecordStore",
    "ProviderConfigUsageTracker",
]
