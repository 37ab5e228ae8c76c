"""Azure DevOps services used by the sprint pipeline"""
from .base import AzureDevOpsService
from .iteration_service import IterationService
from .workitem_service import WorkItemService
from .capacity_service import CapacityService
from .reconciliation_service import ReconciliationService

__all__ = [
    "AzureDevOpsService",
    "IterationService",
    "WorkItemService",
    "CapacityService",
    "ReconciliationService",
]
