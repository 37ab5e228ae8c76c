"""
Service Manager wiring the Azure DevOps services into the sprint pipeline
"""
import asyncio
import logging
from typing import Dict, Optional

from .auth import AzureDevOpsAuth
from .config import AzureDevOpsSettings
from .models import Lookup, SprintData
from .services.base import create_request_executor
from .services.capacity_service import CapacityService, team_identities
from .services.iteration_service import IterationService
from .services.reconciliation_service import ReconciliationService
from .services.workitem_service import WorkItemService
from .validation import validate_sprint_name

logger = logging.getLogger(__name__)


class ServiceManager:
    """
    Owns the service instances for one project/team and runs the pipeline

    Example:
        auth = AzureDevOpsAuth.from_settings(settings)
        auth.initialize()

        manager = ServiceManager(auth, settings)
        lookup = await manager.get_current_sprint_name()
        data = await manager.get_sprint_data(lookup.value)
        manager.close()
    """

    def __init__(self, auth: AzureDevOpsAuth, settings: AzureDevOpsSettings):
        """
        Initialize service manager

        Args:
            auth: Initialized AzureDevOpsAuth instance
            settings: Validated settings for the run
        """
        if not auth or not auth.connection:
            raise ValueError(
                "ServiceManager requires an initialized AzureDevOpsAuth instance. "
                "Call auth.initialize() before creating ServiceManager."
            )

        self.auth = auth
        self.settings = settings
        self.executor = create_request_executor()

        scope = dict(
            project=settings.project,
            team=settings.team,
            request_timeout=settings.request_timeout,
            executor=self.executor,
        )
        self.iteration_service = IterationService(auth, **scope)
        self.workitem_service = WorkItemService(auth, **scope)
        self.capacity_service = CapacityService(auth, **scope)
        self.reconciliation_service = ReconciliationService(
            auth, workitem_service=self.workitem_service, **scope
        )

    async def get_current_sprint_name(self) -> Lookup[str]:
        """Name of the team's current sprint; failures are reported, not raised."""
        return await self.iteration_service.get_current_sprint_name()

    async def get_sprint_data(self, sprint_name: str) -> SprintData:
        """
        Fetch everything needed to report on a sprint

        The iteration's own item ids are queried while capacity is fetched
        and cross-iteration work is reconciled. Both id sets are unioned and
        the details fetched in one pass.

        Args:
            sprint_name: Sprint (iteration) name

        Returns:
            Sprint data; empty when the sprint cannot be resolved

        Raises:
            AzureDevOpsError: If a required request fails
        """
        sprint_name = validate_sprint_name(sprint_name)
        iteration = await self.iteration_service.resolve(
            sprint_name, self.settings.iteration_path
        )
        if iteration is None:
            logger.warning(f"No data for sprint '{sprint_name}'")
            return SprintData.empty(sprint_name)

        iteration_ids_task = asyncio.create_task(
            self.workitem_service.query_ids_in_iteration(iteration.path)
        )
        try:
            capacities = await self.capacity_service.fetch_capacities(
                iteration.id, iteration.start_date, iteration.finish_date
            )
            identities = team_identities(capacities)
            logger.info(
                f"Identified {len(identities)} team member identifiers for filtering"
            )

            window = iteration.window()
            if window is not None:
                iteration_ids, cross_iteration_items = await asyncio.gather(
                    iteration_ids_task,
                    self.reconciliation_service.reconcile(window, iteration.path, identities),
                )
            else:
                logger.info("Sprint has no dates, skipping cross-iteration work")
                iteration_ids = await iteration_ids_task
                cross_iteration_items = []
        finally:
            if not iteration_ids_task.done():
                iteration_ids_task.cancel()

        cross_iteration_ids = {item.id for item in cross_iteration_items}
        all_ids = set(iteration_ids) | cross_iteration_ids
        logger.info(
            f"Total unique work items: {len(all_ids)} (iteration: {len(iteration_ids)}, "
            f"cross-iteration: {len(cross_iteration_ids)})"
        )

        work_items = await self.workitem_service.fetch_details(all_ids)
        logger.info(f"Retrieved {len(work_items)} work items")

        return SprintData(
            sprint_name=sprint_name,
            iteration=iteration,
            work_items=work_items,
            iteration_work_item_ids=frozenset(iteration_ids),
            team_capacities=capacities,
        )

    def close(self):
        """Shut down the request thread pool; queued calls are dropped"""
        self.executor.shutdown(wait=False, cancel_futures=True)

    def get_statistics(self) -> Dict[str, Optional[str]]:
        """Scope of the services, for debugging"""
        return {
            "organization_url": self.auth.organization_url,
            "project": self.settings.project,
            "team": self.settings.team,
        }

    def __repr__(self) -> str:
        """String representation for debugging"""
        return (
            f"ServiceManager(project='{self.settings.project}', "
            f"team='{self.settings.team}')"
        )
