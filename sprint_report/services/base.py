"""
Shared plumbing for the Azure DevOps services
"""
import asyncio
import functools
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Awaitable, Iterable, List, Optional

from azure.devops.v7_1.work.models import TeamContext

from ..constants import QueryLimits


def create_request_executor() -> ThreadPoolExecutor:
    """Thread pool for blocking SDK calls, sized so every fan-out stage reaches its ceiling."""
    return ThreadPoolExecutor(
        max_workers=QueryLimits.REQUEST_THREADS,
        thread_name_prefix="azure-devops"
    )


async def gather_all(aws: Iterable[Awaitable[Any]]) -> List[Any]:
    """
    Run awaitables concurrently and return their results in order.

    If one fails, the rest are cancelled and awaited before the error
    propagates.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class AzureDevOpsService:
    """Holds the connection, project scope and lazily created SDK clients"""

    def __init__(
        self,
        auth,
        project: str,
        team: Optional[str] = None,
        request_timeout: Optional[float] = None,
        executor: Optional[Executor] = None
    ):
        """
        Initialize service

        Args:
            auth: AzureDevOpsAuth instance
            project: Azure DevOps project name
            team: Team name, or None for the project's default team
            request_timeout: Per-request timeout in seconds, None for no timeout
            executor: Thread pool for SDK calls, None for the loop's default
        """
        self.auth = auth
        self.project = project
        self.team = team
        self.request_timeout = request_timeout
        self.executor = executor
        self._work_client = None
        self._wit_client = None

    @property
    def work_client(self):
        """Lazy load work client"""
        if not self._work_client:
            self._work_client = self.auth.get_client('work')
        return self._work_client

    @property
    def wit_client(self):
        """Lazy load work item tracking client"""
        if not self._wit_client:
            self._wit_client = self.auth.get_client('work_item_tracking')
        return self._wit_client

    async def call(self, func, *args, **kwargs):
        """Run a blocking SDK call on the service's executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self.executor, functools.partial(func, *args, **kwargs)
        )

    def team_context(self) -> TeamContext:
        """Team scope; an empty team name means the project's default team."""
        return TeamContext(project=self.project, team=self.team or None)
