"""
ComplyWatch Policy Action Executor

Background poller that carries pending executions to success or failed.

Each action's outcome is written to the execution's action log as soon as it
finishes, so a restart never re-runs a completed action. Actions whose delay
has not elapsed keep the execution pending; its next_run_at is moved to the
earliest such deadline so that it does not hold a batch slot until then.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func, select

from complywatch.database import (
    Employee,
    PolicyActionRecord,
    PolicyExecutionRecord,
    SecurityPolicy,
    ViolationRecord,
    is_missing_schema_error,
)
from complywatch.models.policy import ExecutionStatus
from complywatch.utils.helpers import utc_now

from .actions import ActionContext, run_action
from .remediation import RemediationBackend

logger = logging.getLogger(__name__)

FAILED_MESSAGE = "Some actions failed"
NO_ACTIONS_MESSAGE = "No actions configured"


class PolicyActionExecutor:
    """
    Polls for pending executions and runs their actions.

    start() and stop() are idempotent. Ticks never overlap: a tick that
    begins while another is running returns immediately.
    """

    def __init__(
        self,
        session_factory,
        backend: RemediationBackend,
        poll_interval: float = 5.0,
        batch_size: int = 10,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session_factory = session_factory
        self.backend = backend
        self.poll_interval = poll_interval
        self.batch_size = batch_size
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self._stopping: Optional[asyncio.Event] = None
        self._ticking = False

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            return
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Policy action executor started (every {self.poll_interval}s)")

    async def stop(self) -> None:
        if not self.is_running:
            self._task = None
            return
        self._stopping.set()
        try:
            await asyncio.wait_for(self._task, timeout=self.poll_interval + 5)
        except asyncio.TimeoutError:
            self._task.cancel()
        self._task = None
        logger.info("Policy action executor stopped")

    async def _run_loop(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Executor tick failed: {e}", exc_info=True)
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

    async def tick(self) -> int:
        """
        Process one batch of due pending executions, oldest first.

        Returns:
            Number of executions examined
        """
        if self._ticking:
            logger.debug("Previous tick still running, skipping")
            return 0

        self._ticking = True
        try:
            try:
                execution_ids = await self._due_executions()
            except Exception as e:
                if is_missing_schema_error(e):
                    logger.warning(f"Execution tables not ready, skipping tick: {e}")
                    return 0
                raise

            for execution_id in execution_ids:
                try:
                    await self.process_execution(execution_id)
                except Exception as e:
                    logger.error(f"Error processing execution {execution_id}: {e}", exc_info=True)
            return len(execution_ids)
        finally:
            self._ticking = False

    async def _due_executions(self) -> List[int]:
        run_at = func.coalesce(PolicyExecutionRecord.next_run_at, PolicyExecutionRecord.started_at)
        async with self.session_factory() as session:
            rows = await session.scalars(
                select(PolicyExecutionRecord.id)
                .where(
                    PolicyExecutionRecord.status == ExecutionStatus.PENDING.value,
                    run_at <= self._clock(),
                )
                .order_by(run_at, PolicyExecutionRecord.id)
                .limit(self.batch_size)
            )
            return list(rows.all())

    async def _load(self, execution_id: int):
        async with self.session_factory() as session:
            execution = await session.get(PolicyExecutionRecord, execution_id)
            if execution is None or execution.status != ExecutionStatus.PENDING.value:
                return None, [], None
            actions = (await session.scalars(
                select(PolicyActionRecord)
                .where(
                    PolicyActionRecord.policy_id == execution.policy_id,
                    PolicyActionRecord.is_enabled.is_(True),
                )
                .order_by(PolicyActionRecord.execution_order, PolicyActionRecord.id)
            )).all()
            policy = await session.get(SecurityPolicy, execution.policy_id)
            violation = await session.get(ViolationRecord, execution.violation_id)
            employee = await session.get(Employee, execution.employee_id)

        ctx = ActionContext(
            execution_id=execution.id,
            policy_id=execution.policy_id,
            policy_name=policy.name if policy else f"policy {execution.policy_id}",
            employee_id=execution.employee_id,
            violation_id=execution.violation_id,
            violation_type=violation.type if violation else "unknown",
            violation_severity=violation.severity if violation else "Medium",
            employee_name=employee.name if employee else None,
            employee_email=employee.email if employee else None,
            now=self._clock(),
        )
        return execution, list(actions), ctx

    async def process_execution(self, execution_id: int) -> Optional[str]:
        """
        Run the outstanding actions of one pending execution.

        Returns:
            The resulting status, or None when the execution is not pending
        """
        execution, actions, ctx = await self._load(execution_id)
        if execution is None:
            return None

        log: List[Dict[str, Any]] = list(execution.action_results or [])
        if not actions:
            await self._finish(execution_id, log, ExecutionStatus.SUCCESS, NO_ACTIONS_MESSAGE)
            logger.info(f"Execution {execution_id}: {NO_ACTIONS_MESSAGE}")
            return ExecutionStatus.SUCCESS.value

        done = {entry.get("action_id") for entry in log}
        deferred: List[datetime] = []

        for action in actions:
            if action.id in done:
                continue
            if action.delay_minutes:
                due_at = execution.started_at + timedelta(minutes=action.delay_minutes)
                if ctx.now < due_at:
                    deferred.append(due_at)
                    continue

            log.append(await self._run(action, ctx))
            await self._record(execution_id, log)

        if deferred:
            next_run_at = min(deferred)
            await self._record(execution_id, log, next_run_at=next_run_at)
            logger.debug(f"Execution {execution_id} has delayed actions, next run at {next_run_at}")
            return ExecutionStatus.PENDING.value

        failed = any(entry.get("status") == "failed" for entry in log)
        status = ExecutionStatus.FAILED if failed else ExecutionStatus.SUCCESS
        summary = f"{len(log)} action(s) processed"
        await self._finish(execution_id, log, status, summary, FAILED_MESSAGE if failed else None)
        logger.info(f"Execution {execution_id} finished: {status.value}")
        return status.value

    async def _run(self, action: PolicyActionRecord, ctx: ActionContext) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"action_id": action.id, "type": action.action_type}
        try:
            entry["result"] = await run_action(action.action_type, ctx, action.action_config or {}, self.backend)
            entry["status"] = "success"
        except Exception as e:
            logger.error(f"Action {action.id} ({action.action_type}) failed: {e}")
            entry["status"] = "failed"
            entry["error"] = str(e)
        entry["executed_at"] = self._clock().isoformat()
        return entry

    async def _record(
        self,
        execution_id: int,
        log: List[Dict[str, Any]],
        next_run_at: Optional[datetime] = None,
    ) -> None:
        async with self.session_factory() as session:
            execution = await session.get(PolicyExecutionRecord, execution_id)
            execution.action_results = list(log)
            if next_run_at is not None:
                execution.next_run_at = next_run_at
            await session.commit()

    async def _finish(
        self,
        execution_id: int,
        log: List[Dict[str, Any]],
        status: ExecutionStatus,
        summary: str,
        error_message: Optional[str] = None,
    ) -> None:
        async with self.session_factory() as session:
            execution = await session.get(PolicyExecutionRecord, execution_id)
            execution.action_results = list(log)
            execution.status = status.value
            execution.completed_at = self._clock()
            execution.error_message = error_message
            execution.summary = summary
            await session.commit()
