"""Per-user workflow provisioning.

Instantiates every registered template for a user on the automation engine
and records the resulting remote ids. Each (user, template) pair maps to at
most one remote workflow: callers in this process are serialized by a
per-user lock, and callers in other processes by the reservation row in
:class:`~hireflow.state.WorkflowRecordStore`.

A create call that fails in transport leaves its row ``unknown``; the next
:meth:`ProvisioningService.ensure_user_workflows` looks the workflow up by
name on the engine before trying again.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import weakref
from datetime import UTC, datetime, timedelta

from hireflow.config import user_logger
from hireflow.engine import EngineClient
from hireflow.errors import (
    AuthError,
    EngineError,
    HireflowError,
    MalformedGraph,
    NetworkError,
    NotFound,
    ProvisioningError,
    RemoteError,
)
from hireflow.state import RecordStatus, WorkflowRecord, WorkflowRecordStore
from hireflow.workflow import TemplateName, TemplateRegistry, WorkflowTemplate, get_registry

from .models import (
    DriftEntry,
    DriftStatus,
    OutcomeStatus,
    ProvisioningReport,
    TemplateOutcome,
    WorkflowInstance,
)

logger = logging.getLogger(__name__)

# A pending reservation older than this is assumed abandoned by a crashed worker
DEFAULT_RESERVATION_TTL = 300.0


def _is_undetermined(exc: HireflowError) -> bool:
    """Whether a failed create may still have happened remotely.

    Transport failures, 5xx answers and 2xx answers the client could not
    read (no id, non-JSON body) all leave the remote outcome open.
    """
    if isinstance(exc, NetworkError):
        return True
    if not isinstance(exc, RemoteError):
        return False
    return exc.status_code is None or 200 <= exc.status_code < 300 or exc.status_code >= 500


class ProvisioningService:
    """Creates and tracks each user's engine workflows.

    Usage:
        service = ProvisioningService(engine)
        report = await service.ensure_user_workflows("u1", "alice@example.com")
        if not report.is_complete:
            ...  # retry later; completed templates are not recreated
    """

    def __init__(
        self,
        engine: EngineClient,
        registry: TemplateRegistry | None = None,
        store: WorkflowRecordStore | None = None,
        reservation_ttl: float = DEFAULT_RESERVATION_TTL,
    ):
        """Initialize the service.

        Args:
            engine: Automation engine client
            registry: Workflow templates (defaults to the packaged set)
            store: Record store (defaults to the global database)
            reservation_ttl: Seconds after which a pending reservation is reconciled
        """
        self.engine = engine
        self.registry = registry if registry is not None else get_registry()
        self.store = store or WorkflowRecordStore()
        self.reservation_ttl = reservation_ttl
        # Entries disappear once no task holds or waits on the lock
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _user_lock(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    def _read_records(self, user_id: str) -> dict[str, WorkflowRecord]:
        try:
            return {r.template_name: r for r in self.store.get_records(user_id)}
        except sqlite3.Error as e:
            raise ProvisioningError(
                f"Cannot read workflow records for user {user_id}: {e}",
                {"user_id": user_id},
            ) from e

    def get_user_workflows(self, user_id: str) -> list[WorkflowInstance]:
        """Return the user's created workflows in template order.

        Reads local state only; never calls the engine. Unknown users get an
        empty list.

        Raises:
            ProvisioningError: The record store could not be read
        """
        records = self._read_records(user_id)
        return [
            WorkflowInstance.from_record(records[name.value])
            for name in self.registry.names()
            if name.value in records and records[name.value].status == RecordStatus.CREATED
        ]

    async def create_user_workflows(self, user_id: str, user_email: str) -> ProvisioningReport:
        """Create every template for the user, in template order.

        Templates already recorded for the user are reported ``existing``
        and not sent again. A template that fails does not stop the others
        and does not roll back templates already created.

        Raises:
            ProvisioningError: The record store could not be read
        """
        async with self._user_lock(user_id):
            records = self._read_records(user_id)
            report = ProvisioningReport(user_id=user_id)
            for name, template in self.registry.all():
                outcome = await self._provision(
                    user_id, user_email, template, records.get(name.value)
                )
                report.outcomes.append(outcome)

        self._log_report("create", report)
        return report

    async def ensure_user_workflows(self, user_id: str, user_email: str) -> ProvisioningReport:
        """Make sure the user has every template; idempotent.

        Returns without contacting the engine when all templates are already
        recorded. Otherwise reconciles undetermined creates and creates the
        missing templates.

        Raises:
            ProvisioningError: The record store could not be read
        """
        records = self._read_records(user_id)
        if self._all_created(records):
            return self._existing_report(user_id, records)

        async with self._user_lock(user_id):
            # Another task may have finished while we waited on the lock
            records = self._read_records(user_id)
            if self._all_created(records):
                return self._existing_report(user_id, records)
            logger.info("Provisioning workflows for user %s", user_id)
            report = ProvisioningReport(user_id=user_id)
            for name, template in self.registry.all():
                outcome = await self._provision(
                    user_id, user_email, template, records.get(name.value)
                )
                report.outcomes.append(outcome)

        self._log_report("ensure", report)
        return report

    def _all_created(self, records: dict[str, WorkflowRecord]) -> bool:
        return all(
            name.value in records and records[name.value].status == RecordStatus.CREATED
            for name in self.registry.names()
        )

    def _existing_report(
        self, user_id: str, records: dict[str, WorkflowRecord]
    ) -> ProvisioningReport:
        return ProvisioningReport(
            user_id=user_id,
            outcomes=[
                TemplateOutcome(
                    template=name,
                    status=OutcomeStatus.EXISTING,
                    instance=WorkflowInstance.from_record(records[name.value]),
                )
                for name in self.registry.names()
            ],
        )

    def _is_stale(self, record: WorkflowRecord) -> bool:
        if record.updated_at is None:
            return True
        age = datetime.now(UTC) - record.updated_at
        return age > timedelta(seconds=self.reservation_ttl)

    async def _provision(
        self,
        user_id: str,
        user_email: str,
        template: WorkflowTemplate,
        record: WorkflowRecord | None,
    ) -> TemplateOutcome:
        """Provision one template; store failures are reported per template."""
        try:
            return await self._provision_template(user_id, user_email, template, record)
        except sqlite3.Error as e:
            user_logger(logger, user_id, template=template.name.value).error(
                "Record store failed: %s", e
            )
            return TemplateOutcome.failed(
                template.name,
                ProvisioningError(
                    f"Cannot update workflow record: {e}",
                    {"user_id": user_id, "template": template.name.value},
                ),
            )

    async def _provision_template(
        self,
        user_id: str,
        user_email: str,
        template: WorkflowTemplate,
        record: WorkflowRecord | None,
    ) -> TemplateOutcome:
        name = template.name
        if record is None:
            if self.store.reserve(user_id, name.value, template.workflow_name_for(user_id)):
                return await self._create(user_id, user_email, template)
            # Lost the race to another process
            record = self.store.get_record(user_id, name.value)
            if record is None:
                return TemplateOutcome(template=name, status=OutcomeStatus.IN_PROGRESS)

        if record.status == RecordStatus.CREATED:
            return TemplateOutcome(
                template=name,
                status=OutcomeStatus.EXISTING,
                instance=WorkflowInstance.from_record(record),
            )

        if record.status == RecordStatus.PENDING and not self._is_stale(record):
            logger.info("%s for user %s is being created elsewhere", name.value, user_id)
            return TemplateOutcome(template=name, status=OutcomeStatus.IN_PROGRESS)

        claimed = record.updated_at is not None and self.store.claim(
            user_id, name.value, record.updated_at
        )
        if not claimed:
            return TemplateOutcome(template=name, status=OutcomeStatus.IN_PROGRESS)

        return await self._reconcile(user_id, user_email, template)

    async def _reconcile(
        self, user_id: str, user_email: str, template: WorkflowTemplate
    ) -> TemplateOutcome:
        """Resolve an undetermined create by looking the workflow up by name."""
        name = template.name
        log = user_logger(logger, user_id, template=name.value)
        workflow_name = template.workflow_name_for(user_id)
        try:
            matches = await self.engine.list_workflows(name=workflow_name)
        except EngineError as e:
            log.warning("Cannot reconcile: %s", e)
            self.store.mark_unknown(user_id, name.value)
            return TemplateOutcome.failed(name, e)

        if not matches:
            log.info("No remote %r found, creating it", workflow_name)
            return await self._create(user_id, user_email, template)

        if len(matches) > 1:
            log.warning(
                "Found %d remote workflows named %r, adopting %s",
                len(matches),
                workflow_name,
                matches[0].id,
            )
        match = matches[0]
        return self._record_created(
            user_id, name, match.id, match.name, match.active, OutcomeStatus.ADOPTED
        )

    async def _create(
        self, user_id: str, user_email: str, template: WorkflowTemplate
    ) -> TemplateOutcome:
        """Instantiate and create one template; the row is already reserved."""
        name = template.name
        log = user_logger(logger, user_id, template=name.value)
        try:
            graph = template.instantiate(user_id, user_email)
            remote_id = await self.engine.create_workflow(graph)
        except HireflowError as e:
            if _is_undetermined(e):
                log.warning("Create is undetermined (%s); will reconcile", e.code)
                self.store.mark_unknown(user_id, name.value)
            else:
                log.error("Create failed: %s", e)
                self.store.release(user_id, name.value)
            return TemplateOutcome.failed(name, e)
        except asyncio.CancelledError:
            self.store.mark_unknown(user_id, name.value)
            raise

        return self._record_created(
            user_id, name, remote_id, graph.name, graph.active, OutcomeStatus.CREATED
        )

    def _record_created(
        self,
        user_id: str,
        name: TemplateName,
        remote_id: str,
        workflow_name: str,
        active: bool,
        status: OutcomeStatus,
    ) -> TemplateOutcome:
        """Persist a workflow that exists remotely.

        If the row cannot be written the template is reported failed and the
        row is left ``unknown`` (or ``pending`` until it goes stale), so a
        later call adopts the remote workflow by name instead of creating
        another.
        """
        log = user_logger(logger, user_id, template=name.value, remote_id=remote_id)
        try:
            record = self.store.mark_created(
                user_id, name.value, remote_id, workflow_name=workflow_name, active=active
            )
        except sqlite3.Error as e:
            log.error("Workflow %s exists but could not be recorded: %s", remote_id, e)
            try:
                self.store.mark_unknown(user_id, name.value)
            except sqlite3.Error:
                log.exception("Could not flag %s for reconciliation", name.value)
            return TemplateOutcome.failed(
                name,
                ProvisioningError(
                    f"Workflow {remote_id} was created but could not be recorded: {e}",
                    {"user_id": user_id, "template": name.value, "remote_id": remote_id},
                ),
            )

        log.info("Recorded workflow %s (%s)", remote_id, status.value)
        return TemplateOutcome(
            template=name,
            status=status,
            instance=WorkflowInstance.from_record(record),
        )

    def _log_report(self, operation: str, report: ProvisioningReport) -> None:
        if report.is_complete:
            logger.info(
                "%s: user %s has %d workflows",
                operation,
                report.user_id,
                len(report.instances),
                extra={"user_id": report.user_id},
            )
        else:
            logger.warning(
                "%s: user %s incomplete (%d failed, %d in progress)",
                operation,
                report.user_id,
                len(report.failed),
                len(report.pending),
                extra={"user_id": report.user_id},
            )

    def _created_record(self, user_id: str, template: TemplateName | str) -> WorkflowRecord:
        name = self.registry.get(template).name
        record = self.store.get_record(user_id, name.value)
        if record is None or record.status != RecordStatus.CREATED:
            raise ProvisioningError(
                f"User {user_id} has no {name.value} workflow",
                {"user_id": user_id, "template": name.value},
            )
        return record

    async def update_workflow_status(
        self, user_id: str, template: TemplateName | str, active: bool
    ) -> WorkflowInstance:
        """Activate or deactivate one of the user's workflows.

        Raises:
            UnknownTemplate: *template* is not registered
            ProvisioningError: The user has no workflow for *template*
            EngineError: The engine call failed
        """
        record = self._created_record(user_id, template)
        await self.engine.set_workflow_active(record.remote_id, active)
        self.store.set_active(user_id, record.template_name, active)
        record.active = active
        return WorkflowInstance.from_record(record)

    def get_workflow_stats(self, user_id: str) -> dict[str, int]:
        """Counts of the user's workflows by state."""
        records = self._read_records(user_id)
        created = [r for r in records.values() if r.status == RecordStatus.CREATED]
        active = sum(1 for r in created if r.active)
        return {
            "total": len(created),
            "active": active,
            "inactive": len(created) - active,
            "unresolved": len(records) - len(created),
            "missing": sum(1 for name in self.registry.names() if name.value not in records),
        }

    async def verify_user_workflows(self, user_id: str) -> list[DriftEntry]:
        """Compare the user's recorded workflows with the engine.

        Reports only; records are not modified. Fetches are spaced by the
        engine client's call sequencer.

        Raises:
            AuthError: The engine rejected the API key
        """
        entries = []
        for instance in self.get_user_workflows(user_id):
            await self.engine.sequencer.wait()
            try:
                await self.engine.fetch_workflow(instance.remote_id)
            except NotFound:
                status, detail = DriftStatus.MISSING, None
            except MalformedGraph as e:
                status, detail = DriftStatus.MALFORMED, e.message
            except AuthError:
                raise
            except EngineError as e:
                status, detail = DriftStatus.UNREACHABLE, e.message
            else:
                status, detail = DriftStatus.OK, None

            if status != DriftStatus.OK:
                logger.warning(
                    "Workflow %s (%s) of user %s is %s",
                    instance.remote_id,
                    instance.template.value,
                    user_id,
                    status.value,
                )
            entries.append(
                DriftEntry(
                    template=instance.template,
                    remote_id=instance.remote_id,
                    status=status,
                    detail=detail,
                )
            )
        return entries
