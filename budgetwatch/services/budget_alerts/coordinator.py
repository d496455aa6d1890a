from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from uuid import UUID

from budgetwatch.services.budget_alerts.errors import MalformedBudgetError, NotifyError, TransientQueryError
from budgetwatch.services.budget_alerts.evaluator import BudgetEvaluator, build_status_result, degraded_result
from budgetwatch.services.budget_alerts.notifier import AlertEmailParams, alert_subject, format_amount
from budgetwatch.services.budget_alerts.types import (
    ALERTING_STATUSES,
    AlertRecord,
    BudgetRecord,
    BudgetStatusResult,
    EvaluationReport,
)

alerts_logger = logging.getLogger("budgetwatch.alerts")


@dataclass(frozen=True)
class Recipient:
    email: str | None
    name: str | None = None


@dataclass
class _Slot:
    status: BudgetStatusResult
    alert: AlertRecord | None = None
    delivery_failed: bool = False


def build_alert_message(result: BudgetStatusResult) -> str:
    return (
        f"Your budget for {result.category} is {result.status.label}. "
        f"You have spent ${format_amount(result.spent)} out of your limit of ${format_amount(result.limit)}."
    )


def _log_late_send_failure(task: asyncio.Future) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        alerts_logger.warning("alert_send_failed_late error=%s", exc)


class AlertCoordinator:
    """
    Evaluates every budget of one owner and notifies on threshold crossings.

    Budgets are evaluated concurrently (bounded by ``concurrency``) but the
    report keeps the store's ordering. A failure in one budget degrades only
    that budget's entry; only a failure to list budgets aborts the run.
    """

    def __init__(
        self,
        store,
        ledger,
        notifier,
        *,
        concurrency: int = 4,
        ledger_timeout: float = 10.0,
        notify_timeout: float = 15.0,
    ):
        self.store = store
        self.evaluator = BudgetEvaluator(ledger)
        self.notifier = notifier
        self.concurrency = max(1, int(concurrency))
        self.ledger_timeout = ledger_timeout
        self.notify_timeout = notify_timeout

    async def evaluate_owner(self, owner_id: UUID | str, recipient: Recipient) -> EvaluationReport:
        budgets = await asyncio.to_thread(self.store.list_by_owner, owner_id)
        if not budgets:
            return EvaluationReport()

        slots: list[_Slot | None] = [None] * len(budgets)
        gate = asyncio.Semaphore(self.concurrency)

        async def run(index: int, budget: BudgetRecord) -> None:
            async with gate:
                slots[index] = await self._evaluate_one(owner_id, budget, recipient)

        await asyncio.gather(*(run(i, b) for i, b in enumerate(budgets)))

        report = EvaluationReport()
        for slot in slots:
            report.statuses.append(slot.status)
            if slot.alert is not None:
                report.alerts.append(slot.alert)
            if slot.delivery_failed:
                report.failed_deliveries += 1
        alerts_logger.info(
            "budget_status_evaluated owner=%s budgets=%s alerts=%s degraded=%s failed_deliveries=%s",
            owner_id,
            len(report.statuses),
            len(report.alerts),
            sum(1 for s in report.statuses if s.error),
            report.failed_deliveries,
        )
        return report

    async def _evaluate_one(self, owner_id: UUID | str, budget: BudgetRecord, recipient: Recipient) -> _Slot:
        if str(budget.owner_id) != str(owner_id):
            alerts_logger.error("budget_owner_mismatch budget=%s owner=%s", budget.id, owner_id)
            return _Slot(status=degraded_result(budget, "Budget does not belong to the requesting user"))
        try:
            spent = await asyncio.wait_for(
                asyncio.to_thread(self.evaluator.spent_for, budget),
                timeout=self.ledger_timeout,
            )
            result = build_status_result(budget, spent)
        except MalformedBudgetError as e:
            alerts_logger.warning("budget_malformed budget=%s error=%s", budget.id, e)
            return _Slot(status=degraded_result(budget, str(e)))
        except TransientQueryError as e:
            alerts_logger.warning("budget_spend_query_failed budget=%s error=%s", budget.id, e)
            return _Slot(status=degraded_result(budget, str(e)))
        except asyncio.TimeoutError:
            alerts_logger.warning("budget_spend_query_timeout budget=%s after=%ss", budget.id, self.ledger_timeout)
            return _Slot(status=degraded_result(budget, f"Spend query timed out after {self.ledger_timeout}s"))

        if result.status not in ALERTING_STATUSES:
            return _Slot(status=result)

        message = build_alert_message(result)
        delivered, failed = await self._notify(result, recipient)
        alert = AlertRecord(budget_id=budget.id, category=result.category, message=message, delivered=delivered)
        return _Slot(status=result, alert=alert, delivery_failed=failed)

    async def _notify(self, result: BudgetStatusResult, recipient: Recipient) -> tuple[bool, bool]:
        """Returns (delivered, failed). A send already in flight is never cancelled."""
        params = AlertEmailParams(
            user_name=recipient.name,
            category=result.category,
            spent=result.spent,
            limit=result.limit,
            status=result.status,
        )
        send = asyncio.ensure_future(self.notifier.send(recipient.email, alert_subject(result.category), params))
        try:
            delivered = await asyncio.wait_for(asyncio.shield(send), timeout=self.notify_timeout)
        except asyncio.TimeoutError:
            send.add_done_callback(_log_late_send_failure)
            alerts_logger.warning(
                "alert_send_timeout budget=%s category=%s after=%ss",
                result.budget_id,
                result.category,
                self.notify_timeout,
            )
            return False, True
        except asyncio.CancelledError:
            send.add_done_callback(_log_late_send_failure)
            raise
        except NotifyError as e:
            alerts_logger.warning("alert_send_failed budget=%s category=%s error=%s", result.budget_id, result.category, e)
            return False, True
        except Exception:
            alerts_logger.exception("alert_send_crashed budget=%s category=%s", result.budget_id, result.category)
            return False, True
        if delivered:
            alerts_logger.info("alert_sent budget=%s category=%s status=%s", result.budget_id, result.category, result.status.value)
        return bool(delivered), False
