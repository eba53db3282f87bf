"""
Payment allocator service.

Applies a tendered payment to a customer's outstanding invoices oldest
first. Invoice updates, the customer's debt and the payment record are
written in one transaction.
"""

from datetime import date
from decimal import Decimal

from stockledger.config import get_logger, get_settings
from stockledger.config.settings import LedgerSettings
from stockledger.core.entities.billing import Customer, Invoice, Payment
from stockledger.core.entities.operations import (
    ApplyPaymentCommand,
    PaymentResult,
    to_money,
)
from stockledger.core.exceptions import InvalidAmountError
from stockledger.core.interfaces.ledger_store import ILedgerSession, ILedgerStore
from stockledger.core.services.idempotency import remember, replay
from stockledger.core.services.payment_allocation import plan_allocation, reduce_debt

logger = get_logger(__name__)


def customer_key(customer_id: int | None) -> str:
    return f"customer:{customer_id if customer_id is not None else 'new'}"


class PaymentAllocatorService:
    """Customers, invoices and oldest-first payment allocation."""

    def __init__(self, store: ILedgerStore, settings: LedgerSettings | None = None):
        self._store = store
        self._settings = settings or get_settings().ledger

    async def create_customer(
        self,
        name: str,
        phone: str | None = None,
        email: str | None = None,
    ) -> Customer:
        async def work(session: ILedgerSession) -> Customer:
            return await session.insert_customer(Customer(name=name, phone=phone, email=email))

        customer = await self._store.run(work, keys=[customer_key(None)])
        logger.info("customer_created", customer_id=customer.id)
        return customer

    async def get_customer(self, customer_id: int) -> Customer:
        async def work(session: ILedgerSession) -> Customer:
            return await session.get_customer(customer_id)

        return await self._store.read(work)

    async def get_invoice(self, invoice_id: int) -> Invoice:
        async def work(session: ILedgerSession) -> Invoice:
            return await session.get_invoice(invoice_id)

        return await self._store.read(work)

    async def list_outstanding_invoices(self, customer_id: int) -> list[Invoice]:
        async def work(session: ILedgerSession) -> list[Invoice]:
            await session.get_customer(customer_id)
            return await session.list_outstanding_invoices(customer_id)

        return await self._store.read(work)

    async def issue_invoice(
        self,
        customer_id: int,
        invoice_number: str,
        total: Decimal | float | str,
        issue_date: date | None = None,
        job_id: int | None = None,
        notes: str | None = None,
    ) -> Invoice:
        """Add an Unpaid invoice and raise the customer's debt by its total."""
        amount = to_money(total, "total")
        if amount <= 0:
            raise InvalidAmountError("total", amount)

        async def work(session: ILedgerSession) -> Invoice:
            customer = await session.get_customer(customer_id)
            invoice = await session.insert_invoice(
                Invoice(
                    customer_id=customer_id,
                    invoice_number=invoice_number,
                    total=amount,
                    issue_date=issue_date or date.today(),
                    job_id=job_id,
                    notes=notes,
                )
            )
            customer.debt += amount
            await session.save_customer(customer)
            return invoice

        invoice = await self._store.run(work, keys=[customer_key(customer_id)])
        logger.info(
            "invoice_issued",
            customer_id=customer_id,
            invoice_id=invoice.id,
            total=str(amount),
        )
        return invoice

    async def apply_payment(
        self, command: ApplyPaymentCommand, timeout: float | None = None
    ) -> PaymentResult:
        """
        Allocate a payment across outstanding invoices, oldest first.

        Overpayment beyond what the invoices owe is reported as
        `unallocated`; it is not carried forward as credit.
        """
        key = command.idempotency_key if self._settings.idempotency_enabled else None

        async def work(session: ILedgerSession) -> PaymentResult:
            previous = await replay(session, key, "apply_payment", PaymentResult)
            if previous is not None:
                return previous

            customer = await session.get_customer(command.customer_id)
            invoices = await session.list_outstanding_invoices(command.customer_id)
            plan = plan_allocation(invoices, command.total)

            for invoice in plan.updated_invoices:
                await session.save_invoice(invoice)

            previous_debt = customer.debt
            customer.debt = reduce_debt(previous_debt, command.total)
            await session.save_customer(customer)

            payment = await session.insert_payment(
                Payment(
                    customer_id=command.customer_id,
                    amount=command.total,
                    tenders=command.tenders(),
                    allocations=plan.allocations,
                    unallocated=plan.unallocated,
                    notes=command.notes,
                    idempotency_key=key,
                )
            )
            result = PaymentResult(
                payment_id=payment.id,  # type: ignore[arg-type]
                customer_id=command.customer_id,
                total_tendered=command.total,
                allocations=plan.allocations,
                unallocated=plan.unallocated,
                previous_debt=previous_debt,
                new_debt=customer.debt,
            )
            await remember(session, key, "apply_payment", result)
            return result

        result = await self._store.run(
            work, keys=[customer_key(command.customer_id)], timeout=timeout
        )
        logger.info(
            "payment_applied",
            payment_id=result.payment_id,
            customer_id=result.customer_id,
            total=str(result.total_tendered),
            invoices=[a.invoice_id for a in result.allocations if a.applied > 0],
            new_debt=str(result.new_debt),
        )
        if result.unallocated > 0:
            logger.warning(
                "payment_overpaid",
                payment_id=result.payment_id,
                customer_id=result.customer_id,
                unallocated=str(result.unallocated),
            )
        return result

    async def list_payments(self, customer_id: int) -> list[Payment]:
        async def work(session: ILedgerSession) -> list[Payment]:
            await session.get_customer(customer_id)
            return await session.list_payments(customer_id)

        return await self._store.read(work)
