"""Application use cases."""

from stockledger.application.use_cases.apply_payment import ApplyPaymentUseCase
from stockledger.application.use_cases.commit_purchase_order import CommitPurchaseOrderUseCase
from stockledger.application.use_cases.consume_stock import ConsumeStockUseCase
from stockledger.application.use_cases.job_parts import (
    AddPartToJobUseCase,
    RemovePartFromJobUseCase,
)
from stockledger.application.use_cases.restock_item import RestockItemUseCase

__all__ = [
    "ConsumeStockUseCase",
    "RestockItemUseCase",
    "AddPartToJobUseCase",
    "RemovePartFromJobUseCase",
    "CommitPurchaseOrderUseCase",
    "ApplyPaymentUseCase",
]
