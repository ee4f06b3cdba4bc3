"""
Suppression of provider noise.

Each record is judged on its own (no rule looks at other records), rules
run in the adapter's order and the first match wins.
"""
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from domain.config import SuppressionConfig, get_suppression_config
from domain.entities import Transaction
from .normalization import sanitize_document
from .providers import (
    ProviderAdapter,
    RULE_DECOY_DEPOSIT,
    RULE_FOREIGN_BENEFICIARY,
    RULE_ACCOUNT_SCOPE,
    RULE_INTERNAL_FEE,
)


@dataclass(frozen=True)
class SuppressionContext:
    # Tax document of the scoped account; None means "all accounts"
    account_scope: Optional[str] = None
    config: SuppressionConfig = field(default_factory=get_suppression_config)

    @property
    def scoped_document(self) -> str:
        return sanitize_document(self.account_scope)


def _is_decoy_deposit(t: Transaction, ctx: SuppressionContext) -> bool:
    decoy_document = sanitize_document(ctx.config.decoy_document)
    return (
        bool(decoy_document)
        and t.is_debit
        and round(t.value, 2) == round(ctx.config.decoy_amount, 2)
        and t.counterparty_document == decoy_document
    )


def _is_foreign_beneficiary(t: Transaction, ctx: SuppressionContext) -> bool:
    foreign = {sanitize_document(doc) for doc in ctx.config.foreign_beneficiary_documents} - {""}
    return bool(t.beneficiary_document) and t.beneficiary_document in foreign


def _is_out_of_account_scope(t: Transaction, ctx: SuppressionContext) -> bool:
    scope = ctx.scoped_document
    if not scope:
        return False
    return scope not in (t.account_document, t.beneficiary_document, t.payer_document)


def _is_internal_fee(t: Transaction, ctx: SuppressionContext) -> bool:
    config = ctx.config
    description = t.description.upper()
    if not any(keyword.upper() in description for keyword in config.internal_transfer_keywords):
        return False
    if t.value > config.fee_threshold:
        return False

    fee_name = config.fee_counterparty_name.strip().lower()
    fee_document = sanitize_document(config.fee_counterparty_document)
    name_matches = bool(fee_name) and fee_name in t.counterparty_name.lower()
    document_matches = bool(fee_document) and t.counterparty_document == fee_document
    return name_matches or document_matches


RULES: dict[str, Callable[[Transaction, SuppressionContext], bool]] = {
    RULE_DECOY_DEPOSIT: _is_decoy_deposit,
    RULE_FOREIGN_BENEFICIARY: _is_foreign_beneficiary,
    RULE_ACCOUNT_SCOPE: _is_out_of_account_scope,
    RULE_INTERNAL_FEE: _is_internal_fee,
}


class Suppression:
    @staticmethod
    def matching_rule(t: Transaction, ctx: SuppressionContext, adapter: ProviderAdapter) -> Optional[str]:
        """Name of the first rule that drops the record, or None when it survives."""
        for rule in adapter.suppression_rules:
            if RULES[rule](t, ctx):
                return rule
        return None

    @staticmethod
    def suppress(t: Transaction, ctx: SuppressionContext, adapter: ProviderAdapter) -> bool:
        """True means drop."""
        return Suppression.matching_rule(t, ctx, adapter) is not None

    @staticmethod
    def apply(
        transactions: Iterable[Transaction],
        ctx: SuppressionContext,
        adapter: ProviderAdapter,
        limit: Optional[int] = None,
    ) -> tuple[list[Transaction], Counter]:
        """
        Split a batch into survivors (order preserved) and per-rule drop counts.

        With a limit, evaluation stops as soon as that many records survive;
        the records examined are exactly len(kept) + sum(dropped.values()).
        """
        kept: list[Transaction] = []
        dropped: Counter = Counter()
        for t in transactions:
            if limit is not None and len(kept) >= limit:
                break
            rule = Suppression.matching_rule(t, ctx, adapter)
            if rule is None:
                kept.append(t)
            else:
                dropped[rule] += 1
        return kept, dropped
