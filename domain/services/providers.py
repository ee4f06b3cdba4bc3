"""
Provider adapters.

One generic pipeline serves every provider; what differs between them is
captured here as data: the field-mapping table (logical attribute ->
ordered candidate source paths), description hints used to resolve the
transaction type when the discriminator is missing, the suppression rules
that apply, and the API prefix of the remote endpoints.

Candidate paths:
- "payerName"          plain key
- "payer.document"     dotted path into nested objects
- ("data", "hora")     composite; all parts must be present, joined with a space
"""
from dataclasses import dataclass
from typing import Union

from domain.exceptions import UnknownProviderError

CandidatePath = Union[str, tuple[str, ...]]

# Logical attributes of a raw provider record
ID = "id"
DATE_TIME = "date_time"
AMOUNT = "amount"
TYPE = "type"
DESCRIPTION = "description"
ORIGINAL_DESCRIPTION = "original_description"
PAYER_NAME = "payer_name"
PAYER_DOCUMENT = "payer_document"
BENEFICIARY_NAME = "beneficiary_name"
BENEFICIARY_DOCUMENT = "beneficiary_document"
END_TO_END = "end_to_end"
STATUS = "status"
ACCOUNT_DOCUMENT = "account_document"

# Suppression rule names (see domain.services.suppression)
RULE_DECOY_DEPOSIT = "decoy_deposit"
RULE_FOREIGN_BENEFICIARY = "foreign_beneficiary"
RULE_ACCOUNT_SCOPE = "account_scope"
RULE_INTERNAL_FEE = "internal_fee"


@dataclass(frozen=True)
class ProviderAdapter:
    tag: str
    display_name: str
    api_prefix: str
    field_map: dict[str, tuple[CandidatePath, ...]]
    suppression_rules: tuple[str, ...]
    # Description substrings deciding the type when the discriminator is absent
    debit_hints: tuple[str, ...] = ()
    credit_hints: tuple[str, ...] = ()
    # Rows carrying these markers in date/description are balance lines, not movements
    balance_row_markers: tuple[str, ...] = ("Saldo Atual",)

    @property
    def transactions_path(self) -> str:
        return f"{self.api_prefix}/transactions"

    @property
    def sync_path(self) -> str:
        return f"{self.api_prefix}/sync"

    @property
    def verify_path(self) -> str:
        return f"{self.api_prefix}/account/qtran"


_DEBIT_HINTS = ("TRANSF.ENTRE CTAS", "TRANSF ENTRE CTAS", "TRANSF ENVIADA", "PIX ENVIADO", "TARIFA")
_CREDIT_HINTS = ("TRANSF RECEBIDA", "PIX RECEBIDO", "DEPOSITO")


CORPX = ProviderAdapter(
    tag="corpx",
    display_name="CorpX",
    api_prefix="/api/corpx",
    field_map={
        ID: ("id", "nrMovimento", "endToEndId"),
        DATE_TIME: ("transactionDatetime", "transactionDatetimeUtc", "transactionDate", "date"),
        AMOUNT: ("amount", "valor"),
        TYPE: ("transactionType", "tipo", "type"),
        DESCRIPTION: ("description", "descricao"),
        ORIGINAL_DESCRIPTION: ("descricaoOperacao", "complemento", "historico"),
        PAYER_NAME: ("payerName", "payer.fullName", "payer.name"),
        PAYER_DOCUMENT: ("payerDocument", "payer.document", "payer.taxDocument"),
        BENEFICIARY_NAME: ("beneficiaryName", "beneficiary.fullName", "beneficiary.name"),
        BENEFICIARY_DOCUMENT: ("beneficiaryDocument", "beneficiary.document", "beneficiary.taxDocument"),
        END_TO_END: ("endToEndId", "endToEnd", "idEndToEnd", "e2eId"),
        STATUS: ("pixStatus", "status"),
        ACCOUNT_DOCUMENT: ("taxDocument", "corpxAccount.taxDocument"),
    },
    suppression_rules=(RULE_DECOY_DEPOSIT, RULE_FOREIGN_BENEFICIARY, RULE_ACCOUNT_SCOPE),
    debit_hints=_DEBIT_HINTS,
    credit_hints=_CREDIT_HINTS,
)


TCR = ProviderAdapter(
    tag="tcr",
    display_name="TCR (BMP 531)",
    api_prefix="/api/tcr",
    field_map={
        ID: ("nrMovimento", "idEndToEnd", "id"),
        DATE_TIME: (("data", "hora"), "data", "dateTime", "date", "transactionDatetime"),
        AMOUNT: ("valor", "amount"),
        TYPE: ("tipo", "transactionType", "type"),
        DESCRIPTION: ("descricao", "description"),
        ORIGINAL_DESCRIPTION: ("descricaoOperacao", "complemento", "historico"),
        PAYER_NAME: ("payer.fullName", "payerName", "payer.name"),
        PAYER_DOCUMENT: ("payer.document", "payerDocument"),
        BENEFICIARY_NAME: ("beneficiary.fullName", "beneficiaryName", "beneficiary.name"),
        BENEFICIARY_DOCUMENT: ("beneficiary.document", "beneficiaryDocument"),
        END_TO_END: ("idEndToEnd", "endToEndId", "e2eId", "endToEnd"),
        STATUS: ("status", "pixStatus"),
        ACCOUNT_DOCUMENT: ("taxDocument", "account.taxDocument"),
    },
    suppression_rules=(RULE_DECOY_DEPOSIT, RULE_FOREIGN_BENEFICIARY, RULE_ACCOUNT_SCOPE, RULE_INTERNAL_FEE),
    debit_hints=_DEBIT_HINTS,
    credit_hints=_CREDIT_HINTS,
)


_ADAPTERS = {adapter.tag: adapter for adapter in (CORPX, TCR)}
# BMP 531 is the banking rail behind the TCR statement
_ALIASES = {"bmp531": "tcr", "bmp-531": "tcr"}


def get_adapter(tag: str) -> ProviderAdapter:
    key = (tag or "").strip().lower()
    key = _ALIASES.get(key, key)
    try:
        return _ADAPTERS[key]
    except KeyError:
        raise UnknownProviderError(f"Unknown provider: {tag!r}") from None


def available_providers() -> list[str]:
    return sorted(_ADAPTERS)
