from __future__ import annotations

from decimal import Decimal

from .models import BankDetails, FeeItem, PaymentInfo, PaymentMethod, TrademarkRegistrationRequest


# DPMA fee schedule (PatKostG, Gebührenverzeichnis), electronic filing.
APPLICATION_FEE = FeeItem(
    code="331000",
    description="Anmeldeverfahren - bei elektronischer Anmeldung (einschließlich drei Klassen)",
    amount=Decimal("290.00"),
)
CLASSES_INCLUDED = 3
EXTRA_CLASS_FEE_CODE = "331300"
EXTRA_CLASS_FEE = Decimal("100.00")
ACCELERATED_EXAMINATION = FeeItem(
    code="331500",
    description="Beschleunigte Prüfung",
    amount=Decimal("200.00"),
)

BUNDESKASSE_RECIPIENT = "Bundeskasse Halle/DPMA"
BUNDESKASSE_IBAN = "DE84 7000 0000 0070 0010 54"
BUNDESKASSE_BIC = "MARKDEF1700"


def calculate_fees(request: TrademarkRegistrationRequest) -> list[FeeItem]:
    fees = [APPLICATION_FEE]
    extra = len(request.nice_classes) - CLASSES_INCLUDED
    if extra > 0:
        fees.append(
            FeeItem(
                code=EXTRA_CLASS_FEE_CODE,
                description=f"Klassengebühr ab der vierten Klasse ({extra} x {EXTRA_CLASS_FEE} EUR)",
                amount=EXTRA_CLASS_FEE * extra,
            )
        )
    if request.options.accelerated_examination:
        fees.append(ACCELERATED_EXAMINATION)
    return fees


def payment_info(method: PaymentMethod, fees: list[FeeItem], aktenzeichen: str) -> PaymentInfo:
    total = sum((f.amount for f in fees), Decimal("0"))
    bank = None
    if method == PaymentMethod.BANK_TRANSFER:
        bank = BankDetails(
            recipient=BUNDESKASSE_RECIPIENT,
            iban=BUNDESKASSE_IBAN,
            bic=BUNDESKASSE_BIC,
            reference=aktenzeichen,
        )
    return PaymentInfo(method=method, total_amount=total, bank_details=bank)
