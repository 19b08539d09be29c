from __future__ import annotations

from decimal import Decimal

from dpma_direkt.fees import calculate_fees, payment_info
from dpma_direkt.models import PaymentMethod, TrademarkRegistrationRequest

from fake_portal import natural_word_request


def _request(**overrides: object) -> TrademarkRegistrationRequest:
    return TrademarkRegistrationRequest.model_validate(natural_word_request(**overrides))


def test_up_to_three_classes_cost_the_base_fee() -> None:
    fees = calculate_fees(_request(niceClasses=[{"classNumber": n} for n in (9, 35, 42)]))
    assert [(f.code, f.amount) for f in fees] == [("331000", Decimal("290.00"))]


def test_extra_classes_and_accelerated_examination() -> None:
    req = _request(
        niceClasses=[{"classNumber": n} for n in (9, 16, 25, 35, 42)],
        options={"acceleratedExamination": True},
    )
    fees = calculate_fees(req)
    assert [f.code for f in fees] == ["331000", "331300", "331500"]
    assert fees[1].amount == Decimal("200.00")

    info = payment_info(PaymentMethod.BANK_TRANSFER, fees, "30 2026 012 345.6")
    assert info.total_amount == Decimal("690.00")
    assert info.currency == "EUR"
    assert info.bank_details is not None
    assert info.bank_details.bic == "MARKDEF1700"


def test_sepa_payment_has_no_transfer_details() -> None:
    info = payment_info(PaymentMethod.SEPA_DIRECT_DEBIT, calculate_fees(_request()), "30 2026 012 345.6")
    assert info.bank_details is None
    assert info.total_amount == Decimal("290.00")
