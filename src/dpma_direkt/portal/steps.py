from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import unquote

import httpx

from ..errors import TransactionReferenceMissingError
from ..legal_forms import legal_form_label
from ..models import (
    Address,
    CombinedMark,
    DeliveryAddress,
    FigurativeMark,
    LegalEntityApplicant,
    NaturalPersonApplicant,
    PaymentMethod,
    ThreeDimensionalMark,
    TrademarkRegistrationRequest,
    WordMark,
)
from ..terms import TermCatalog
from .channel import WizardChannel
from .resolver import ClassificationResolver
from .selectors import WizardSelectors
from .session import SessionState
from .tokens import extract_dynamic_fields
from .upload import UploadSubprotocol


logger = logging.getLogger(__name__)


# Request mark type -> value of the portal's mark-feature dropdown.
MARK_TYPE_VALUES: dict[str, str] = {
    "word": "word",
    "figurative": "image",
    "combined": "figurative",
    "3d": "spatial",
}

PAYMENT_TYPE_VALUES: dict[PaymentMethod, str] = {
    PaymentMethod.BANK_TRANSFER: "UEBERWEISUNG",
    PaymentMethod.SEPA_DIRECT_DEBIT: "SEPASDD",
}

_TRANSACTION_PARAM = re.escape(WizardSelectors().transaction_param)
_TRANSACTION_IN_LOCATION_RE = re.compile(_TRANSACTION_PARAM + r"=([^&]+)")
_TRANSACTION_IN_BODY_RES: tuple[re.Pattern[str], ...] = (
    re.compile(_TRANSACTION_PARAM + r"=([^&\"'\s<]+)"),
    re.compile(_TRANSACTION_PARAM + r"['\"]\s*:\s*['\"]([^'\"]+)"),
)


@dataclass
class StepContext:
    channel: WizardChannel
    resolver: ClassificationResolver
    uploader: UploadSubprotocol
    term_catalog: Optional[TermCatalog] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def selectors(self) -> WizardSelectors:
        return self.channel.selectors

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)


class WizardStep:
    index: int = 0
    name: str = ""

    def __init__(self, ctx: StepContext) -> None:
        self.ctx = ctx

    @property
    def label(self) -> str:
        return f"step{self.index}_{self.name}"

    @property
    def view_id(self) -> str:
        return self.ctx.selectors.view_ids[self.index - 1]

    def execute(self, request: TrademarkRegistrationRequest, session: SessionState) -> SessionState:
        raise NotImplementedError

    def _submit(self, session: SessionState, fields: dict[str, str]) -> SessionState:
        self.ctx.channel.navigate(session, view_id=self.view_id, fields=fields, label=self.label)
        return session


# ---- field builders (pure) ----


def _address_fields(prefix: str, address: Address) -> dict[str, str]:
    out = {f"{prefix}:street:valueHolder": address.street}
    if address.address_line1:
        out[f"{prefix}:addressLine1:valueHolder"] = address.address_line1
    if address.address_line2:
        out[f"{prefix}:addressLine2:valueHolder"] = address.address_line2
    out[f"{prefix}:zip:valueHolder"] = address.zip
    out[f"{prefix}:city:valueHolder"] = address.city
    out[f"{prefix}:country:valueHolder_input"] = address.country
    return out


def applicant_fields(request: TrademarkRegistrationRequest, selectors: WizardSelectors = WizardSelectors()) -> dict[str, str]:
    p = selectors.applicant_prefix
    applicant = request.applicant
    out: dict[str, str] = {}

    if isinstance(applicant, NaturalPersonApplicant):
        out[f"{p}:addressEntityType"] = "natural"
        if applicant.salutation:
            out[f"{p}:namePrefix:valueHolder_input"] = applicant.salutation
        out[f"{p}:lastName:valueHolder"] = applicant.last_name
        out[f"{p}:firstName:valueHolder"] = applicant.first_name
        if applicant.name_suffix:
            out[f"{p}:nameSuffix:valueHolder"] = applicant.name_suffix
    elif isinstance(applicant, LegalEntityApplicant):
        out[f"{p}:addressEntityType"] = "legal"
        out[f"{p}:lastName:valueHolder"] = applicant.company_name
        label = legal_form_label(applicant.legal_form)
        if label:
            out[f"{p}:namePrefix:valueHolder_input"] = label
            out[f"{p}:namePrefix:valueHolder_editableInput"] = label
    else:
        raise TypeError(f"Unsupported applicant type: {type(applicant).__name__}")

    out.update(_address_fields(p, applicant.address))

    if request.sanctions is not None:
        sp = selectors.sanctions_prefix
        out[f"{sp}:nationalitySanctionLine"] = "TRUE" if request.sanctions.has_russian_nationality else "FALSE"
        out[f"{sp}:residenceSanctionLine"] = "TRUE" if request.sanctions.has_russian_residence else "FALSE"
        out[f"{sp}:evidenceProofCheckbox_input"] = "on"
        out[f"{sp}:changesProofCheckbox_input"] = "on"
    return out


def _name_prefix_fields(prefix: str, value: str) -> dict[str, str]:
    if value:
        return {
            f"{prefix}:namePrefix:valueHolder_input": value,
            f"{prefix}:namePrefix:valueHolder_editableInput": value,
        }
    return {
        f"{prefix}:namePrefix:valueHolder_focus": "",
        f"{prefix}:namePrefix:valueHolder_input": "",
        f"{prefix}:namePrefix:valueHolder_editableInput": " ",
    }


def copied_address_label(request: TrademarkRegistrationRequest) -> str:
    applicant = request.applicant
    name = applicant.last_name if isinstance(applicant, NaturalPersonApplicant) else applicant.company_name
    # The trailing space is part of the option label.
    return f"1 Anmelder {name} "


def correspondence_fields(request: TrademarkRegistrationRequest, selectors: WizardSelectors = WizardSelectors()) -> dict[str, str]:
    p = selectors.correspondence_prefix
    delivery: Optional[DeliveryAddress] = request.delivery_address

    if request.copies_applicant_address:
        applicant = request.applicant
        combo = copied_address_label(request)
        entity_type = applicant.type
        address = applicant.address
        phone, fax, email = "", "", request.email
        if isinstance(applicant, NaturalPersonApplicant):
            last, first, prefix_value = applicant.last_name, applicant.first_name, applicant.salutation or ""
        else:
            last, first, prefix_value = applicant.company_name, "", legal_form_label(applicant.legal_form)
    else:
        if delivery is None or delivery.address is None or delivery.contact is None:
            raise ValueError("a separate delivery address needs address and contact data")
        combo = selectors.new_address_label
        entity_type = delivery.type
        address = delivery.address
        phone = delivery.contact.telephone or ""
        fax = delivery.contact.fax or ""
        email = delivery.contact.email
        if delivery.type == "natural":
            last, first, prefix_value = delivery.last_name or "", delivery.first_name or "", delivery.salutation or ""
        else:
            last, first, prefix_value = delivery.company_name or "", "", legal_form_label(delivery.legal_form)

    out: dict[str, str] = {
        selectors.view_item_index: "0",
        f"{selectors.correspondence_combo}_input": combo,
        f"{p}:addressEntityType": entity_type,
        f"{p}:street:valueHolder": address.street,
        f"{p}:addressLine1:valueHolder": address.address_line1 or "",
        f"{p}:addressLine2:valueHolder": address.address_line2 or "",
        f"{p}:mailbox:valueHolder": "",
        f"{p}:zip:valueHolder": address.zip,
        f"{p}:city:valueHolder": address.city,
        f"{p}:country:valueHolder_input": address.country,
        f"{p}:phone:valueHolder": phone,
        f"{p}:fax:valueHolder": fax,
        f"{p}:email:valueHolder": email,
        selectors.editor_panel_active: "null",
        f"{p}:lastName:valueHolder": last,
    }
    if entity_type == "natural":
        out[f"{p}:firstName:valueHolder"] = first
        out.update(_name_prefix_fields(p, prefix_value))
        out[f"{p}:nameSuffix:valueHolder"] = ""
    else:
        out.update(_name_prefix_fields(p, prefix_value))
    return out


def trademark_fields(request: TrademarkRegistrationRequest, selectors: WizardSelectors = WizardSelectors()) -> dict[str, str]:
    mark = request.trademark
    out: dict[str, str] = {
        selectors.view_item_index: "0",
        selectors.editor_panel_active: "null",
        f"{selectors.mark_type_combo}_input": MARK_TYPE_VALUES[mark.type],
        selectors.mark_verbal_text: mark.text if isinstance(mark, WordMark) else "",
        selectors.mark_doc_ref: request.internal_reference or "",
    }
    if mark.color_elements:
        out[selectors.mark_color_checkbox] = "on"
        out[selectors.mark_color_elements] = ", ".join(mark.color_elements)
    if mark.has_non_latin_characters:
        out[selectors.mark_non_latin_checkbox] = "on"
    if mark.description:
        out[selectors.mark_description] = mark.description
    return out


def extract_transaction_reference(response: httpx.Response) -> Optional[str]:
    """Transaction reference from a redirect `Location` or, failing that, from the response body."""
    location = response.headers.get("location") or ""
    if response.status_code in (301, 302, 303, 307, 308) and location:
        m = _TRANSACTION_IN_LOCATION_RE.search(location)
        if m:
            return unquote(m.group(1))

    body = response.text or ""
    for pattern in _TRANSACTION_IN_BODY_RES:
        m = pattern.search(body)
        if m:
            return unquote(m.group(1))
    return None


# ---- steps ----


class ApplicantStep(WizardStep):
    index = 1
    name = "applicant"

    def execute(self, request: TrademarkRegistrationRequest, session: SessionState) -> SessionState:
        return self._submit(session, applicant_fields(request, self.ctx.selectors))


class RepresentativeStep(WizardStep):
    """No representative is appointed; the step is submitted empty."""

    index = 2
    name = "skip_representative"

    def execute(self, request: TrademarkRegistrationRequest, session: SessionState) -> SessionState:
        return self._submit(session, {})


class DeliveryAddressStep(WizardStep):
    index = 3
    name = "delivery_address"

    def execute(self, request: TrademarkRegistrationRequest, session: SessionState) -> SessionState:
        s = self.ctx.selectors
        channel = self.ctx.channel

        if request.copies_applicant_address:
            combo = copied_address_label(request)
            channel.round_trip(
                session,
                source=s.correspondence_combo,
                execute=s.form_id,
                render=s.form_id,
                event="change",
                fields={
                    f"{s.correspondence_combo}_input": combo,
                    s.view_item_index: "0",
                    s.editor_panel_active: "null",
                },
                label=f"{self.label}_copy_applicant",
            )
        else:
            delivery = request.delivery_address
            if delivery is None:
                raise ValueError("delivery address is missing")
            channel.round_trip(
                session,
                source=s.correspondence_entity_type,
                execute=s.form_id,
                render=s.form_id,
                event="change",
                fields={
                    s.correspondence_entity_type: delivery.type,
                    f"{s.correspondence_combo}_input": s.new_address_label,
                    s.view_item_index: "0",
                    s.editor_panel_active: "null",
                },
                label=f"{self.label}_entity_type",
            )

        return self._submit(session, correspondence_fields(request, s))


class TrademarkStep(WizardStep):
    index = 4
    name = "trademark"

    def execute(self, request: TrademarkRegistrationRequest, session: SessionState) -> SessionState:
        s = self.ctx.selectors
        mark = request.trademark
        self.ctx.channel.round_trip(
            session,
            source=s.mark_type_combo,
            execute=s.form_id,
            render=s.form_id,
            event="change",
            fields={
                f"{s.mark_type_combo}_input": MARK_TYPE_VALUES[mark.type],
                s.view_item_index: "0",
                s.editor_panel_active: "null",
            },
            label=f"{self.label}_type",
        )

        if isinstance(mark, (FigurativeMark, CombinedMark, ThreeDimensionalMark)):
            self.ctx.uploader.upload(session, mark.image_data, mark.image_mime_type, mark.image_file_name)
        elif not isinstance(mark, WordMark):
            raise TypeError(f"Unsupported trademark type: {type(mark).__name__}")

        return self._submit(session, trademark_fields(request, s))


class ClassificationStep(WizardStep):
    index = 5
    name = "classification"

    def _precheck_terms(self, request: TrademarkRegistrationRequest) -> None:
        catalog = self.ctx.term_catalog
        if catalog is None:
            return
        for sel in request.nice_classes:
            for term in sel.terms:
                v = catalog.validate(term, sel.class_number)
                if v.found:
                    continue
                hint = ", ".join(m.term for m in v.suggestions[:3])
                self.ctx.warn(
                    f"Term '{term}' is not in the catalog for class {sel.class_number}"
                    + (f" (did you mean: {hint})" if hint else "")
                )

    def execute(self, request: TrademarkRegistrationRequest, session: SessionState) -> SessionState:
        s = self.ctx.selectors
        resolver = self.ctx.resolver
        self._precheck_terms(request)

        selected: list[str] = []
        for sel in request.nice_classes:
            if sel.wants_header:
                header = resolver.resolve_header_identifier(session, sel.class_number)
                if header:
                    selected.append(header)
                else:
                    self.ctx.warn(f"Class {sel.class_number} header could not be selected")
            if sel.has_terms:
                resolution = resolver.resolve_term_identifiers(session, sel.terms)
                self.ctx.warnings.extend(resolution.warnings)
                selected.extend(resolution.identifiers.values())

        if not selected:
            self.ctx.warn("No goods/services could be selected; submitting classification step anyway")

        fields = {checkbox: "on" for checkbox in dict.fromkeys(selected)}
        fields[s.lead_class_combo] = str(request.effective_lead_class)
        logger.info("Selected %d classification item(s); lead class %s", len(fields) - 1, request.effective_lead_class)
        return self._submit(session, fields)


class OptionsStep(WizardStep):
    index = 6
    name = "options"

    def execute(self, request: TrademarkRegistrationRequest, session: SessionState) -> SessionState:
        s = self.ctx.selectors
        o = request.options
        fields: dict[str, str] = {}
        if o.accelerated_examination:
            fields[s.option_accelerated] = "on"
        if o.certification_mark:
            fields[s.option_certification] = "on"
        if o.licensing_declaration:
            fields[s.option_licensing] = "on"
        if o.disposition_declaration:
            fields[s.option_disposition] = "on"
        return self._submit(session, fields)


class PaymentStep(WizardStep):
    index = 7
    name = "payment"

    def execute(self, request: TrademarkRegistrationRequest, session: SessionState) -> SessionState:
        s = self.ctx.selectors
        return self._submit(session, {s.payment_radio: PAYMENT_TYPE_VALUES[request.payment_method]})


class FinalSubmitStep(WizardStep):
    index = 8
    name = "submit"

    def execute(self, request: TrademarkRegistrationRequest, session: SessionState) -> SessionState:
        s = self.ctx.selectors
        fields: dict[str, str] = {
            s.confirm_checkbox: "on",
            s.sender_name_field: request.effective_sender_name,
        }
        dynamic = extract_dynamic_fields(session.last_response_body)
        if dynamic:
            logger.debug("Echoing %d dynamic panel field(s): %s", len(dynamic), ", ".join(dynamic))
        fields.update(dynamic)
        fields[s.submit_button] = s.submit_button
        fields[s.editor_panel_active] = "null"

        resp = self.ctx.channel.round_trip(
            session,
            source=s.submit_button,
            execute="@all",
            render=s.form_id,
            fields=fields,
            label=self.label,
            allow_redirect=True,
        )
        reference = extract_transaction_reference(resp)
        if not reference:
            raise TransactionReferenceMissingError(
                f"Final submission returned HTTP {resp.status_code} without a transaction reference"
            )
        session.set_transaction_reference(reference)
        logger.info("Wizard completed; transaction reference received")
        return session


STEP_TYPES: tuple[type[WizardStep], ...] = (
    ApplicantStep,
    RepresentativeStep,
    DeliveryAddressStep,
    TrademarkStep,
    ClassificationStep,
    OptionsStep,
    PaymentStep,
    FinalSubmitStep,
)
