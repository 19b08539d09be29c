from __future__ import annotations

from typing import Optional


# Abbreviation -> label used by the portal's legal-form dropdown.
LEGAL_FORM_LABELS: dict[str, str] = {
    "GmbH": "Gesellschaft mit beschränkter Haftung (GmbH)",
    "AG": "Aktiengesellschaft (AG)",
    "UG": "Unternehmergesellschaft, haftungsbeschränkt (UG)",
    "KG": "Kommanditgesellschaft (KG)",
    "OHG": "Offene Handelsgesellschaft (oHG)",
    "oHG": "Offene Handelsgesellschaft (oHG)",
    "GbR": "Gesellschaft bürgerlichen Rechts (GbR)",
    "eG": "eingetragene Genossenschaft (eG)",
    "eV": "eingetragener Verein (eV)",
    "e.V.": "eingetragener Verein (eV)",
    "SE": "europäische Gesellschaft (SE)",
    "KGaA": "Kommanditgesellschaft auf Aktien (KGaA)",
    "PartG": "Partnerschaftsgesellschaft (PartG)",
    "PartGmbB": "Partnerschaftsgesellschaft mit beschränkter Berufshaftung (PartGmbB)",
}


def legal_form_label(legal_form: Optional[str]) -> str:
    """
    Map an abbreviation like "GmbH" to the dropdown label. Unknown values (including full labels) pass through.
    """
    value = (legal_form or "").strip()
    if not value:
        return ""
    if value in LEGAL_FORM_LABELS:
        return LEGAL_FORM_LABELS[value]
    for abbrev, label in LEGAL_FORM_LABELS.items():
        if abbrev.lower() == value.lower():
            return label
    return value
