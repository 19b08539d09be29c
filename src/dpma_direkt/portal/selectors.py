from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class WizardSelectors:
    """
    DPMAdirektWeb is a Jakarta Faces / PrimeFaces application; component ids may change with portal releases.
    Keep all component ids, token field names and page markers here for easy maintenance.
    """

    # Session tokens (field names on the wire)
    view_state_field: str = "jakarta.faces.ViewState"
    window_id_field: str = "jakarta.faces.ClientWindow"
    nonce_field: str = "primefaces.nonce"
    window_id_param: str = "jfwid"

    # Form + navigation
    form_id: str = "editor-form"
    next_button: str = "cmd-link-next"
    editor_panel_active: str = "editorPanel_active"
    view_item_index: str = "dpmaViewItemIndex"

    # Logical view ids announced by each navigation submit (dpmaViewId is the *next* view).
    view_ids: tuple[str, ...] = (
        "agents",  # step 1 -> representatives
        "correspondence",  # step 2 -> delivery address
        "trademark",  # step 3 -> trademark
        "wdvz",  # step 4 -> goods/services
        "priorities",  # step 5 -> priorities
        "payment",  # step 6 -> payment
        "submit",  # step 7 -> summary
    )

    # Server error markers (returned inside 200 responses)
    error_markers: tuple[str, ...] = ("error.xhtml", "StatusCode: 500")
    error_message_pattern: str = r"ui-message-error[^>]*>([^<]+)"

    # Step 1: applicant
    applicant_prefix: str = "daf-applicant"
    sanctions_prefix: str = "daf-applicant:daf-declaration"

    # Step 3: delivery address
    correspondence_prefix: str = "daf-correspondence"
    correspondence_combo: str = "daf-correspondence:address-ref-combo-a:valueHolder"
    correspondence_entity_type: str = "daf-correspondence:addressEntityType"
    new_address_label: str = "Neue Adresse"

    # Step 4: trademark
    mark_type_combo: str = "markFeatureCombo:valueHolder"
    mark_verbal_text: str = "mark-verbalText:valueHolder"
    mark_doc_ref: str = "mark-docRefNumber:valueHolder"
    mark_color_checkbox: str = "mark-colorElementsHiddenCheckbox_input"
    mark_color_elements: str = "mark-colorElements:valueHolder"
    mark_non_latin_checkbox: str = "mark-nonLatinCharactersCheckBox_input"
    mark_description: str = "mark-description:valueHolder"

    # Upload dialog
    upload_dialog_button: str = "editor-form:mark-image:markAttachmentsPanelAdd"
    upload_component: str = "mainupload:webUpload"
    upload_file_field: str = "mainupload:webUpload:webFileUpload_input"
    upload_screen_size_field: str = "mainupload:webUpload:screenSizeForCalculation"
    upload_screen_size: str = "1296"
    upload_failure_markers: tuple[str, ...] = ("Fehler", "ui-messages-error")

    # Step 5: Nice classification tree
    tree_root: str = "tmclassEditorGt"
    tree_search_button: str = "tmclassEditorGt:searchWDVZ"
    tree_search_phrase: str = "tmclassEditorGt:tmClassEditorCenterSearchPhrase"
    tree_search_panel_active: str = "tmclassEditorGt:j_idt932_active"
    tree_search_render: str = "tmclassEditorGt:nodeTreeAndTermView"
    lead_class_combo: str = "tmclassEditorGt:leadingClassCombo_input"
    selection_render_extras: str = "@(.termViewCol) @(.tmClassEditorSelected) @(.leadingClassCombo) @(.hintSelectGroup)"

    # Step 6: options
    option_accelerated: str = "acceleratedExamination:valueHolder_input"
    option_certification: str = "mark-certification-chkbox:valueHolder_input"
    option_licensing: str = "mark-licenseIndicator-chkbox:valueHolder_input"
    option_disposition: str = "mark-dispositionIndicator-chkbox:valueHolder_input"

    # Step 7: payment
    payment_radio: str = "paymentForm:paymentTypeSelectOneRadio"

    # Step 8: final submission
    submit_button: str = "btnSubmitRegistration"
    confirm_checkbox: str = "chBoxConfirmText_input"
    sender_name_field: str = "applicantNameTextField:valueHolder"
    dynamic_items_panel_suffix: str = ":itemsPanel_active"

    # Transaction reference (final redirect / body)
    transaction_param: str = "transactionId"
