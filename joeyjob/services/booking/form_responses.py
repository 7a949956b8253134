# joeyjob/services/booking/form_responses.py
"""
Form response handling for booking submissions.

Answers arrive keyed by generated field ids. They are resolved once against
the form's question catalogue (base questions plus the service's additional
questions) so stored bookings and SimPro notes carry readable labels.
"""
import html
import json
from typing import Any, Dict, List, Optional

from joeyjob.schemas.service_tree import ServiceNode
from joeyjob.schemas.simpro import SimproAddress, SimproCustomerInput

CONTACT_INFO_KEY = "contact_info"
ADDRESS_KEY_PREFIX = "address_"
COMPANY_KEY = "company"


def _is_contact_or_address(field_id: str) -> bool:
    return field_id == CONTACT_INFO_KEY or field_id.startswith(ADDRESS_KEY_PREFIX)


def _is_empty(answer: Any) -> bool:
    return answer is None or answer == "" or answer == [] or answer == {}


def build_question_map(form_config: Optional[Dict[str, Any]], service: Optional[ServiceNode] = None) -> Dict[str, str]:
    """Question id -> label; service questions override base questions with the same id"""
    question_map: Dict[str, str] = {}
    questions: List[Dict[str, Any]] = list((form_config or {}).get("baseQuestions") or [])
    if service:
        questions.extend(service.additional_questions)

    for question in questions:
        question_id = question.get("id")
        if question_id:
            question_map[question_id] = question.get("label") or question.get("name") or question_id
    return question_map


def format_answer(answer: Any) -> str:
    if isinstance(answer, (list, tuple)):
        return ", ".join(str(item) for item in answer)
    if isinstance(answer, dict):
        return json.dumps(answer)
    return str(answer)


def resolve_form_responses(form_data: Dict[str, Any], question_map: Dict[str, str]) -> Dict[str, Any]:
    """Denormalized responses: {"contactInfo": {...}, "responses": {field_id: {label, value}}}"""
    responses = {
        field_id: {"label": question_map.get(field_id, field_id), "value": answer}
        for field_id, answer in form_data.items()
        if field_id != CONTACT_INFO_KEY
    }
    return {
        "contactInfo": form_data.get(CONTACT_INFO_KEY) or {},
        "responses": responses,
    }


def format_responses_as_html(form_data: Dict[str, Any], question_map: Dict[str, str]) -> str:
    """SimPro job notes; contact and address fields are sent separately and skipped here"""
    items = []
    for field_id, answer in form_data.items():
        if _is_contact_or_address(field_id) or _is_empty(answer):
            continue
        label = html.escape(question_map.get(field_id, field_id))
        items.append(f"<li><strong>{label}:</strong> {html.escape(format_answer(answer))}</li>")

    if not items:
        return ""
    return "<h4>Customer Responses:</h4>\n<ul>\n" + "\n".join(items) + "\n</ul>"


def extract_address(form_data: Dict[str, Any]) -> Optional[SimproAddress]:
    """First address_* object in the form, mapped to SimPro's address shape"""
    for field_id, value in form_data.items():
        if field_id.startswith(ADDRESS_KEY_PREFIX) and isinstance(value, dict) and value:
            street = value.get("street") or ""
            if value.get("street2"):
                street = f"{street}, {value['street2']}"
            defaults = SimproAddress()
            return SimproAddress(
                line1=street.strip() or defaults.line1,
                city=value.get("city") or defaults.city,
                state=value.get("state") or defaults.state,
                postal_code=value.get("zip") or value.get("postalCode") or defaults.postal_code,
                country=value.get("country") or defaults.country,
            )
    return None


def extract_customer(form_data: Dict[str, Any]) -> Dict[str, Any]:
    """Customer contact fields from the nested contact_info block"""
    contact = form_data.get(CONTACT_INFO_KEY) or {}
    first_name = (contact.get("firstName") or "").strip()
    last_name = (contact.get("lastName") or "").strip()
    return {
        "first_name": first_name,
        "last_name": last_name,
        "name": f"{first_name} {last_name}".strip() or "Customer",
        "email": contact.get("email") or None,
        "phone": contact.get("phone") or None,
        "company": form_data.get(COMPANY_KEY) or None,
    }


def build_simpro_customer(form_data: Dict[str, Any]) -> SimproCustomerInput:
    customer = extract_customer(form_data)
    return SimproCustomerInput(
        given_name=customer["first_name"] or "Customer",
        family_name=customer["last_name"] or "Customer",
        email=customer["email"] or "",
        phone=customer["phone"] or "",
        address=extract_address(form_data) or SimproAddress(),
    )
