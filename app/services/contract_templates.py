"""
Contract data builder and template rendering.

Contract text lives in app/templates/contracts/*.txt as Jinja2 templates.
Rendered output is plain structured text that the PDF renderer lays out:

    first non-blank line          -> document title
    "1. SECTION HEADING" (caps)    -> section heading
    anything else                  -> body paragraph
    [sig|req|recipient_N] tags     -> invisible anchors for provider fields
"""
from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from app.core.config import settings
from app.models.collaborator_share import CollaboratorRole, CollaboratorShare
from app.models.contract import ContractType
from app.models.publishing_entity_share import PublishingEntityShare
from app.models.work import Work
from app.services.contract_types import contract_type_label
from app.services.errors import RenderError

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "contracts"

TEMPLATE_FILES: Dict[ContractType, str] = {
    ContractType.SONGWRITER_PUBLISHING: "publishing_assignment.txt",
    ContractType.DIGITAL_MASTER_ONLY: "master_revenue_share.txt",
    ContractType.PRODUCER_AGREEMENT: "producer_agreement.txt",
    ContractType.LABEL_RECORD: "label_record.txt",
}

# Role wording used in master-side agreements
ROLE_TITLES = {
    CollaboratorRole.PRODUCER: "Producer",
    CollaboratorRole.MUSICIAN: "Instrumentalist",
    CollaboratorRole.ARTIST: "Featured Artist",
    CollaboratorRole.WRITER: "Writer",
    CollaboratorRole.LABEL: "Label",
}
SERVICES_DESCRIPTIONS = {
    CollaboratorRole.PRODUCER: "Production, arrangement, and creative direction services for the Recording",
    CollaboratorRole.MUSICIAN: "Instrumental performance services for the Recording",
    CollaboratorRole.ARTIST: "Lead performance and creative input for the Recording",
    CollaboratorRole.WRITER: "Songwriting and composition services for the Recording",
}
CREDIT_WORDING = {
    CollaboratorRole.PRODUCER: "Produced by {name}",
    CollaboratorRole.MUSICIAN: "Instrumental performance by {name}",
    CollaboratorRole.ARTIST: "Featuring {name}",
    CollaboratorRole.WRITER: "Written by {name}",
}

_environment: Optional[Environment] = None


def get_environment() -> Environment:
    global _environment
    if _environment is None:
        _environment = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
    return _environment


def format_percent(fraction: Optional[Decimal]) -> str:
    """0.2500 -> '25.00'"""
    if fraction is None:
        return "0.00"
    return f"{Decimal(str(fraction)) * 100:.2f}"


def build_contract_data(
    contract_type: ContractType,
    work: Work,
    share: CollaboratorShare,
    entity_shares: Iterable[PublishingEntityShare],
    effective_date: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Assemble the template context for one contract.

    Args:
        contract_type: Template to render
        work: The song the contract covers
        share: Collaborator share (collaborator relationship loaded)
        entity_shares: All publishing entity shares of the work
            (publishing_entity relationship loaded)
        effective_date: Date printed on the contract, today by default
    """
    collaborator = share.collaborator
    role = CollaboratorRole(share.role_in_song)
    name = collaborator.full_name
    effective_date = effective_date or date.today()

    publishers: List[Dict[str, Any]] = [
        {
            "name": entity_share.publishing_entity.name,
            "share": format_percent(entity_share.ownership_percentage),
            "pro_affiliation": entity_share.publishing_entity.pro_affiliation,
            "ipi_number": entity_share.publishing_entity.ipi_number,
        }
        for entity_share in entity_shares
    ]

    return {
        "contract_type": ContractType(contract_type).value,
        "contract_title": contract_type_label(contract_type),
        "effective_date": effective_date.strftime("%B %d, %Y"),
        # Work
        "song_title": work.title,
        "isrc_code": work.isrc_code,
        "iswc_code": work.iswc_code,
        "catalog_number": work.catalog_number,
        "release_date": work.release_date.isoformat() if work.release_date else None,
        "special_terms": work.notes or "None",
        # Collaborator
        "collaborator_name": name,
        "collaborator_email": collaborator.email,
        "collaborator_address": collaborator.address,
        "collaborator_phone": collaborator.phone,
        "pro_affiliation": collaborator.pro_affiliation,
        "ipi_number": collaborator.ipi_number,
        "role": role.value,
        "role_title": ROLE_TITLES.get(role, role.value),
        "services_description": SERVICES_DESCRIPTIONS.get(role, "Services as described in this Agreement"),
        "credit_wording": CREDIT_WORDING.get(role, "{name}").format(name=name),
        "publishing_share": format_percent(share.publishing_ownership),
        "master_share": format_percent(share.master_ownership),
        "label_master_share": format_percent(work.label_master_share),
        "publishers": publishers,
        # Publisher
        "publisher_name": settings.PUBLISHER_NAME,
        "publisher_state": settings.PUBLISHER_STATE,
        "publisher_address": settings.PUBLISHER_ADDRESS,
        "publisher_manager_name": settings.PUBLISHER_MANAGER_NAME,
        "publisher_manager_title": settings.PUBLISHER_MANAGER_TITLE,
        "governing_state": settings.GOVERNING_STATE,
    }


def render_contract_text(contract_type: ContractType, data: Dict[str, Any]) -> str:
    """Render the contract template for `contract_type` into structured text."""
    template_name = TEMPLATE_FILES.get(ContractType(contract_type))
    if template_name is None:
        raise RenderError(f"No template available for contract type: {contract_type}")

    try:
        template = get_environment().get_template(template_name)
        return template.render(**data)
    except TemplateError as e:
        logger.error(f"Failed to render {template_name}: {e}")
        raise RenderError(f"Failed to render contract template: {e}") from e
