"""
Single place that decides who may do what with a tender.

Reads are open to every authenticated principal. Mutations are limited to the
owner (the principal that created the tender) or the privileged role; status
changes, attribute changes and tender deletion need the privileged role.
"""
from enum import Enum

from app.core.errors import Forbidden, LastDocumentError
from app.core.logging_config import logger
from app.models.tenders import Tender
from app.schemas.principal import Principal


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    UPDATE_ATTRIBUTES = "update_attributes"
    CHANGE_STATUS = "change_status"
    DELETE = "delete"
    DELETE_DOCUMENT = "delete_document"


DENIAL_MESSAGES = {
    Action.UPDATE: "Not authorized to update this tender",
    Action.UPDATE_ATTRIBUTES: "Not authorized to change tender attributes",
    Action.CHANGE_STATUS: "Not authorized to change tender status",
    Action.DELETE: "Not authorized to delete tenders",
    Action.DELETE_DOCUMENT: "Not authorized to modify this tender",
}


def is_owner(principal: Principal, tender: Tender | None) -> bool:
    return tender is not None and tender.submitted_by == principal.id


def decide(principal: Principal, action: Action, tender: Tender | None = None) -> bool:
    if action in (Action.CREATE, Action.READ):
        return True
    if action in (Action.UPDATE, Action.DELETE_DOCUMENT):
        return principal.is_privileged or is_owner(principal, tender)
    if action in (Action.UPDATE_ATTRIBUTES, Action.CHANGE_STATUS, Action.DELETE):
        return principal.is_privileged
    return False


def authorize(principal: Principal, action: Action, tender: Tender | None = None) -> None:
    if not decide(principal, action, tender):
        logger.warning(f"Denied {action.value} for principal {principal.id} ({principal.role})"
                       + (f" on tender {tender.tender_id}" if tender is not None else ""))
        raise Forbidden(DENIAL_MESSAGES.get(action, "Not authorized"))


def authorize_document_removal(principal: Principal, tender: Tender) -> None:
    authorize(principal, Action.DELETE_DOCUMENT, tender)
    if len(tender.documents) <= 1:
        raise LastDocumentError("Cannot delete the last document. At least one document is required.")
