from transitions.extensions.asyncio import AsyncMachine
from app.core.errors import InvalidStatus
from app.models.tenders import Tender, TENDER_STATUSES
from app.core.logging_config import logger

class TenderStateMachine:
    """
    Review workflow of a tender.

    The three states form a complete graph: every trigger is allowed from
    every state (including the target itself) and there is no terminal state.
    """
    states = list(TENDER_STATUSES)

    TRIGGERS = {
        "pending": "mark_pending",
        "approved": "approve",
        "rejected": "reject",
    }

    def __init__(self, tender: Tender):
        self.tender = tender
        self.machine = AsyncMachine(
            model=self,
            states=TenderStateMachine.states,
            initial=tender.status or "pending",
            auto_transitions=False,
            queued=True,
            send_event=True
        )

        self.machine.add_transition("mark_pending", "*", "pending")
        self.machine.add_transition("approve", "*", "approved")
        self.machine.add_transition("reject", "*", "rejected")

    async def transition_to(self, status: str) -> str:
        trigger = self.TRIGGERS.get(status)
        if trigger is None:
            raise InvalidStatus("Invalid status value")
        previous = self.state
        await getattr(self, trigger)()
        self.tender.status = self.state
        logger.info(f"Tender {self.tender.tender_id} moved from {previous} to {self.state}")
        return self.state

    async def on_enter_pending(self, event):
        logger.debug(f"Tender {self.tender.tender_id} entered state pending")

    async def on_enter_approved(self, event):
        logger.debug(f"Tender {self.tender.tender_id} entered state approved")

    async def on_enter_rejected(self, event):
        logger.debug(f"Tender {self.tender.tender_id} entered state rejected")
