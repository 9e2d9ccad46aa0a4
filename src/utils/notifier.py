"""Invitation delivery.

No mail transport is wired in; deliveries are written to the log so an
operator can forward the link by hand.
"""

import logging

from models.invitation import InvitationModel

logger = logging.getLogger(__name__)


class InvitationNotifier:
    """Delivers invitation links to invitees."""

    def send_invitation(self, invitation: InvitationModel, school_name: str) -> None:
        """Log a dummy delivery for an email-bound invitation.

        Args:
            invitation: The invitation that was created or re-issued.
            school_name: Display name of the inviting school.
        """
        if not invitation.email:
            return
        logger.info(
            "[DUMMY MAIL] To=%s School=%s Role=%s Code=%s Expires=%s",
            invitation.email,
            school_name,
            invitation.role,
            invitation.code or "-",
            invitation.expires_at,
        )
