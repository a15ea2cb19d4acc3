from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tarely.api.deps import get_current_user
from tarely.database import get_db
from tarely.errors import ValidationError
from tarely.models.profile import Profile
from tarely.schemas.workspaces import InvitationResponseSchema, InvitationSchema, MemberSchema
from tarely.services import workspace_service

router = APIRouter(prefix="/invitations", tags=["invitations"])


@router.get("", response_model=list[InvitationSchema])
def list_invitations(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    return workspace_service.list_invitations(db, user.id)


@router.patch("", response_model=MemberSchema)
def respond_to_invitation(
    body: InvitationResponseSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Accept or reject with either ``{accept: bool}`` or ``{action: "accept"|"reject"}``."""
    if body.accepted is None:
        raise ValidationError("Indica si aceptas o rechazas la invitación")
    return workspace_service.respond_to_invite(db, body.membership_id, user.id, body.accepted)
