from django.http import HttpRequest
from ninja_extra import ControllerBase
from ninja_extra.exceptions import PermissionDenied
from ninja_extra.permissions import BasePermission

from events.models import Event, Organizer


class IsOrganizerTeamMember(BasePermission):
    def has_permission(self, request: HttpRequest, controller: ControllerBase) -> bool:
        """Must implement abstract method. Only has_object_permission does the check."""
        return True

    def has_object_permission(
        self,
        request: HttpRequest,
        controller: ControllerBase,
        obj: Organizer | Event,
    ) -> bool:
        """The owner, team members and platform superusers can see an organizer's money."""
        organizer = obj.organizer if isinstance(obj, Event) else obj
        if request.user.is_superuser or organizer.is_team_member(request.user):
            return True
        raise PermissionDenied("You must be a member of this organizer's team.")


class IsSuperuser(BasePermission):
    def has_permission(self, request: HttpRequest, controller: ControllerBase) -> bool:
        """Fee configuration and payouts settlement are platform-admin only."""
        return bool(request.user and request.user.is_superuser)
