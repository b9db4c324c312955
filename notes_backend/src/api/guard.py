from src.api.errors import AccessDenied
from src.api.models import User


# PUBLIC_INTERFACE
def authorize(principal: User, resource_owner_id: int) -> None:
    """
    Allow access only when the principal owns the resource.

    There is a single role, so there is no override for administrators.

    Raises:
        AccessDenied if principal.id != resource_owner_id.
    """
    if principal.id != resource_owner_id:
        raise AccessDenied("You do not have permission to access this note")
