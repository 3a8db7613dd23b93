import logging

from django.db import DatabaseError, transaction
from django.utils import timezone

from .exceptions import Conflict, ServiceError, TransactionFailure, UnauthorizedOwnership
from .models import ClientProfile, OperatorProfile, User

logger = logging.getLogger(__name__)

PROFILE_MODELS = {
    User.CLIENT: ClientProfile,
    User.OPERATOR: OperatorProfile,
}


class ProfileService:
    """Stores the one-time client/operator profile and flips ``profile_completed``."""

    def profile_model(self, user, user_type=None):
        model = PROFILE_MODELS.get(user.user_type)
        if model is None or (user_type is not None and user.user_type != user_type):
            logger.warning(f"[PROFILE FORM REFUSED] user={user.pk} type={user.user_type} form={user_type}")
            raise UnauthorizedOwnership('This profile form is not for your account type.')
        return model

    def complete_profile(self, user, data, user_type=None):
        model = self.profile_model(user, user_type)
        try:
            with transaction.atomic():
                locked = User.objects.select_for_update().get(pk=user.pk)
                if locked.profile_completed or model.objects.filter(user=locked).exists():
                    raise Conflict('Your profile is already complete.')
                profile = model.objects.create(user=locked, **data)
                User.objects.filter(pk=user.pk).update(profile_completed=True, updated_at=timezone.now())
        except ServiceError:
            raise
        except DatabaseError as e:
            logger.error(f"[PROFILE FAILED] user={user.pk}: {e}")
            raise TransactionFailure(e, 'Failed to save profile. Please try again.') from e

        user.profile_completed = True
        logger.info(f"[PROFILE COMPLETED] user={user.pk} type={user.user_type} profile={profile.pk}")
        return profile
