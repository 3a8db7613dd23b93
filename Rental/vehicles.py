import logging

from django.db import transaction

from Account.exceptions import Conflict, UnauthorizedOwnership, ValidationError

from .availability import ACTIVE_BOOKING_STATUSES
from .models import Vehicle, VehicleAttachment

logger = logging.getLogger(__name__)


class VehicleService:
    """Operator-side vehicle management. Every mutation checks ownership first."""

    def authorize_owner(self, operator, vehicle):
        if vehicle.operator_id != operator.pk:
            logger.warning(f"[UNAUTHORIZED VEHICLE ACCESS] operator={operator.pk} vehicle={vehicle.pk}")
            raise UnauthorizedOwnership()

    def add_attachments(self, vehicle, attachments):
        """``attachments`` is a list of ``(attachment_type, uploaded_file)`` pairs."""
        created = []
        valid_types = dict(VehicleAttachment.TYPE_CHOICES)
        for attachment_type, upload in attachments:
            if attachment_type not in valid_types:
                raise ValidationError('attachment_type', f"unsupported attachment type '{attachment_type}'")
            created.append(
                VehicleAttachment.objects.create(vehicle=vehicle, attachment_type=attachment_type, attachment=upload)
            )
        return created

    def remove_attachments(self, vehicle, attachment_ids):
        attachments = list(VehicleAttachment.objects.filter(vehicle=vehicle, pk__in=attachment_ids))
        files = [a.attachment for a in attachments]
        VehicleAttachment.objects.filter(pk__in=[a.pk for a in attachments]).delete()
        return files

    def attachments_for(self, vehicle):
        grouped = {key: [] for key, _ in VehicleAttachment.TYPE_CHOICES}
        for attachment in VehicleAttachment.objects.filter(vehicle=vehicle):
            grouped[attachment.attachment_type].append(attachment)
        return grouped

    @staticmethod
    def _delete_files(files):
        for f in files:
            if f:
                f.delete(save=False)

    def create_vehicle(self, operator, data, attachments=None):
        with transaction.atomic():
            vehicle = Vehicle.objects.create(operator=operator, **data)
            if attachments:
                self.add_attachments(vehicle, attachments)
        logger.info(f"[VEHICLE CREATED] vehicle={vehicle.pk} operator={operator.pk} plate={vehicle.license_plate}")
        return vehicle

    def update_vehicle(self, operator, vehicle, data, attachments=None, remove_attachment_ids=None):
        self.authorize_owner(operator, vehicle)
        removed_files = []
        with transaction.atomic():
            for field, value in data.items():
                setattr(vehicle, field, value)
            vehicle.save()
            if remove_attachment_ids:
                removed_files = self.remove_attachments(vehicle, remove_attachment_ids)
            if attachments:
                self.add_attachments(vehicle, attachments)
        self._delete_files(removed_files)
        logger.info(f"[VEHICLE UPDATED] vehicle={vehicle.pk} operator={operator.pk}")
        return vehicle

    def delete_vehicle(self, operator, vehicle):
        self.authorize_owner(operator, vehicle)
        if vehicle.bookings.filter(status__in=ACTIVE_BOOKING_STATUSES).exists():
            raise Conflict("This vehicle has active bookings and cannot be deleted.")

        vehicle_id = vehicle.pk
        with transaction.atomic():
            files = self.remove_attachments(vehicle, vehicle.attachments.values_list('pk', flat=True))
            vehicle.delete()
        self._delete_files(files)
        logger.info(f"[VEHICLE DELETED] vehicle={vehicle_id} operator={operator.pk}")
