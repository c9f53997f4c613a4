import re
import uuid

from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models


class FelicityUserQueryset(models.QuerySet["FelicityUser"]):
    """Queryset for FelicityUser."""

    def organizers(self) -> "FelicityUserQueryset":
        """Users allowed to own events."""
        return self.filter(role=FelicityUser.Role.ORGANIZER)


class FelicityUserManager(UserManager["FelicityUser"]):
    def get_queryset(self) -> FelicityUserQueryset:
        """Get queryset for FelicityUser."""
        return FelicityUserQueryset(self.model, using=self._db)

    def organizers(self) -> FelicityUserQueryset:
        """Users allowed to own events."""
        return self.get_queryset().organizers()


class FelicityUser(AbstractUser):
    class Role(models.TextChoices):
        PARTICIPANT = "participant", "Participant"
        ORGANIZER = "organizer", "Organizer"
        ADMIN = "admin", "Admin"

    class ParticipantType(models.TextChoices):
        IIIT = "iiit", "IIIT"
        NON_IIIT = "non_iiit", "Non-IIIT"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.PARTICIPANT, db_index=True)
    participant_type = models.CharField(max_length=20, choices=ParticipantType.choices, blank=True)
    college_name = models.CharField(max_length=200, blank=True)
    contact_number = models.CharField(max_length=20, blank=True)
    organizer_name = models.CharField(max_length=200, blank=True, help_text="Club or team name for organizers")
    discord_webhook_url = models.URLField(
        max_length=500, blank=True, help_text="Webhook notified when one of the organizer's events is published"
    )

    objects = FelicityUserManager()  # type: ignore[misc]

    class Meta:
        ordering = ["username"]

    @property
    def is_organizer(self) -> bool:
        """Whether the user may create and manage events."""
        return self.role == self.Role.ORGANIZER

    @property
    def is_admin_role(self) -> bool:
        """Whether the user holds the platform admin role."""
        return self.role == self.Role.ADMIN or self.is_superuser

    @property
    def display_name(self) -> str:
        """Display name."""
        return self.get_display_name()

    def get_display_name(self) -> str:
        """Returns the organizer name for organizers, or the full name with a username fallback."""
        if self.is_organizer and self.organizer_name:
            return self.organizer_name
        return self.get_full_name() or re.sub(r"(\W|_)+", " ", self.username.split("@")[0]).title()
