from ninja import ModelSchema

from accounts.models import FelicityUser


class MemberSchema(ModelSchema):
    display_name: str

    class Meta:
        model = FelicityUser
        fields = ("id", "email", "first_name", "last_name", "college_name", "contact_number")


class OrganizerSchema(ModelSchema):
    display_name: str

    class Meta:
        model = FelicityUser
        fields = ("id", "email", "organizer_name")
