from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from proserv.users.models import Address
from proserv.users.models import DeviceToken
from proserv.users.models import User
from proserv.users.models import default_preferences

LANGUAGES = ("es", "en")
CURRENCIES = ("COP", "USD")


class UserSummarySerializer(serializers.ModelSerializer[User]):
    """Compact representation embedded in other resources."""

    full_name = serializers.CharField(source="name", read_only=True)

    class Meta:
        model = User
        fields = ["id", "full_name", "avatar", "role"]
        read_only_fields = fields


class UserSerializer(serializers.ModelSerializer[User]):
    full_name = serializers.CharField(source="name", read_only=True)
    # System-managed identity fields
    username = serializers.CharField(read_only=True)
    email = serializers.EmailField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "full_name",
            "role",
            "phone",
            "avatar",
            "date_of_birth",
            "gender",
            "is_verified",
            "preferences",
            "date_joined",
            "last_login",
        ]
        read_only_fields = [
            "id",
            "role",
            "is_verified",
            "preferences",
            "date_joined",
            "last_login",
        ]

    def validate(self, attrs):
        forbidden = {
            k for k in ("username", "email", "role") if k in self.initial_data
        }
        if forbidden:
            raise serializers.ValidationError(
                {f: "This field cannot be changed here." for f in forbidden},
            )
        return attrs


class AdminUserSerializer(UserSerializer):
    class Meta(UserSerializer.Meta):
        fields = [
            *UserSerializer.Meta.fields,
            "is_active",
            "is_staff",
            "login_attempts",
            "lock_until",
        ]
        read_only_fields = fields


class PublicUserSerializer(serializers.ModelSerializer[User]):
    """What other users may see; contact data honours privacy preferences."""

    full_name = serializers.CharField(source="name", read_only=True)
    email = serializers.SerializerMethodField()
    phone = serializers.SerializerMethodField()
    professional_id = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id",
            "full_name",
            "avatar",
            "role",
            "is_verified",
            "date_joined",
            "email",
            "phone",
            "professional_id",
        ]

    def _privacy(self, obj: User) -> dict:
        return (obj.preferences or {}).get("privacy", {})

    def get_email(self, obj: User) -> str | None:
        return obj.email if self._privacy(obj).get("show_email") else None

    def get_phone(self, obj: User) -> str | None:
        return obj.phone if self._privacy(obj).get("show_phone") else None

    def get_professional_id(self, obj: User) -> int | None:
        profile = getattr(obj, "professional_profile", None)
        return profile.pk if profile else None


class PreferencesSerializer(serializers.Serializer):
    language = serializers.ChoiceField(choices=LANGUAGES, required=False)
    currency = serializers.ChoiceField(choices=CURRENCIES, required=False)
    notifications = serializers.DictField(
        child=serializers.BooleanField(),
        required=False,
    )
    privacy = serializers.DictField(child=serializers.BooleanField(), required=False)

    def validate_notifications(self, value):
        unknown = set(value) - set(default_preferences()["notifications"])
        if unknown:
            msg = f"Unknown channels: {', '.join(sorted(unknown))}"
            raise serializers.ValidationError(msg)
        return value

    def validate_privacy(self, value):
        unknown = set(value) - set(default_preferences()["privacy"])
        if unknown:
            msg = f"Unknown privacy keys: {', '.join(sorted(unknown))}"
            raise serializers.ValidationError(msg)
        return value

    def update(self, instance: User, validated_data):
        prefs = {**default_preferences(), **(instance.preferences or {})}
        for key, value in validated_data.items():
            if isinstance(value, dict):
                prefs[key] = {**prefs.get(key, {}), **value}
            else:
                prefs[key] = value
        instance.preferences = prefs
        instance.save(update_fields=["preferences", "updated_at"])
        return instance


class RegisterSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8)
    first_name = serializers.CharField(max_length=150)
    last_name = serializers.CharField(max_length=150, required=False, default="")
    phone = serializers.CharField(max_length=30, required=False, default="")
    role = serializers.ChoiceField(
        choices=[User.Role.CLIENT, User.Role.PROFESSIONAL],
        default=User.Role.CLIENT,
    )

    def validate_email(self, value: str) -> str:
        return value.strip().lower()

    def validate(self, attrs):
        candidate = User(
            email=attrs["email"],
            first_name=attrs["first_name"],
            last_name=attrs.get("last_name", ""),
        )
        try:
            validate_password(attrs["password"], user=candidate)
        except DjangoValidationError as exc:
            raise serializers.ValidationError({"password": exc.messages}) from exc
        return attrs

    def create(self, validated_data):
        email = validated_data["email"]
        return User.objects.create_user(
            username=email,
            email=email,
            password=validated_data["password"],
            first_name=validated_data["first_name"],
            last_name=validated_data.get("last_name", ""),
            phone=validated_data.get("phone", ""),
            role=validated_data["role"],
        )


class LoginSerializer(serializers.Serializer):
    email = serializers.CharField(help_text="E-mail address or username")
    password = serializers.CharField(write_only=True, trim_whitespace=False)


class LogoutSerializer(serializers.Serializer):
    refresh = serializers.CharField()


class VerifyEmailSerializer(serializers.Serializer):
    uid = serializers.CharField()
    token = serializers.CharField()


class DeviceTokenSerializer(serializers.ModelSerializer[DeviceToken]):
    class Meta:
        model = DeviceToken
        fields = ["id", "token", "platform", "created_at"]
        read_only_fields = ["id", "created_at"]


class AddressSerializer(serializers.ModelSerializer[Address]):
    latitude = serializers.FloatField(
        required=False,
        allow_null=True,
        min_value=-90,
        max_value=90,
    )
    longitude = serializers.FloatField(
        required=False,
        allow_null=True,
        min_value=-180,
        max_value=180,
    )

    class Meta:
        model = Address
        fields = [
            "id",
            "label",
            "street",
            "city",
            "state",
            "zip_code",
            "country",
            "latitude",
            "longitude",
            "is_default",
            "created_at",
        ]
        read_only_fields = ["id", "created_at"]
