"""
Authentication Serializers with validation.
"""
from rest_framework import serializers
from django.contrib.auth.models import User
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from coursehive.models import UserProfile


class UserRegistrationSerializer(serializers.ModelSerializer):
    """Serializer for user and admin registration."""
    password = serializers.CharField(
        write_only=True,
        min_length=8,
        style={'input_type': 'password'},
        help_text="Minimum 8 characters"
    )
    firstName = serializers.CharField(source='first_name', required=False, allow_blank=True, max_length=150)
    lastName = serializers.CharField(source='last_name', required=False, allow_blank=True, max_length=150)
    role = serializers.ChoiceField(
        choices=UserProfile.Role.choices,
        default=UserProfile.Role.USER,
        help_text="Account role: user (default) or admin"
    )

    class Meta:
        model = User
        fields = ['username', 'email', 'password', 'firstName', 'lastName', 'role']
        extra_kwargs = {
            'email': {'required': True},
        }

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("A user with this email already exists.")
        return value.lower()

    def validate_username(self, value):
        if User.objects.filter(username=value).exists():
            raise serializers.ValidationError("A user with this username already exists.")
        return value

    def validate(self, data):
        try:
            validate_password(data['password'])
        except ValidationError as e:
            raise serializers.ValidationError({"password": list(e.messages)})
        return data

    def create(self, validated_data):
        role = validated_data.pop('role', UserProfile.Role.USER)
        user = User.objects.create_user(**validated_data)

        user.profile.role = role
        user.profile.save(update_fields=['role', 'updated_at'])
        return user


class LoginSerializer(serializers.Serializer):
    """Serializer for user login."""
    username = serializers.CharField(help_text="Username or email")
    password = serializers.CharField(
        style={'input_type': 'password'},
        help_text="Account password"
    )


class UserSerializer(serializers.ModelSerializer):
    """Public identity of the authenticated user."""
    firstName = serializers.CharField(source='first_name', read_only=True)
    lastName = serializers.CharField(source='last_name', read_only=True)
    role = serializers.SerializerMethodField()
    dateJoined = serializers.DateTimeField(source='date_joined', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'firstName', 'lastName', 'role', 'dateJoined']
        read_only_fields = fields

    def get_role(self, obj) -> str:
        profile = getattr(obj, 'profile', None)
        return profile.role if profile else UserProfile.Role.USER
