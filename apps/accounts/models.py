"""
Account model.

An account's stored class is one of Admin, ProjectManager or User. Team
roles (leader, member) are never stored here; they are derived from team
membership by ``apps.accounts.roles.RoleResolver``.
"""
import logging
from django.db import models
from django.contrib.auth.hashers import make_password, check_password
from django.utils import timezone

from apps.core.fields import EncryptedCharField
from apps.core.identifiers import IdentifierAllocator
from apps.core.models import BaseModel

logger = logging.getLogger(__name__)


class UserManager(models.Manager):
    """
    Manager for account queries.

    Compatible with Django's authentication system.
    """

    def active(self):
        return self.filter(is_active=True)

    def by_email(self, email):
        return self.filter(email=self.normalize_email(email)).first()

    def of_class(self, account_class):
        return self.filter(account_class=account_class)

    @classmethod
    def normalize_email(cls, email):
        """Strip and lower-case the whole address; emails are unique case-insensitively."""
        return (email or '').strip().lower()

    def create_user(self, email, password=None, **extra_fields):
        """
        Create a new account under a freshly allocated ``User-NNNNN`` id.

        The password is hashed before the insert.
        """
        if not email:
            raise ValueError('Email address is required')

        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('account_class', self.model.USER)

        return IdentifierAllocator.create(
            self.model,
            email=self.normalize_email(email),
            password_hash=make_password(password),
            **extra_fields
        )

    def create_project_manager(self, email, password=None, **extra_fields):
        extra_fields['account_class'] = self.model.PROJECT_MANAGER
        return self.create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        """Create an Admin account. Used by Django's createsuperuser command."""
        extra_fields['account_class'] = self.model.ADMIN
        return self.create_user(email, password, **extra_fields)

    def get_by_natural_key(self, email):
        return self.get(**{self.model.USERNAME_FIELD: self.normalize_email(email)})


class User(BaseModel):
    """
    A person who can sign in.

    This is the AUTH_USER_MODEL for the project.
    """
    ID_PREFIX = 'User'

    ADMIN = 'Admin'
    PROJECT_MANAGER = 'ProjectManager'
    USER = 'User'

    ACCOUNT_CLASS_CHOICES = [
        (ADMIN, 'Admin'),
        (PROJECT_MANAGER, 'Project Manager'),
        (USER, 'User'),
    ]

    first_name = models.CharField(
        max_length=100,
        help_text="First name"
    )
    last_name = models.CharField(
        max_length=100,
        help_text="Last name"
    )
    email = models.EmailField(
        unique=True,
        help_text="Email address (unique, stored lower-cased)"
    )
    password_hash = models.CharField(
        max_length=255,
        help_text="Hashed password",
        db_column='password_hash'
    )
    contact = EncryptedCharField(
        max_length=255,
        blank=True,
        default='',
        help_text="Encrypted contact number"
    )
    avatar = models.CharField(
        max_length=500,
        blank=True,
        default='',
        help_text="Reference to the avatar image"
    )
    account_class = models.CharField(
        max_length=20,
        choices=ACCOUNT_CLASS_CHOICES,
        default=USER,
        db_index=True,
        help_text="Stored account class; team roles are derived"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether the account can sign in"
    )
    last_login_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last login timestamp"
    )

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['first_name', 'last_name']

    objects = UserManager()

    class Meta:
        db_table = 'accounts'
        ordering = ['id']
        indexes = [
            models.Index(fields=['account_class', 'is_active']),
        ]

    def __str__(self):
        return f"{self.id} <{self.email}>"

    @property
    def password(self):
        return self.password_hash

    @password.setter
    def password(self, value):
        self.password_hash = value

    def check_password(self, raw_password):
        return check_password(raw_password, self.password_hash)

    def set_password(self, raw_password):
        self.password_hash = make_password(raw_password)

    def update_last_login(self):
        self.last_login_at = timezone.now()
        self.save(update_fields=['last_login_at', 'updated_at'])

    @property
    def is_admin(self):
        return self.account_class == self.ADMIN

    @property
    def is_project_manager(self):
        return self.account_class == self.PROJECT_MANAGER

    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    def natural_key(self):
        return (self.email,)
