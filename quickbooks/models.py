"""
QuickBooks Credential Model
---------------------------
One row per connected QuickBooks company (realm). The row is the only place
token state lives; nothing is cached in memory between requests.
"""

from datetime import timedelta

from django.contrib.auth.models import User
from django.db import models
from django.utils import timezone


class QBOCredential(models.Model):
    """
    OAuth tokens for a single QuickBooks realm.

    Validity is derived from ``created_at`` and the two lifetimes reported by
    Intuit when the tokens were issued.
    """

    realm_id = models.CharField(
        max_length=64,
        primary_key=True,
        help_text="QuickBooks company (realm) identifier"
    )

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='qbo_credentials',
        help_text="User who connected this company"
    )

    company_name = models.CharField(
        max_length=200,
        blank=True,
        help_text="Display name fetched from CompanyInfo"
    )

    # Tokens
    access_token = models.TextField()
    refresh_token = models.TextField()
    expires_in = models.IntegerField(
        default=3600,
        help_text="Access token lifetime in seconds"
    )
    x_refresh_token_expires_in = models.IntegerField(
        default=8726400,
        help_text="Refresh token lifetime in seconds"
    )

    created_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the current token pair was issued"
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Cleared on disconnect; the row itself is kept"
    )

    needs_reconnect = models.BooleanField(
        default=False,
        help_text="Set when Intuit refused the refresh token; cleared on reconnect"
    )

    class Meta:
        ordering = ['-created_at']
        verbose_name = "QuickBooks Credential"
        verbose_name_plural = "QuickBooks Credentials"
        indexes = [
            models.Index(fields=['user', 'is_active'], name='qbo_cred_user_active_idx'),
        ]

    def __str__(self):
        status = "active" if self.is_active else "inactive"
        return f"{self.display_name} ({self.realm_id}, {status})"

    @property
    def display_name(self):
        return self.company_name or f"Company {self.realm_id}"

    def age(self, now=None):
        """Time elapsed since the token pair was issued"""
        return (now or timezone.now()) - self.created_at

    def is_access_token_valid(self, now=None):
        return self.age(now) < timedelta(seconds=self.expires_in)

    def is_refresh_token_valid(self, now=None):
        return self.age(now) < timedelta(seconds=self.x_refresh_token_expires_in)
