from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='QBOCredential',
            fields=[
                ('realm_id', models.CharField(help_text='QuickBooks company (realm) identifier', max_length=64, primary_key=True, serialize=False)),
                ('company_name', models.CharField(blank=True, help_text='Display name fetched from CompanyInfo', max_length=200)),
                ('access_token', models.TextField()),
                ('refresh_token', models.TextField()),
                ('expires_in', models.IntegerField(default=3600, help_text='Access token lifetime in seconds')),
                ('x_refresh_token_expires_in', models.IntegerField(default=8726400, help_text='Refresh token lifetime in seconds')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, help_text='When the current token pair was issued')),
                ('is_active', models.BooleanField(default=True, help_text='Cleared on disconnect; the row itself is kept')),
                ('user', models.ForeignKey(help_text='User who connected this company', on_delete=django.db.models.deletion.CASCADE, related_name='qbo_credentials', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'QuickBooks Credential',
                'verbose_name_plural': 'QuickBooks Credentials',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['user', 'is_active'], name='qbo_cred_user_active_idx')],
            },
        ),
    ]
