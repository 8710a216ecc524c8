from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('quickbooks', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='qbocredential',
            name='needs_reconnect',
            field=models.BooleanField(default=False, help_text='Set when Intuit refused the refresh token; cleared on reconnect'),
        ),
    ]
