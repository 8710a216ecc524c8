from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('quickbooks', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='BankRule',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(help_text="E.g., 'Uber rides', 'Salary Deposits'", max_length=200)),
                ('match_logic', models.CharField(choices=[('ALL', 'All Conditions Must Match (AND)'), ('ANY', 'Any Condition Can Match (OR)')], default='ALL', help_text='How to combine multiple conditions', max_length=10)),
                ('rule_type', models.CharField(choices=[('Expense', 'Expense'), ('Income', 'Income'), ('Transfer', 'Transfer'), ('Journal Entry', 'Journal Entry'), ('Bill', 'Bill'), ('Invoice', 'Invoice')], default='Expense', help_text='Transaction kind suggested for matching rows', max_length=50)),
                ('suggested_ledger', models.CharField(blank=True, help_text='Name of the QuickBooks account to suggest', max_length=200)),
                ('suggested_contact_id', models.CharField(blank=True, help_text='QuickBooks vendor/customer id to suggest', max_length=64)),
                ('is_active', models.BooleanField(default=True, help_text='Disable rule without deleting it')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('company', models.ForeignKey(help_text='QuickBooks company that owns this rule', on_delete=django.db.models.deletion.CASCADE, related_name='bank_rules', to='quickbooks.qbocredential')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_bank_rules', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Bank Rule',
                'verbose_name_plural': 'Bank Rules',
                'ordering': ['-created_at', '-id'],
                'indexes': [models.Index(fields=['company', 'is_active'], name='bank_rule_company_active_idx')],
            },
        ),
        migrations.CreateModel(
            name='BankRuleCondition',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('field', models.CharField(help_text='Which transaction field to check, e.g. Description or Amount', max_length=50)),
                ('operator', models.CharField(choices=[('contains', 'Contains'), ('not_contains', 'Does Not Contain'), ('starts_with', 'Starts With'), ('ends_with', 'Ends With'), ('equals', 'Equals'), ('gt', 'Greater Than (>)'), ('lt', 'Less Than (<)'), ('gte', 'Greater or Equal (≥)'), ('lte', 'Less or Equal (≤)'), ('eq', 'Equal (=)')], help_text='How to compare the field value', max_length=20)),
                ('value', models.CharField(blank=True, help_text='Comparison value; parsed as a number for numeric operators', max_length=500)),
                ('order', models.IntegerField(default=0, help_text='Position within the rule')),
                ('rule', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='conditions', to='bank_rules.bankrule')),
            ],
            options={
                'verbose_name': 'Rule Condition',
                'verbose_name_plural': 'Rule Conditions',
                'ordering': ['order', 'id'],
            },
        ),
    ]
