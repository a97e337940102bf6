import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Employee',
            fields=[
                ('id', models.CharField(max_length=32, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=255)),
                ('designation', models.CharField(choices=[('driver', 'Driver'), ('staff', 'Staff'), ('ceo', 'CEO')], default='driver', max_length=10)),
                ('phone_number', models.CharField(blank=True, default='', max_length=64)),
                ('email', models.EmailField(blank=True, default='', max_length=254)),
                ('route_name', models.CharField(blank=True, default='', max_length=255)),
                ('balance', models.DecimalField(blank=True, decimal_places=4, max_digits=18, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'employees',
                'indexes': [models.Index(fields=['designation', 'is_active'], name='employees_designa_5b1f0e_idx')],
            },
        ),
        migrations.CreateModel(
            name='BalanceHistoryEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('version', models.PositiveIntegerField()),
                ('balance', models.DecimalField(decimal_places=4, max_digits=18)),
                ('reason', models.TextField(blank=True, default='')),
                ('updated_by', models.CharField(blank=True, default='', max_length=150)),
                ('updated_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('employee', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='balance_history', to='employees.employee')),
            ],
            options={
                'db_table': 'employee_balance_history',
                'ordering': ['version'],
                'unique_together': {('employee', 'version')},
            },
        ),
    ]
