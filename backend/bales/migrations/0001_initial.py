from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('masters', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='BaleBatch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(max_length=50, unique=True)),
                ('status', models.CharField(choices=[('active', 'Active'), ('deleted', 'Deleted')], default='active', max_length=20)),
                ('total_weight', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('remarks', models.TextField(blank=True)),
                ('deleted_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='bale_batches', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'bale_batches',
                'ordering': ['-created_at', '-id'],
            },
        ),
        migrations.CreateModel(
            name='BaleItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(max_length=50, unique=True)),
                ('gsm', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('size', models.CharField(blank=True, max_length=100)),
                ('shade', models.CharField(blank=True, max_length=100)),
                ('gross_weight', models.DecimalField(decimal_places=2, max_digits=12)),
                ('weight_loss_grams', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('net_weight', models.DecimalField(decimal_places=2, max_digits=12)),
                ('piece_count', models.PositiveIntegerField(default=0)),
                ('status', models.CharField(choices=[('available', 'Available'), ('issued', 'Issued'), ('deleted', 'Deleted')], default='available', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('batch', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='bales.balebatch')),
                ('finished_product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='bale_items', to='masters.finishedproduct')),
            ],
            options={
                'db_table': 'bale_items',
                'ordering': ['id'],
                'indexes': [models.Index(fields=['finished_product', 'status'], name='idx_bale_product_status')],
                'constraints': [models.CheckConstraint(condition=models.Q(('net_weight__gt', 0)), name='bale_net_weight_positive')],
            },
        ),
    ]
