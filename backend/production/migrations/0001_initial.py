from decimal import Decimal

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('inventory', '0001_initial'),
        ('masters', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='ProductionBatch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(max_length=50, unique=True)),
                ('status', models.CharField(choices=[('in_progress', 'In Progress'), ('partially_completed', 'Partially Completed'), ('completed', 'Completed')], default='in_progress', max_length=30)),
                ('allocation_date', models.DateField()),
                ('completion_date', models.DateField(blank=True, null=True)),
                ('total_input_quantity', models.DecimalField(decimal_places=2, max_digits=12)),
                ('consumed_quantity', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('output_quantity', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('loss_quantity', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('loss_percentage', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=7)),
                ('loss_exceeded', models.BooleanField(default=False)),
                ('remarks', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='production_batches', to=settings.AUTH_USER_MODEL)),
                ('machine', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='batches', to='masters.machine')),
            ],
            options={
                'db_table': 'production_batches',
                'ordering': ['-allocation_date', '-id'],
                'indexes': [
                    models.Index(fields=['machine', 'status'], name='idx_batch_machine_status'),
                    models.Index(fields=['status', 'completion_date'], name='idx_batch_status_completion'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('output_quantity__lte', models.F('total_input_quantity'))), name='batch_output_within_input'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ProductionBatchInput',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.DecimalField(decimal_places=2, max_digits=12)),
                ('batch', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='inputs', to='production.productionbatch')),
                ('raw_material', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='production_inputs', to='masters.rawmaterial')),
                ('roll', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='production_inputs', to='inventory.rawmaterialroll')),
            ],
            options={
                'db_table': 'production_batch_inputs',
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='ProductionBatchOutput',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('batch', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='outputs', to='production.productionbatch')),
                ('finished_product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='production_outputs', to='masters.finishedproduct')),
            ],
            options={
                'db_table': 'production_batch_outputs',
                'ordering': ['id'],
                'unique_together': {('batch', 'finished_product')},
            },
        ),
    ]
